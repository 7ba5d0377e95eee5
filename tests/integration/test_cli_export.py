"""Integration tests for CLI-driven CSV export."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path

import pytest

from delimited_writer.cli import EXIT_INPUT_ERROR, EXIT_SUCCESS, main


@pytest.fixture(autouse=True)
def restore_logging() -> None:
    """Undo the root logger changes made by ``main``.

    :return: None
    :rtype: None
    """
    root_logger = logging.getLogger()
    package_logger = logging.getLogger("delimited_writer")
    original_handlers = list(root_logger.handlers)
    original_level = root_logger.level
    original_package_level = package_logger.level

    yield

    for handler in list(root_logger.handlers):
        if handler not in original_handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in original_handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(original_level)
    package_logger.setLevel(original_package_level)


def _write_rows(path: Path, rows: list[list[object]]) -> Path:
    """Write rows as JSON Lines.

    :param path: Destination file.
    :type path: Path
    :param rows: Rows to serialize.
    :type rows: list[list[object]]
    :return: The written path.
    :rtype: Path
    """
    path.write_text(
        "".join(json.dumps(row) + "\n" for row in rows),
        encoding="utf-8",
    )
    return path


def test_cli_exports_then_appends_with_header(tmp_path: Path) -> None:
    """Verify a create run followed by an append run yields one header.

    This exercises the full CLI -> service -> CSV writer -> local filesystem
    path, including buffering smaller than a single line.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :return: None
    :rtype: None
    """
    output_csv = tmp_path / "export.csv"
    first = _write_rows(tmp_path / "first.jsonl", [["a,a", "b,b"], ["plain", 'q"uote']])
    second = _write_rows(tmp_path / "second.jsonl", [["multi\nline", ""]])

    common = ["--output", str(output_csv), "--header", "headA,headB", "--eol", "lf"]

    assert main(["--input", str(first), "--buffer-size", "3", *common]) == EXIT_SUCCESS
    assert main(["--input", str(second), "--append", *common]) == EXIT_SUCCESS

    assert output_csv.read_bytes() == (
        b'headA,headB\n"a,a","b,b"\nplain,"q""uote"\n"multi\nline",\n'
    )

    with output_csv.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))

    assert [row["headA"] for row in rows] == ["a,a", "plain", "multi\nline"]
    assert [row["headB"] for row in rows] == ["b,b", 'q"uote', ""]


def test_cli_custom_dialect_and_encoding(tmp_path: Path) -> None:
    """Verify delimiter, enclosure, CRLF and legacy encoding options.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :return: None
    :rtype: None
    """
    output_csv = tmp_path / "export.csv"
    rows = _write_rows(tmp_path / "rows.jsonl", [["Łódź", "a;b"]])

    exit_code = main(
        [
            "--input",
            str(rows),
            "--output",
            str(output_csv),
            "--delimiter",
            ";",
            "--enclosure",
            "'",
            "--eol",
            "crlf",
            "--encoding",
            "iso-8859-2",
        ]
    )

    assert exit_code == EXIT_SUCCESS
    assert output_csv.read_bytes() == "Łódź;'a;b'\r\n".encode("iso-8859-2")


def test_cli_schema_violation_returns_input_error(tmp_path: Path) -> None:
    """Verify a row with the wrong width fails the run with exit code 2.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :return: None
    :rtype: None
    """
    output_csv = tmp_path / "export.csv"
    rows = _write_rows(tmp_path / "rows.jsonl", [["x", "y"], ["x", "y", "z"]])

    exit_code = main(
        [
            "--input",
            str(rows),
            "--output",
            str(output_csv),
            "--header",
            "a,b",
            "--eol",
            "lf",
        ]
    )

    assert exit_code == EXIT_INPUT_ERROR
    assert output_csv.read_text(encoding="utf-8") == "a,b\nx,y\n"
