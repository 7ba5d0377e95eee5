"""Unit tests for the export service layer."""

from __future__ import annotations

from pathlib import Path

import pytest

from delimited_writer.csv_writer import DelimitedRecordWriter
from delimited_writer.errors import InvalidConfigurationError, SchemaViolationError
from delimited_writer.filesystem import MemoryFileSystem
from delimited_writer.models import EolSymbol, FileMode, WriterOptions
from delimited_writer.service import ExportService

OUTPUT_PATH = Path("/virtual/out.csv")
LF_OPTIONS = WriterOptions(eol_symbol=EolSymbol.LF)


def _write_jsonl(path: Path, lines: list[str]) -> Path:
    """Write raw JSON Lines content for a test.

    :param path: Destination file.
    :type path: Path
    :param lines: Lines to write, without terminators.
    :type lines: list[str]
    :return: The written path.
    :rtype: Path
    """
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def filesystem() -> MemoryFileSystem:
    """Provide an empty in-memory filesystem for output.

    :return: Fresh in-memory filesystem.
    :rtype: MemoryFileSystem
    """
    return MemoryFileSystem()


@pytest.fixture
def service(filesystem: MemoryFileSystem) -> ExportService:
    """Provide a service whose writers target the in-memory filesystem.

    :param filesystem: In-memory filesystem fixture.
    :type filesystem: MemoryFileSystem
    :return: Export service.
    :rtype: ExportService
    """
    return ExportService(
        writer_factory=lambda: DelimitedRecordWriter(filesystem=filesystem)
    )


def test_init_defaults_to_real_writer() -> None:
    """Verify the default factory builds a ``DelimitedRecordWriter``.

    :return: None
    :rtype: None
    """
    service = ExportService()

    assert service._writer_factory is DelimitedRecordWriter  # noqa: SLF001


def test_run_writes_rows_and_returns_count(
    tmp_path: Path,
    service: ExportService,
    filesystem: MemoryFileSystem,
) -> None:
    """Verify each JSON array becomes one CSV line.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :param service: Service fixture.
    :type service: ExportService
    :param filesystem: In-memory filesystem fixture.
    :type filesystem: MemoryFileSystem
    :return: None
    :rtype: None
    """
    input_file = _write_jsonl(
        tmp_path / "rows.jsonl",
        ['["a,a", "b"]', "", '[1, null, true]'],
    )

    count = service.run(input_file, OUTPUT_PATH, LF_OPTIONS)

    assert count == 2
    assert filesystem.read_text(OUTPUT_PATH) == '"a,a",b\n1,,True\n'


def test_run_with_field_names_writes_header(
    tmp_path: Path,
    service: ExportService,
    filesystem: MemoryFileSystem,
) -> None:
    """Verify the header is written first in create mode.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :param service: Service fixture.
    :type service: ExportService
    :param filesystem: In-memory filesystem fixture.
    :type filesystem: MemoryFileSystem
    :return: None
    :rtype: None
    """
    input_file = _write_jsonl(tmp_path / "rows.jsonl", ['["x", "y"]'])

    service.run(input_file, OUTPUT_PATH, LF_OPTIONS, field_names=["colA", "colB"])

    assert filesystem.read_text(OUTPUT_PATH) == "colA,colB\nx,y\n"


def test_run_append_mode_skips_header(tmp_path: Path) -> None:
    """Verify append mode adds rows after existing content.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :return: None
    :rtype: None
    """
    filesystem = MemoryFileSystem(files={str(OUTPUT_PATH): b"colA,colB\nx,y\n"})
    service = ExportService(
        writer_factory=lambda: DelimitedRecordWriter(filesystem=filesystem)
    )
    input_file = _write_jsonl(tmp_path / "rows.jsonl", ['["z", "w"]'])

    service.run(
        input_file,
        OUTPUT_PATH,
        LF_OPTIONS,
        field_names=["colA", "colB"],
        mode=FileMode.APPEND,
    )

    assert filesystem.read_text(OUTPUT_PATH) == "colA,colB\nx,y\nz,w\n"


def test_run_schema_violation_keeps_earlier_rows(
    tmp_path: Path,
    service: ExportService,
    filesystem: MemoryFileSystem,
) -> None:
    """Verify a bad row stops the export and the file is still closed.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :param service: Service fixture.
    :type service: ExportService
    :param filesystem: In-memory filesystem fixture.
    :type filesystem: MemoryFileSystem
    :return: None
    :rtype: None
    """
    input_file = _write_jsonl(tmp_path / "rows.jsonl", ['["x", "y"]', '["only"]'])
    options = WriterOptions(buffer_size=1024, eol_symbol=EolSymbol.LF)

    with pytest.raises(SchemaViolationError):
        service.run(input_file, OUTPUT_PATH, options, field_names=["a", "b"])

    assert filesystem.read_text(OUTPUT_PATH) == "a,b\nx,y\n"
    assert filesystem.open_handles == []


@pytest.mark.parametrize(
    ("line", "message"),
    [("not json", "not valid JSON"), ('{"a": 1}', "not a JSON array")],
)
def test_run_rejects_bad_lines(
    tmp_path: Path,
    service: ExportService,
    line: str,
    message: str,
) -> None:
    """Verify malformed input lines are reported with their line number.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :param service: Service fixture.
    :type service: ExportService
    :param line: Offending input line.
    :type line: str
    :param message: Expected error fragment.
    :type message: str
    :return: None
    :rtype: None
    """
    input_file = _write_jsonl(tmp_path / "rows.jsonl", ['["ok"]', line])

    with pytest.raises(InvalidConfigurationError, match=f"Line 2 .*{message}"):
        service.run(input_file, OUTPUT_PATH, LF_OPTIONS)


def test_run_missing_input_raises(tmp_path: Path, service: ExportService) -> None:
    """Verify a missing input file is reported before any output is opened.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :param service: Service fixture.
    :type service: ExportService
    :return: None
    :rtype: None
    """
    with pytest.raises(FileNotFoundError, match="Input file does not exist"):
        service.run(tmp_path / "missing.jsonl", OUTPUT_PATH)


def test_run_logs_summary(
    tmp_path: Path,
    service: ExportService,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Verify the export logs a row count at INFO level.

    :param tmp_path: Pytest temporary directory fixture.
    :type tmp_path: Path
    :param service: Service fixture.
    :type service: ExportService
    :param caplog: Pytest log capture fixture.
    :type caplog: pytest.LogCaptureFixture
    :return: None
    :rtype: None
    """
    input_file = _write_jsonl(tmp_path / "rows.jsonl", ['["a"]', '["b"]'])

    with caplog.at_level("INFO"):
        service.run(input_file, OUTPUT_PATH, LF_OPTIONS)

    assert "Wrote 2 row(s)" in caplog.text
