"""CLI entry point for the delimited writer."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Final, Sequence

from delimited_writer.errors import WriterError
from delimited_writer.logging_config import configure_logging
from delimited_writer.models import (
    DEFAULT_DELIMITER,
    DEFAULT_ENCLOSURE,
    DEFAULT_ENCODING,
    EolSymbol,
    FileMode,
    WriterOptions,
)
from delimited_writer.service import ExportService

_LOG = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNEXPECTED_ERROR = 1
EXIT_INPUT_ERROR = 2

EOL_CHOICES: Final[dict[str, EolSymbol]] = {
    "crlf": EolSymbol.CRLF,
    "lf": EolSymbol.LF,
    "cr": EolSymbol.CR,
}


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser.

    :return: Configured argument parser for the delimited writer CLI.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="delimited-writer",
        description=(
            "Convert a JSON Lines file (one JSON array per line) into a "
            "delimited text file."
        ),
    )
    parser.add_argument(
        "--input",
        required=True,
        metavar="JSONL_FILE",
        help="Input JSON Lines file.",
    )
    parser.add_argument(
        "--output",
        required=True,
        metavar="CSV_FILE",
        help="Output CSV file path.",
    )
    parser.add_argument(
        "--header",
        metavar="NAMES",
        help="Comma-separated alphanumeric field names enforcing the column count.",
    )
    parser.add_argument(
        "--append",
        action="store_true",
        help="Append to the output file; the header is not written again.",
    )
    parser.add_argument(
        "--delimiter",
        default=DEFAULT_DELIMITER,
        help="Field delimiter (one character).",
    )
    parser.add_argument(
        "--enclosure",
        default=DEFAULT_ENCLOSURE,
        help="Field enclosure (one character).",
    )
    parser.add_argument(
        "--eol",
        choices=sorted(EOL_CHOICES),
        help="Line ending; defaults to the platform line ending.",
    )
    parser.add_argument(
        "--buffer-size",
        type=int,
        default=0,
        metavar="BYTES",
        help="Write buffer size in bytes; 0 writes every line through.",
    )
    parser.add_argument(
        "--encoding",
        default=DEFAULT_ENCODING,
        help="Output encoding.",
    )
    parser.add_argument(
        "--log-file",
        metavar="LOG_FILE",
        help="Also write log messages to this file.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser


def _build_options(args: argparse.Namespace) -> WriterOptions:
    """Translate parsed arguments into writer options.

    :param args: Parsed CLI arguments namespace.
    :type args: argparse.Namespace
    :return: Writer options.
    :rtype: WriterOptions
    """
    return WriterOptions(
        buffer_size=args.buffer_size,
        eol_symbol=EOL_CHOICES[args.eol] if args.eol else None,
        delimiter=args.delimiter,
        enclosure=args.enclosure,
        encoding=args.encoding,
    )


def _parse_header(header: str | None) -> list[str] | None:
    """Split the ``--header`` argument into field names.

    :param header: Raw comma-separated names, or ``None``.
    :type header: str | None
    :return: Field names, or ``None`` when no header was given.
    :rtype: list[str] | None
    """
    if header is None:
        return None
    return [name.strip() for name in header.split(",")]


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI workflow.

    This function parses arguments, configures logging, runs the export
    service, and returns a process exit code.

    :param argv: Optional CLI arguments for testing or programmatic execution.
    :type argv: Sequence[str] | None
    :return: Process exit code.
    :rtype: int
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_logging(
        verbose=args.verbose,
        log_file=Path(args.log_file) if args.log_file else None,
    )
    input_path = Path(args.input).expanduser().resolve()
    output_path = Path(args.output).expanduser().resolve()
    mode = FileMode.APPEND if args.append else FileMode.CREATE

    _LOG.debug("Resolved input path: %s", input_path)
    _LOG.debug("Resolved output path: %s", output_path)

    try:
        options = _build_options(args)
        service = ExportService()
        row_count = service.run(
            input_file=input_path,
            output_csv=output_path,
            options=options,
            field_names=_parse_header(args.header),
            mode=mode,
        )
    except (WriterError, FileNotFoundError, PermissionError) as exc:
        _LOG.error("Export failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except Exception as exc:  # pragma: no cover
        _LOG.exception("Unexpected error while exporting rows: %s", exc)
        print("Error: unexpected failure during export.", file=sys.stderr)
        return EXIT_UNEXPECTED_ERROR

    _LOG.info("Export completed successfully. Rows written: %d", row_count)
    print(f"Wrote {row_count} row(s) to {output_path}")
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
