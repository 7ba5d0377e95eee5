"""Application service that converts JSON Lines rows into a CSV file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Iterator, Sequence

from delimited_writer.csv_writer import DelimitedRecordWriter
from delimited_writer.errors import InvalidConfigurationError
from delimited_writer.models import FileMode, WriterOptions

_LOG = logging.getLogger(__name__)


class ExportService:
    """Coordinate reading JSON Lines rows and writing them as CSV."""

    def __init__(
        self,
        writer_factory: Callable[[], DelimitedRecordWriter] | None = None,
    ) -> None:
        """Initialize the service.

        Dependency injection is supported so tests can provide fakes or an
        in-memory filesystem.

        :param writer_factory: Optional callable returning a fresh writer.
        :type writer_factory: Callable[[], DelimitedRecordWriter] | None
        """
        self._writer_factory = (
            writer_factory if writer_factory is not None else DelimitedRecordWriter
        )

    def run(
        self,
        input_file: Path,
        output_csv: Path,
        options: WriterOptions | None = None,
        field_names: Sequence[str] | None = None,
        mode: FileMode | str = FileMode.CREATE,
    ) -> int:
        """Convert ``input_file`` into ``output_csv``.

        :param input_file: JSON Lines file with one JSON array per line.
        :type input_file: Path
        :param output_csv: Output CSV file path.
        :type output_csv: Path
        :param options: Writer settings; defaults are used when omitted.
        :type options: WriterOptions | None
        :param field_names: Optional header names enforcing the column count.
        :type field_names: Sequence[str] | None
        :param mode: ``FileMode.CREATE`` or ``FileMode.APPEND``.
        :type mode: FileMode | str
        :return: Number of rows written.
        :rtype: int
        :raises FileNotFoundError: If the input file does not exist.
        :raises InvalidConfigurationError: If options or input rows are invalid.
        :raises SchemaViolationError: If a row does not match ``field_names``.
        :raises IOFailureError: If the output cannot be written.
        """
        settings = options if options is not None else WriterOptions()

        if not input_file.is_file():
            raise FileNotFoundError(f"Input file does not exist: {input_file}")

        _LOG.info("Exporting rows from %s to %s", input_file, output_csv)

        row_count = 0
        with settings.apply_to(self._writer_factory()) as writer:
            if field_names:
                writer.open_with_field_names(output_csv, field_names, mode)
            else:
                writer.open(output_csv, mode)

            for row in self._iter_rows(input_file):
                writer.write(row)
                row_count += 1

        _LOG.info("Wrote %d row(s) to %s", row_count, output_csv)
        return row_count

    @staticmethod
    def _iter_rows(input_file: Path) -> Iterator[list[object]]:
        """Yield the JSON array stored on each non-blank line.

        :param input_file: JSON Lines file to read.
        :type input_file: Path
        :return: Iterator over decoded rows.
        :rtype: Iterator[list[object]]
        :raises InvalidConfigurationError: If a line is not a JSON array.
        """
        with input_file.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue

                try:
                    row = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise InvalidConfigurationError(
                        f"Line {line_number} of {input_file} is not valid JSON: {exc}"
                    ) from exc

                if not isinstance(row, list):
                    raise InvalidConfigurationError(
                        f"Line {line_number} of {input_file} is not a JSON array."
                    )

                _LOG.debug("Read row %d with %d value(s)", line_number, len(row))
                yield row
