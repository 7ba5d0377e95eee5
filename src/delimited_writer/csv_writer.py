"""CSV writer that encodes records on top of the buffered text writer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final, Sequence

from delimited_writer.errors import InvalidConfigurationError, SchemaViolationError
from delimited_writer.filesystem import FileSystem
from delimited_writer.models import (
    DEFAULT_DELIMITER,
    DEFAULT_ENCLOSURE,
    DEFAULT_ENCODING,
    DelimiterConfig,
    FileMode,
    RecordSchema,
)
from delimited_writer.text_writer import BufferedTextWriter

_LOG = logging.getLogger(__name__)

LINE_BREAKS: Final[tuple[str, ...]] = ("\n", "\r")


def encode_field(value: object, delimiter: str, enclosure: str) -> str:
    """Return ``value`` as one CSV field.

    The field is wrapped in ``enclosure`` when it contains the delimiter, the
    enclosure or a line break. Embedded enclosures are doubled.

    :param value: Field value; ``None`` becomes an empty field.
    :type value: object
    :param delimiter: Field separator.
    :type delimiter: str
    :param enclosure: Quote character.
    :type enclosure: str
    :return: Encoded field text.
    :rtype: str
    """
    text = "" if value is None else str(value)

    needs_enclosure = (
        delimiter in text
        or enclosure in text
        or any(line_break in text for line_break in LINE_BREAKS)
    )
    if not needs_enclosure:
        return text

    escaped = text.replace(enclosure, enclosure * 2)
    return f"{enclosure}{escaped}{enclosure}"


def encode_record(
    values: Sequence[object],
    delimiter: str = DEFAULT_DELIMITER,
    enclosure: str = DEFAULT_ENCLOSURE,
) -> str:
    """Return ``values`` as one CSV line without a line terminator.

    A record made of a single empty value is written as two enclosures, so
    it stays distinguishable from an empty record.

    :param values: Field values in column order.
    :type values: Sequence[object]
    :param delimiter: Field separator.
    :type delimiter: str
    :param enclosure: Quote character.
    :type enclosure: str
    :return: Encoded line.
    :rtype: str
    """
    fields = [encode_field(value, delimiter, enclosure) for value in values]
    if fields == [""]:
        return enclosure * 2
    return delimiter.join(fields)


class DelimitedRecordWriter(BufferedTextWriter):
    """Write sequences of values as delimited, quoted lines.

    When opened with :meth:`open_with_field_names`, every record written in
    that session must have exactly as many values as there are field names.
    Delimiter and enclosure outlive sessions; the field names do not.

    :param delimiter: Field separator.
    :type delimiter: str
    :param enclosure: Quote character.
    :type enclosure: str
    :param filesystem: Backend providing the file primitives.
    :type filesystem: FileSystem | None
    :param encoding: Codec used to turn text into bytes.
    :type encoding: str
    """

    def __init__(
        self,
        delimiter: str = DEFAULT_DELIMITER,
        enclosure: str = DEFAULT_ENCLOSURE,
        filesystem: FileSystem | None = None,
        encoding: str = DEFAULT_ENCODING,
    ) -> None:
        self._schema: RecordSchema | None = None
        super().__init__(filesystem=filesystem, encoding=encoding)
        self._config = DelimiterConfig(delimiter=delimiter, enclosure=enclosure)

    def get_delimiter(self) -> str:
        """Return the field separator."""
        return self._config.delimiter

    def set_delimiter(self, delimiter: str) -> DelimitedRecordWriter:
        """Set the field separator for lines written after this call.

        :param delimiter: Exactly one character.
        :type delimiter: str
        :return: This writer.
        :rtype: DelimitedRecordWriter
        :raises InvalidConfigurationError: If ``delimiter`` is not one character.
        """
        self._config = DelimiterConfig(
            delimiter=delimiter, enclosure=self._config.enclosure
        )
        return self

    def get_enclosure(self) -> str:
        """Return the quote character."""
        return self._config.enclosure

    def set_enclosure(self, enclosure: str) -> DelimitedRecordWriter:
        """Set the quote character for lines written after this call.

        :param enclosure: Exactly one character.
        :type enclosure: str
        :return: This writer.
        :rtype: DelimitedRecordWriter
        :raises InvalidConfigurationError: If ``enclosure`` is not one character.
        """
        self._config = DelimiterConfig(
            delimiter=self._config.delimiter, enclosure=enclosure
        )
        return self

    def get_field_names(self) -> tuple[str, ...] | None:
        """Return the active header names, or ``None`` without a schema."""
        if self._schema is None:
            return None
        return self._schema.field_names

    def get_field_names_count(self) -> int:
        """Return the number of header names, or ``0`` without a schema."""
        if self._schema is None:
            return 0
        return self._schema.field_count

    def open_with_field_names(
        self,
        filename: str | Path,
        field_names: Sequence[str],
        mode: FileMode | str = FileMode.CREATE,
    ) -> DelimitedRecordWriter:
        """Open ``filename`` and fix the column layout for this session.

        In ``FileMode.CREATE`` the names are written as the first line. In
        ``FileMode.APPEND`` the header is assumed to be present already and
        is not repeated, but the field count is still enforced.

        :param filename: Path of the CSV file.
        :type filename: str | Path
        :param field_names: Non-empty alphanumeric header names.
        :type field_names: Sequence[str]
        :param mode: File mode.
        :type mode: FileMode | str
        :return: This writer.
        :rtype: DelimitedRecordWriter
        :raises InvalidConfigurationError: If the names or mode are invalid.
        :raises IOFailureError: If the file cannot be opened, locked or written.
        """
        file_mode = FileMode.parse(mode)
        schema = RecordSchema(field_names=field_names)

        self.open(filename, file_mode)

        if file_mode is FileMode.CREATE:
            self.write(schema.field_names)

        self._schema = schema
        _LOG.debug(
            "Opened %s with %d field name(s): %s",
            filename,
            schema.field_count,
            ", ".join(schema.field_names),
        )
        return self

    def close(self) -> DelimitedRecordWriter:
        """Close the file and forget the session's field names.

        :return: This writer.
        :rtype: DelimitedRecordWriter
        :raises IOFailureError: If the final flush fails.
        """
        try:
            super().close()
        finally:
            self._schema = None
        return self

    def write(self, data: Sequence[object] | None = None) -> DelimitedRecordWriter:
        """Write one record as a CSV line.

        :param data: Field values; ``None`` writes an empty record.
        :type data: Sequence[object] | None
        :return: This writer.
        :rtype: DelimitedRecordWriter
        :raises NotOpenError: If no file is open.
        :raises InvalidConfigurationError: If ``data`` is not a sequence.
        :raises SchemaViolationError: If the field count does not match the header.
        :raises IOFailureError: If a triggered flush fails.
        """
        self._validate_resource()

        if data is None:
            data = []

        if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
            raise InvalidConfigurationError(
                "Input data must be a sequence of values or None. "
                f"Given: {type(data).__name__}."
            )

        expected = self.get_field_names_count()
        if expected > 0 and len(data) != expected:
            raise SchemaViolationError(expected=expected, actual=len(data))

        line = encode_record(data, self._config.delimiter, self._config.enclosure)
        super().writeln(line)
        return self

    def writeln(self, data: Sequence[object] | None = None) -> DelimitedRecordWriter:
        """Alias of :meth:`write`; records always end with a line break."""
        return self.write(data)
