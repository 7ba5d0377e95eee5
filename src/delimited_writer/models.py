"""Value types shared by the text and delimited record writers."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Final, Sequence

from delimited_writer.errors import InvalidConfigurationError

if TYPE_CHECKING:
    from delimited_writer.csv_writer import DelimitedRecordWriter

_LOG = logging.getLogger(__name__)

DEFAULT_DELIMITER: Final[str] = ","
DEFAULT_ENCLOSURE: Final[str] = '"'
DEFAULT_ENCODING: Final[str] = "utf-8"

FIELD_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9]+")


class FileMode(str, Enum):
    """How a file is opened for writing."""

    CREATE = "w"
    APPEND = "a"

    @classmethod
    def parse(cls, value: FileMode | str) -> FileMode:
        """Return the member matching ``value``.

        :param value: A ``FileMode`` member or its raw value.
        :type value: FileMode | str
        :return: Matching file mode.
        :rtype: FileMode
        :raises InvalidConfigurationError: If ``value`` is not a known mode.
        """
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidConfigurationError(
                f"Invalid file mode: {value!r}. Use FileMode members."
            ) from exc


class EolSymbol(str, Enum):
    """End-of-line markers accepted by the writers."""

    CRLF = "\r\n"
    LF = "\n"
    CR = "\r"

    @classmethod
    def parse(cls, value: EolSymbol | str) -> EolSymbol:
        """Return the member matching ``value``.

        :param value: An ``EolSymbol`` member or its raw value.
        :type value: EolSymbol | str
        :return: Matching end-of-line symbol.
        :rtype: EolSymbol
        :raises InvalidConfigurationError: If ``value`` is not a known symbol.
        """
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidConfigurationError(
                f"Invalid EOL symbol: {value!r}. Use EolSymbol members."
            ) from exc

    @classmethod
    def platform_default(cls) -> EolSymbol:
        """Return the symbol matching the platform's native line ending."""
        return cls(os.linesep)


def validate_single_character(value: object, label: str) -> str:
    """Return ``value`` if it is a one-character string.

    :param value: Candidate delimiter or enclosure.
    :type value: object
    :param label: Name used in the error message.
    :type label: str
    :return: The validated character.
    :rtype: str
    :raises InvalidConfigurationError: If ``value`` is not exactly one character.
    """
    if not isinstance(value, str) or len(value) != 1:
        raise InvalidConfigurationError(
            f"{label} must be a string, exactly 1 character long. Given: {value!r}."
        )
    return value


@dataclass(frozen=True)
class DelimiterConfig:
    """Delimiter and enclosure characters used to encode records.

    This is instance-level configuration: it survives close/reopen cycles.

    :param delimiter: Field separator.
    :type delimiter: str
    :param enclosure: Quote character wrapped around fields that need it.
    :type enclosure: str
    """

    delimiter: str = DEFAULT_DELIMITER
    enclosure: str = DEFAULT_ENCLOSURE

    def __post_init__(self) -> None:
        """Validate both characters.

        :return: None
        :rtype: None
        :raises InvalidConfigurationError: If either value is not one character.
        """
        validate_single_character(self.delimiter, "Delimiter")
        validate_single_character(self.enclosure, "Enclosure")


@dataclass(frozen=True)
class RecordSchema:
    """Header field names fixed for the lifetime of one open session.

    :param field_names: Ordered, non-empty alphanumeric header names.
    :type field_names: tuple[str, ...]
    """

    field_names: tuple[str, ...]
    field_count: int = field(init=False)

    def __post_init__(self) -> None:
        """Validate the header names and derive the field count.

        :return: None
        :rtype: None
        :raises InvalidConfigurationError: If the names are empty or invalid.
        """
        names = self.field_names
        if isinstance(names, (str, bytes)) or not isinstance(names, Sequence):
            raise InvalidConfigurationError(
                "Field names must be a non-empty sequence of strings."
            )

        names = tuple(names)
        if not names:
            raise InvalidConfigurationError(
                "Field names must be a non-empty sequence of strings."
            )

        for name in names:
            if not isinstance(name, str) or not FIELD_NAME_PATTERN.fullmatch(name):
                raise InvalidConfigurationError(
                    f"Field name must only contain letters and numbers: {name!r}."
                )

        object.__setattr__(self, "field_names", names)
        object.__setattr__(self, "field_count", len(names))
        _LOG.debug("Built record schema with %d field(s)", len(names))


@dataclass(frozen=True)
class WriterOptions:
    """Bundle of writer settings applied in one step.

    :param buffer_size: Accumulator size in bytes; ``0`` writes through.
    :type buffer_size: int
    :param eol_symbol: Line terminator; ``None`` keeps the platform default.
    :type eol_symbol: EolSymbol | str | None
    :param delimiter: Field separator.
    :type delimiter: str
    :param enclosure: Field quote character.
    :type enclosure: str
    :param encoding: Codec used to turn text into output bytes.
    :type encoding: str
    """

    buffer_size: int = 0
    eol_symbol: EolSymbol | str | None = None
    delimiter: str = DEFAULT_DELIMITER
    enclosure: str = DEFAULT_ENCLOSURE
    encoding: str = DEFAULT_ENCODING

    def apply_to(self, writer: DelimitedRecordWriter) -> DelimitedRecordWriter:
        """Configure ``writer`` with these options.

        Validation is delegated to the writer's setters.

        :param writer: Writer to configure.
        :type writer: DelimitedRecordWriter
        :return: The same writer, for chaining.
        :rtype: DelimitedRecordWriter
        :raises InvalidConfigurationError: If any option is invalid.
        """
        writer.set_buffer_size(self.buffer_size)
        writer.set_delimiter(self.delimiter)
        writer.set_enclosure(self.enclosure)
        writer.set_encoding(self.encoding)
        if self.eol_symbol is not None:
            writer.set_eol_symbol(self.eol_symbol)
        return writer
