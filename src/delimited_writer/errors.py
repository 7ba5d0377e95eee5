"""Exception hierarchy for the buffered text and delimited record writers."""

from __future__ import annotations

from pathlib import Path


class WriterError(Exception):
    """Base class for every error raised by the writers."""


class InvalidConfigurationError(WriterError, ValueError):
    """Raised for malformed configuration or record-shaped input.

    Always raised before any I/O takes place.
    """


class NotOpenError(WriterError, RuntimeError):
    """Raised when an I/O operation is attempted without an open file."""

    def __init__(self, message: str = "No writable file opened.") -> None:
        super().__init__(message)


class IOFailureError(WriterError, OSError):
    """Raised when the filesystem layer fails to open, lock, write or flush.

    :param message: Human-readable error description.
    :type message: str
    :param path: Path of the file involved, if known.
    :type path: str | Path | None
    """

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        super().__init__(message)
        self.path = str(path) if path is not None else None

    def __str__(self) -> str:
        message = self.args[0] if self.args else ""
        if self.path is None:
            return message
        return f"{message} (path: {self.path})"


class SchemaViolationError(WriterError, ValueError):
    """Raised when a record does not match the active header schema.

    :param expected: Number of fields declared by the header.
    :type expected: int
    :param actual: Number of fields in the rejected record.
    :type actual: int
    """

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Invalid fields count, must be exactly: {expected} (got {actual})."
        )
        self.expected = expected
        self.actual = actual
