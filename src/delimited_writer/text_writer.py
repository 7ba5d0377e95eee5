"""Buffered text writer with advisory locking and configurable line endings."""

from __future__ import annotations

import codecs
import logging
from pathlib import Path
from typing import Any

from delimited_writer.errors import (
    InvalidConfigurationError,
    IOFailureError,
    NotOpenError,
)
from delimited_writer.filesystem import FileSystem, LocalFileSystem
from delimited_writer.models import DEFAULT_ENCODING, EolSymbol, FileMode

_LOG = logging.getLogger(__name__)


class BufferedTextWriter:
    """Write text to one file at a time, optionally batching the writes.

    With a buffer size of ``0`` every write goes straight to the file. With a
    positive size, encoded bytes accumulate until the buffer is full and are
    then flushed in one go. Each open session holds an exclusive advisory
    lock on the file until :meth:`close`.

    Use the writer as a context manager to guarantee the file is closed::

        with BufferedTextWriter() as writer:
            writer.open("out.txt")
            writer.writeln("hello")

    :param filesystem: Backend providing the file primitives.
    :type filesystem: FileSystem | None
    :param encoding: Codec used to turn text into bytes.
    :type encoding: str
    """

    def __init__(
        self,
        filesystem: FileSystem | None = None,
        encoding: str = DEFAULT_ENCODING,
    ) -> None:
        self._filesystem: FileSystem = (
            filesystem if filesystem is not None else LocalFileSystem()
        )
        self._encoding = self._validate_encoding(encoding)
        self._buffer_size = 0
        self._eol_symbol: EolSymbol | None = None
        self._handle: Any = None
        self._path: str | None = None
        self._contents = bytearray()

    def __enter__(self) -> BufferedTextWriter:
        return self

    def __exit__(self, exc_type: object, exc: object, traceback: object) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_handle", None) is None:
            return
        path = self._path
        try:
            self.close()
        except OSError as exc:
            _LOG.warning("Failed to close %s during teardown: %s", path, exc)

    def get_buffer_size(self) -> int:
        """Return the buffer size in bytes (``0`` when unbuffered)."""
        return self._buffer_size

    def set_buffer_size(self, buffer_size: int | None) -> BufferedTextWriter:
        """Set the buffer size in bytes.

        ``None`` disables buffering, like ``0``. When a file is open, content
        accumulated under the old size is flushed before the new size applies.

        :param buffer_size: Non-negative size in bytes, or ``None``.
        :type buffer_size: int | None
        :return: This writer.
        :rtype: BufferedTextWriter
        :raises InvalidConfigurationError: If the size is negative or not an int.
        :raises IOFailureError: If the implicit flush fails.
        """
        if buffer_size is None:
            buffer_size = 0

        if (
            isinstance(buffer_size, bool)
            or not isinstance(buffer_size, int)
            or buffer_size < 0
        ):
            raise InvalidConfigurationError(
                "Buffer size must be a non-negative integer or None. "
                f"Given: {buffer_size!r}."
            )

        if self.is_open():
            self.flush()

        self._buffer_size = buffer_size

        if self.is_open():
            self._apply_buffer_size()

        return self

    def get_eol_symbol(self) -> str:
        """Return the end-of-line symbol, defaulting to the platform one."""
        if self._eol_symbol is None:
            return EolSymbol.platform_default().value
        return self._eol_symbol.value

    def set_eol_symbol(self, eol_symbol: EolSymbol | str) -> BufferedTextWriter:
        """Set the end-of-line symbol used by :meth:`writeln`.

        :param eol_symbol: An ``EolSymbol`` member or its raw value.
        :type eol_symbol: EolSymbol | str
        :return: This writer.
        :rtype: BufferedTextWriter
        :raises InvalidConfigurationError: If the symbol is not recognized.
        """
        self._eol_symbol = EolSymbol.parse(eol_symbol)
        return self

    def get_encoding(self) -> str:
        """Return the output codec name."""
        return self._encoding

    def set_encoding(self, encoding: str) -> BufferedTextWriter:
        """Set the codec used for text written after this call.

        :param encoding: Codec name known to :mod:`codecs`.
        :type encoding: str
        :return: This writer.
        :rtype: BufferedTextWriter
        :raises InvalidConfigurationError: If the codec is unknown.
        """
        self._encoding = self._validate_encoding(encoding)
        return self

    def is_open(self) -> bool:
        """Return whether a file session is active."""
        return self._handle is not None

    def open(
        self,
        filename: str | Path,
        mode: FileMode | str = FileMode.CREATE,
    ) -> BufferedTextWriter:
        """Open ``filename`` and lock it exclusively.

        Any file already open on this writer is closed first.

        :param filename: Path of the file to write.
        :type filename: str | Path
        :param mode: ``FileMode.CREATE`` to truncate, ``FileMode.APPEND`` to append.
        :type mode: FileMode | str
        :return: This writer.
        :rtype: BufferedTextWriter
        :raises InvalidConfigurationError: If ``mode`` is not a known mode.
        :raises IOFailureError: If the file cannot be opened or locked.
        """
        file_mode = FileMode.parse(mode)

        self.close()

        try:
            handle = self._filesystem.open(filename, file_mode)
        except OSError as exc:
            raise IOFailureError(
                f"Could not open file: {exc}", path=filename
            ) from exc

        try:
            self._filesystem.lock_exclusive(handle)
        except OSError as exc:
            self._filesystem.close(handle)
            raise IOFailureError(
                f"Could not lock file: {exc}", path=filename
            ) from exc

        self._handle = handle
        self._path = str(filename)
        self._contents = bytearray()

        if self._buffer_size > 0:
            self._apply_buffer_size()

        _LOG.debug(
            "Opened %s (mode=%s, buffer_size=%d)",
            self._path,
            file_mode.name,
            self._buffer_size,
        )
        return self

    def close(self) -> BufferedTextWriter:
        """Flush, unlock and release the open file.

        Does nothing when no file is open. The lock and handle are released
        even if the final flush fails; the flush error is then re-raised,
        taking precedence over any unlock failure.

        :return: This writer.
        :rtype: BufferedTextWriter
        :raises IOFailureError: If the final flush or the unlock fails.
        """
        if not self.is_open():
            return self

        try:
            self.flush()
        except BaseException:
            self._release(suppress_errors=True)
            raise

        self._release()
        return self

    def flush(self) -> BufferedTextWriter:
        """Write accumulated content and sync the file to storage.

        :return: This writer.
        :rtype: BufferedTextWriter
        :raises NotOpenError: If no file is open.
        :raises IOFailureError: If writing or syncing fails.
        """
        self._validate_resource()

        flushed = 0
        try:
            # Bytes accepted by the handle leave the buffer at once, so a
            # retry after a failure only resends the unwritten tail.
            while self._contents:
                written = self._filesystem.write(self._handle, bytes(self._contents))
                if not written:
                    raise OSError("Short write")
                del self._contents[:written]
                flushed += written
            self._filesystem.flush(self._handle)
        except OSError as exc:
            raise IOFailureError(
                f"Could not flush file's internal buffer: {exc}", path=self._path
            ) from exc

        _LOG.debug("Flushed %d byte(s) to %s", flushed, self._path)
        return self

    def write(self, text: str | None = None) -> BufferedTextWriter:
        """Write ``text`` to the open file.

        Empty or ``None`` text is ignored. Text longer than the free buffer
        space is split across as many flushes as needed.

        :param text: Text to write.
        :type text: str | None
        :return: This writer.
        :rtype: BufferedTextWriter
        :raises NotOpenError: If no file is open.
        :raises InvalidConfigurationError: If the text cannot be encoded.
        :raises IOFailureError: If a triggered flush fails.
        """
        self._validate_resource()

        if not text:
            return self

        data = self._encode(text)

        if self._buffer_size == 0:
            self._contents += data
            self.flush()
            return self

        remaining = memoryview(data)
        while remaining:
            free_buffer = self._buffer_size - len(self._contents)
            self._contents += remaining[:free_buffer]
            remaining = remaining[free_buffer:]

            if len(self._contents) >= self._buffer_size:
                self.flush()

        return self

    def writeln(self, text: str | None = None) -> BufferedTextWriter:
        """Write ``text`` followed by the end-of-line symbol.

        :param text: Text to write; ``None`` writes the symbol alone.
        :type text: str | None
        :return: This writer.
        :rtype: BufferedTextWriter
        :raises NotOpenError: If no file is open.
        :raises InvalidConfigurationError: If ``text`` is not a string.
        """
        self._validate_resource()
        if text is not None:
            self._validate_text(text)
        return BufferedTextWriter.write(self, (text or "") + self.get_eol_symbol())

    def _validate_resource(self) -> None:
        if not self.is_open():
            raise NotOpenError()

    def _release(self, suppress_errors: bool = False) -> None:
        """Reset the session, then unlock and close its handle.

        :param suppress_errors: Log unlock failures instead of raising them.
        :type suppress_errors: bool
        :return: None
        :rtype: None
        :raises IOFailureError: If unlocking fails and errors are not suppressed.
        """
        handle = self._handle
        path = self._path
        self._handle = None
        self._path = None
        self._contents = bytearray()

        try:
            self._filesystem.unlock(handle)
        except OSError as exc:
            if not suppress_errors:
                raise IOFailureError(
                    f"Could not unlock file: {exc}", path=path
                ) from exc
            _LOG.warning("Could not unlock %s: %s", path, exc)
        finally:
            self._filesystem.close(handle)
            _LOG.debug("Closed %s", path)

    def _apply_buffer_size(self) -> None:
        try:
            self._filesystem.set_write_buffer_size(self._handle, self._buffer_size)
        except OSError as exc:
            raise IOFailureError(
                f"Could not set write buffer size: {exc}", path=self._path
            ) from exc

    @staticmethod
    def _validate_text(text: object) -> None:
        if not isinstance(text, str):
            raise InvalidConfigurationError(
                f"Text must be a string. Given: {type(text).__name__}."
            )

    def _encode(self, text: str) -> bytes:
        self._validate_text(text)
        try:
            return text.encode(self._encoding)
        except UnicodeEncodeError as exc:
            raise InvalidConfigurationError(
                f"Text cannot be encoded as {self._encoding}: {exc}"
            ) from exc

    @staticmethod
    def _validate_encoding(encoding: str) -> str:
        try:
            codecs.lookup(encoding)
        except (LookupError, TypeError) as exc:
            raise InvalidConfigurationError(
                f"Unknown output encoding: {encoding!r}."
            ) from exc
        return encoding
