"""Filesystem backends used by the buffered text writer.

The writers never touch a path directly. Every open, lock, write, flush and
close goes through a :class:`FileSystem` implementation, so tests and dry
runs can swap the local disk for :class:`MemoryFileSystem`.

Backends report failures by raising :class:`OSError`; the writers translate
those into :class:`~delimited_writer.errors.IOFailureError`.
"""

from __future__ import annotations

import fcntl
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Protocol, runtime_checkable

from delimited_writer.models import FileMode

_LOG = logging.getLogger(__name__)


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for the file primitives consumed by the writers."""

    def open(self, path: str | Path, mode: FileMode) -> Any:
        """Open ``path`` for binary writing and return an opaque handle."""
        ...

    def lock_exclusive(self, handle: Any) -> None:
        """Acquire an exclusive advisory lock on ``handle``."""
        ...

    def write(self, handle: Any, data: bytes) -> int:
        """Write ``data`` to ``handle`` and return how many bytes were accepted.

        Fewer than ``len(data)`` bytes may be accepted; callers resend the rest.
        """
        ...

    def flush(self, handle: Any) -> None:
        """Push ``handle`` contents to stable storage."""
        ...

    def unlock(self, handle: Any) -> None:
        """Release the advisory lock held on ``handle``."""
        ...

    def close(self, handle: Any) -> None:
        """Release ``handle``."""
        ...

    def set_write_buffer_size(self, handle: Any, size: int) -> None:
        """Apply a write buffer size to ``handle``."""
        ...


class LocalFileSystem:
    """Local disk backend using unbuffered binary files and ``fcntl.flock``.

    Handles are opened without a Python-level buffer, so the writer's own
    accumulator is the only buffering layer between callers and the kernel.

    :param blocking_lock: Wait for a contended lock instead of failing fast.
    :type blocking_lock: bool
    """

    def __init__(self, blocking_lock: bool = True) -> None:
        self._blocking_lock = blocking_lock

    def open(self, path: str | Path, mode: FileMode) -> IO[bytes]:
        handle = open(path, f"{FileMode.parse(mode).value}b", buffering=0)
        _LOG.debug("Opened %s in mode %r", path, mode)
        return handle

    def lock_exclusive(self, handle: IO[bytes]) -> None:
        operation = fcntl.LOCK_EX
        if not self._blocking_lock:
            operation |= fcntl.LOCK_NB
        fcntl.flock(handle.fileno(), operation)
        _LOG.debug("Acquired exclusive lock on %s", handle.name)

    def write(self, handle: IO[bytes], data: bytes) -> int:
        # Raw files may accept fewer bytes than requested.
        written = handle.write(data)
        if not written:
            raise OSError(f"Short write to {handle.name}")
        return written

    def flush(self, handle: IO[bytes]) -> None:
        handle.flush()
        os.fsync(handle.fileno())

    def unlock(self, handle: IO[bytes]) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        _LOG.debug("Released lock on %s", handle.name)

    def close(self, handle: IO[bytes]) -> None:
        handle.close()

    def set_write_buffer_size(self, handle: IO[bytes], size: int) -> None:
        _LOG.debug(
            "Handle %s is unbuffered; writer accumulates %d byte(s) itself",
            handle.name,
            size,
        )


@dataclass(eq=False)
class MemoryHandle:
    """Open handle onto a :class:`MemoryFileSystem` file.

    :param path: Normalized path of the file.
    :type path: str
    :param pending: Bytes written but not yet flushed into the file.
    :type pending: bytearray
    """

    path: str
    pending: bytearray = field(default_factory=bytearray)
    locked: bool = False
    closed: bool = False
    write_buffer_size: int | None = None


class MemoryFileSystem:
    """In-memory backend that keeps file contents in a dictionary.

    Written bytes stay on the handle until :meth:`flush`, mirroring a real
    file's userspace buffer, so tests can observe exactly what reached
    "disk" at each step.
    """

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytearray] = {
            key: bytearray(value) for key, value in (files or {}).items()
        }
        self._locked_paths: set[str] = set()
        self.open_handles: list[MemoryHandle] = []

    def read(self, path: str | Path) -> bytes:
        """Return the flushed contents of ``path``.

        :param path: File path.
        :type path: str | Path
        :return: File contents.
        :rtype: bytes
        :raises FileNotFoundError: If the file does not exist.
        """
        key = str(path)
        if key not in self.files:
            raise FileNotFoundError(f"No such file: {key}")
        return bytes(self.files[key])

    def read_text(self, path: str | Path, encoding: str = "utf-8") -> str:
        """Return the flushed contents of ``path`` decoded as text."""
        return self.read(path).decode(encoding)

    def open(self, path: str | Path, mode: FileMode) -> MemoryHandle:
        key = str(path)
        if FileMode.parse(mode) is FileMode.CREATE or key not in self.files:
            self.files[key] = bytearray()
        handle = MemoryHandle(path=key)
        self.open_handles.append(handle)
        return handle

    def lock_exclusive(self, handle: MemoryHandle) -> None:
        if handle.path in self._locked_paths:
            raise BlockingIOError(f"File is already locked: {handle.path}")
        self._locked_paths.add(handle.path)
        handle.locked = True

    def write(self, handle: MemoryHandle, data: bytes) -> int:
        if handle.closed:
            raise OSError("I/O operation on closed handle.")
        handle.pending.extend(data)
        return len(data)

    def flush(self, handle: MemoryHandle) -> None:
        self.files[handle.path].extend(handle.pending)
        handle.pending.clear()

    def unlock(self, handle: MemoryHandle) -> None:
        if handle.locked:
            self._locked_paths.discard(handle.path)
            handle.locked = False

    def close(self, handle: MemoryHandle) -> None:
        handle.closed = True
        if handle in self.open_handles:
            self.open_handles.remove(handle)

    def set_write_buffer_size(self, handle: MemoryHandle, size: int) -> None:
        handle.write_buffer_size = size
