"""
Stateful cursor over one remote path.

A Handle turns the request/response primitives of a Transport (open,
read, readdir, close, fstat) into stream semantics: a position, an EOF
flag, byte and line oriented reads and seek arithmetic. Handles opened in
directory mode are read with `readdir` instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .entry import Entry
from .errors import (
    INVALID_HANDLE,
    NO_CONNECTION,
    OP_UNSUPPORTED,
    HandleNotOpenedError,
    NotConnectedError,
    SFTPError,
    UnsupportedError,
)
from .file_stat import FileType, Stat
from .transport import FXF_APPEND, FXF_CREAT, FXF_EXCL, FXF_READ, FXF_TRUNC, FXF_WRITE

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o644

OPEN_FLAGS = {
    "r": FXF_READ,
    "r+": FXF_READ | FXF_WRITE,
    "w": FXF_WRITE | FXF_CREAT | FXF_TRUNC,
    "w+": FXF_READ | FXF_WRITE | FXF_CREAT | FXF_TRUNC,
    "a": FXF_WRITE | FXF_CREAT | FXF_APPEND,
    "a+": FXF_READ | FXF_WRITE | FXF_CREAT | FXF_APPEND,
    "x": FXF_WRITE | FXF_CREAT | FXF_EXCL,
}


class Whence(IntEnum):
    """Seek reference point; values match os.SEEK_SET/SEEK_CUR/SEEK_END."""

    SET = 0
    CUR = 1
    END = 2


def parse_open_flags(flags: str | int) -> int:
    """
    Translate an fopen-style mode string into SFTP open flags.

    Args:
        flags: One of r, r+, w, w+, a, a+, x (a "b" is ignored), or an
            already encoded integer bitmask.

    Returns:
        Bitmask of FXF_* flags.

    Raises:
        UnsupportedError: If the mode string is not recognized.
    """
    if isinstance(flags, int) and not isinstance(flags, bool):
        return flags
    if not isinstance(flags, str):
        raise TypeError(f"flags must be str or int, not {type(flags).__name__}")
    key = flags.replace("b", "") or "r"
    try:
        return OPEN_FLAGS[key]
    except KeyError:
        raise UnsupportedError(f"Unsupported open flags: {flags!r}", OP_UNSUPPORTED) from None


@runtime_checkable
class RemoteIO(Protocol):
    """Capability set shared by everything that behaves like a remote stream."""

    def close(self) -> None: ...

    def seek(self, offset: int, whence: int = Whence.SET) -> int: ...

    def read(self, size: int | None = None) -> bytes | None: ...

    def gets(self, sep: Any = b"\n", chomp: bool = False) -> bytes | None: ...

    def eof(self) -> bool: ...


class LineIterator:
    """
    Lazy sequence of lines read from a handle.

    Iterating does not rewind: every new iteration continues from the
    handle's position at that moment, so a second pass over an exhausted
    handle yields nothing until the caller seeks.
    """

    def __init__(self, handle: Handle, sep: Any = b"\n", chomp: bool = False):
        self._handle = handle
        self._sep = sep
        self._chomp = chomp

    def __iter__(self) -> Iterator[bytes]:
        while True:
            line = self._handle.gets(self._sep, chomp=self._chomp)
            if line is None:
                return
            yield line


class Handle:
    """
    A remote file or directory handle.

    Created closed and bound to a path. Open it with `open_file`,
    `open_dir` or `open`; afterwards it behaves like a read-only binary
    stream (files) or a record cursor (directories). Usable as a context
    manager, which closes it on exit.
    """

    def __init__(self, session: Session, path: str):
        self._session = session
        self._path = str(path)
        self._id: Any = None
        self._kind: FileType | None = None
        self._pos = 0
        self._eof = False
        self._buffer = bytearray()
        self._drained = False
        self._fetch_at = 0

    def __repr__(self) -> str:
        state = "open" if self._id is not None else "closed"
        return f"<{type(self).__name__} {self._path!r} {state}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.each())

    @property
    def path(self) -> str:
        return self._path

    @property
    def session(self) -> Session:
        return self._session

    # -- state ---------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._id is None or not self._session.connected

    @property
    def is_open(self) -> bool:
        return not self.closed

    def _ensure_open(self) -> None:
        """Raise before any round trip unless the handle can be used."""
        if not self._session.connected:
            raise NotConnectedError("SFTP session not connected", NO_CONNECTION)
        if self._id is None:
            raise HandleNotOpenedError("SFTP handle not opened", INVALID_HANDLE)

    def _ensure_file(self) -> None:
        self._ensure_open()
        if self._kind is FileType.DIRECTORY:
            raise UnsupportedError(
                f"{self._path} is open as a directory, use readdir()", OP_UNSUPPORTED
            )

    def _reset_stream(self) -> None:
        self._buffer.clear()
        self._drained = False
        self._eof = False
        # A negative position reads from the start of the file.
        self._fetch_at = max(self._pos, 0)

    def _opened(self, handle_id: Any, kind: FileType) -> None:
        self._id = handle_id
        self._kind = kind
        self._pos = 0
        self._reset_stream()
        self._session._register(self)
        logger.debug("Opened %s handle for %s", kind.value, self._path)

    def open_file(self, flags: str | int = "r", mode: int = DEFAULT_FILE_MODE) -> None:
        """
        Open the path as a regular file.

        Args:
            flags: fopen-style mode string or FXF_* bitmask.
            mode: Permissions used if the server has to create the file.

        Raises:
            NotConnectedError: If the session is not connected.
            UnsupportedError: If ``flags`` is not a known mode string.
            SFTPError: If the server rejects the request.
        """
        if self._id is not None:
            return
        bits = parse_open_flags(flags)
        transport = self._session._require_transport()
        self._opened(transport.open_file(self._path, bits, mode), FileType.REGULAR)

    def open_dir(self) -> None:
        """Open the path as a directory for `readdir`."""
        if self._id is not None:
            return
        transport = self._session._require_transport()
        self._opened(transport.open_dir(self._path), FileType.DIRECTORY)

    def open(self, flags: str | int = "r", mode: int = DEFAULT_FILE_MODE) -> None:
        """
        Stat the path and open it as a directory or a regular file.

        Costs one extra round trip compared to `open_file` / `open_dir`.

        Raises:
            SFTPError: If the path is neither a directory nor a regular file.
        """
        ftype = self._session.stat(self._path).ftype
        if ftype is FileType.DIRECTORY:
            self.open_dir()
        elif ftype is FileType.REGULAR:
            self.open_file(flags, mode)
        else:
            raise SFTPError(f"Don't know how to open {ftype.value}: {self._path}")

    def close(self) -> None:
        """Close the handle. Idempotent and never raises."""
        handle_id, self._id = self._id, None
        self._kind = None
        self._buffer.clear()
        self._session._unregister(self)
        if handle_id is None:
            return
        try:
            if self._session.connected:
                self._session.transport.close(handle_id)
        except Exception as e:
            logger.debug("Ignoring error while closing %s: %s", self._path, e)
        logger.debug("Closed handle for %s", self._path)

    def _invalidate(self) -> None:
        """Drop the handle id without a round trip; the transport is gone."""
        self._id = None
        self._kind = None
        self._buffer.clear()

    # -- positioning ---------------------------------------------------

    def seek(self, offset: int, whence: int = Whence.SET) -> int:
        """
        Reposition the handle and clear the EOF flag.

        Args:
            offset: Byte offset, may be negative.
            whence: Whence.SET (absolute), Whence.CUR (relative to the
                position) or Whence.END (relative to the remote size, costs
                an fstat round trip).

        Returns:
            The new absolute position. Negative results are kept as is.

        Raises:
            UnsupportedError: For an unknown whence value.
        """
        self._ensure_open()
        if not isinstance(offset, int) or isinstance(offset, bool):
            raise TypeError(f"offset must be an integer, not {type(offset).__name__}")

        if whence == Whence.SET:
            position = offset
        elif whence == Whence.CUR:
            position = self._pos + offset
        elif whence == Whence.END:
            size = self.stat().size
            if size is None:
                raise SFTPError(f"Server did not report a size for {self._path}")
            position = size + offset
        else:
            raise UnsupportedError(f"Unknown seek whence: {whence!r}", OP_UNSUPPORTED)

        self._pos = position
        self._reset_stream()
        return self._pos

    @property
    def pos(self) -> int:
        self._ensure_open()
        return self._pos

    @pos.setter
    def pos(self, value: int) -> None:
        self.seek(value, Whence.END if value < 0 else Whence.SET)

    def tell(self) -> int:
        return self.pos

    def rewind(self) -> int:
        return self.seek(0)

    # -- buffered reading ----------------------------------------------

    def _fill(self, size: int | None = None) -> bool:
        """Fetch the next chunk after the buffer; False once the server hits EOF."""
        if self._drained:
            return False
        max_len = size or self._session.chunk_size
        data = self._session.transport.read(self._id, self._fetch_at, max_len)
        if not data:
            self._drained = True
            return False
        self._buffer += data
        self._fetch_at += len(data)
        return True

    def _consume(self, count: int) -> bytes:
        data = bytes(self._buffer[:count])
        del self._buffer[:count]
        self._pos += len(data)
        if not self._buffer and self._drained:
            self._eof = True
        return data

    def _read_all(self) -> bytes:
        while self._fill():
            pass
        return self._consume(len(self._buffer))

    def read(self, size: int | None = None) -> bytes | None:
        """
        Read ``size`` bytes, or everything up to the end when omitted.

        Fewer bytes than requested are returned if the end of the file is
        reached first. Returns None (not b"") when the EOF flag is already
        set on entry.

        Raises:
            TypeError: If ``size`` is not a non-negative integer.
        """
        if size is not None and (
            not isinstance(size, int) or isinstance(size, bool) or size < 0
        ):
            raise TypeError(f"size must be a non-negative integer, got {size!r}")
        self._ensure_file()
        if self._eof:
            return None
        if size is None:
            return self._read_all()
        if size == 0:
            return b""

        chunk_size = self._session.chunk_size
        while len(self._buffer) < size:
            if not self._fill(min(chunk_size, size - len(self._buffer))):
                break
        data = self._consume(size)
        return data if data else None

    def _separator(self, sep: Any) -> bytes | int | None:
        if sep is None:
            return None
        if isinstance(sep, bool):
            raise TypeError("separator must be bytes, str, int or None, not bool")
        if isinstance(sep, int):
            if sep < 0:
                raise TypeError(f"limit must be a non-negative integer, got {sep}")
            return sep
        if isinstance(sep, str):
            sep = sep.encode(self._session.encoding)
        if not isinstance(sep, (bytes, bytearray)):
            raise TypeError(
                f"separator must be bytes, str, int or None, not {type(sep).__name__}"
            )
        if not sep:
            raise ValueError("separator must not be empty")
        return bytes(sep)

    def gets(self, sep: Any = b"\n", chomp: bool = False) -> bytes | None:
        """
        Read the next chunk delimited by ``sep``.

        Args:
            sep: Separator (bytes or str), None to read everything as one
                unit, or an integer to read at most that many bytes.
            chomp: Strip the trailing separator from the result.

        Returns:
            The chunk including the separator (unless chomped), or None once
            the end of the file has been reached and nothing was read.
        """
        separator = self._separator(sep)
        self._ensure_file()
        if isinstance(separator, int):
            return self.read(separator)
        if self._eof:
            return None
        if separator is None:
            data = self._read_all()
            return data if data else None

        start = 0
        while True:
            index = self._buffer.find(separator, start)
            if index >= 0:
                line = self._consume(index + len(separator))
                break
            start = max(len(self._buffer) - len(separator) + 1, 0)
            if not self._fill():
                line = self._consume(len(self._buffer))
                break

        if not line:
            self._eof = True
            return None
        if chomp and line.endswith(separator):
            line = line[: -len(separator)]
        return line

    def readline(self, sep: Any = b"\n", chomp: bool = False) -> bytes:
        """Like `gets` but raises EOFError instead of returning None."""
        line = self.gets(sep, chomp=chomp)
        if line is None:
            raise EOFError(f"End of file reached: {self._path}")
        return line

    def readlines(self, sep: Any = b"\n", chomp: bool = False) -> list[bytes]:
        lines = []
        while (line := self.gets(sep, chomp=chomp)) is not None:
            lines.append(line)
        return lines

    def getc(self) -> bytes | None:
        return self.read(1)

    def each(
        self,
        chomp: bool = False,
        consumer: Callable[[bytes], Any] | None = None,
        sep: Any = b"\n",
    ) -> LineIterator | None:
        """
        Call ``consumer`` for every remaining line, or return a LineIterator.

        The iterator is lazy and resumes from the current position each
        time it is iterated.
        """
        lines = LineIterator(self, sep, chomp)
        if consumer is None:
            return lines
        for line in lines:
            consumer(line)
        return None

    def eof(self) -> bool:
        """True if no unread bytes remain; may probe the server."""
        self._ensure_file()
        if self._eof:
            return True
        if self._buffer:
            return False
        if not self._fill():
            self._eof = True
        return self._eof

    # -- metadata and directories ---------------------------------------

    def stat(self) -> Stat:
        self._ensure_open()
        return self._session.fstat(self)

    def readdir(self) -> Entry | None:
        """
        Return the next directory entry, or None at the end of the listing.

        Raises:
            UnsupportedError: If the handle was not opened with open_dir.
        """
        self._ensure_open()
        if self._kind is not FileType.DIRECTORY:
            raise UnsupportedError(f"{self._path} is not open as a directory", OP_UNSUPPORTED)
        record = self._session.transport.readdir(self._id)
        if record is None:
            return None
        name, longname, attrs = record
        return Entry(name=name, longname=longname or "", stats=Stat.from_attributes(attrs))
