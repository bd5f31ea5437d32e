"""
SFTP session facade.

Composes FileFactory and Dir over one Transport and adds one-shot
conveniences (download, upload, read, write) plus pass-through path
operations. Path operations that return a boolean record the SFTP status
code on the session instead of raising; see `last_errno`.
"""

from __future__ import annotations

import logging
import os
import weakref
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any

from . import errors
from .config import TransferConfig
from .dir import Dir
from .errors import NotConnectedError, SFTPError
from .file import File
from .file_factory import FileFactory
from .file_stat import Stat, Tristate
from .handle import Handle
from .transport import Transport

logger = logging.getLogger(__name__)

_MISSING_STATUSES = (errors.NO_SUCH_FILE, errors.NO_SUCH_PATH, errors.INVALID_FILENAME)


class Session:
    """
    SFTP session over an externally managed transport.

    The transport owns the connection; when it is torn down every handle
    opened through this session reports closed.

    Args:
        transport: Object implementing the Transport protocol.
        transfer: Chunk size and default permissions for transfers.
        encoding: Encoding used when text is written or used as a separator.
    """

    def __init__(
        self,
        transport: Transport,
        transfer: TransferConfig | None = None,
        encoding: str = "utf-8",
    ):
        self._transport = transport
        self._transfer = transfer or TransferConfig()
        self._encoding = encoding
        self._handles: weakref.WeakSet[Handle] = weakref.WeakSet()
        self._last_errno = errors.OK

        transport.on_close(self._on_transport_closed)
        if transport.is_logged_in():
            self.connect()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "connected" if self.connected else "closed"
        return f"<Session {self.host} {state}>"

    # -- connection ------------------------------------------------------

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def host(self) -> str:
        return getattr(self._transport, "host", "")

    @property
    def connected(self) -> bool:
        return self._transport.is_connected()

    @property
    def closed(self) -> bool:
        return not self.connected

    @property
    def chunk_size(self) -> int:
        return self._transfer.chunk_size

    @property
    def encoding(self) -> str:
        return self._encoding

    def connect(self) -> None:
        """Start the SFTP subsystem on the transport. No-op if already connected."""
        if not self.connected:
            self._transport.connect()

    def close(self) -> None:
        """Close every open handle, then tear the transport down."""
        for handle in list(self._handles):
            handle.close()
        try:
            self._transport.disconnect()
        finally:
            self._on_transport_closed()

    def _on_transport_closed(self) -> None:
        handles = list(self._handles)
        self._handles.clear()
        for handle in handles:
            handle._invalidate()
        if handles:
            logger.debug("Invalidated %d open handles on %s", len(handles), self.host)

    def _register(self, handle: Handle) -> None:
        self._handles.add(handle)

    def _unregister(self, handle: Handle) -> None:
        self._handles.discard(handle)

    def _require_transport(self) -> Transport:
        if not self.connected:
            raise NotConnectedError("SFTP session not connected", errors.NO_CONNECTION)
        return self._transport

    # -- factories -------------------------------------------------------

    def file(self) -> FileFactory:
        return FileFactory(self)

    def dir(self) -> Dir:
        return Dir(self)

    # -- attributes ------------------------------------------------------

    def stat(self, path: str) -> Stat:
        return Stat.from_attributes(self._require_transport().stat(path))

    def lstat(self, path: str) -> Stat:
        return Stat.from_attributes(self._require_transport().lstat(path))

    def fstat(self, handle: Handle) -> Stat:
        handle._ensure_open()
        return Stat.from_attributes(self._transport.fstat(handle._id))

    def exists(self, path: str) -> Tristate:
        """
        Check whether ``path`` exists on the server.

        Returns:
            YES if it can be stat'ed, NO if the server reports a missing
            file, path or invalid name, UNKNOWN for any other failure.
        """
        try:
            self.stat(path)
        except NotConnectedError:
            raise
        except SFTPError as e:
            self._last_errno = e.code
            return Tristate.NO if e.code in _MISSING_STATUSES else Tristate.UNKNOWN
        self._last_errno = errors.OK
        return Tristate.YES

    def realpath(self, path: str) -> str:
        return self._require_transport().realpath(path)

    # -- boolean path operations -----------------------------------------

    @property
    def last_errno(self) -> int:
        """Status code recorded by the most recent boolean path operation or exists()."""
        return self._last_errno

    def _attempt(self, operation: str, func: Callable[..., Any], *args: Any) -> bool:
        self._require_transport()
        try:
            func(*args)
        except SFTPError as e:
            self._last_errno = e.code
            logger.warning("%s failed with status %d: %s", operation, e.code, e)
            return False
        self._last_errno = errors.OK
        return True

    def setstat(self, path: str, stat: Stat | Any) -> bool:
        attrs = stat.to_attributes() if isinstance(stat, Stat) else stat
        return self._attempt(f"setstat({path})", self._transport.setstat, path, attrs)

    def delete(self, path: str) -> bool:
        return self._attempt(f"delete({path})", self._transport.remove, path)

    def mkdir(self, path: str, mode: int | None = None) -> bool:
        if mode is None:
            mode = self._transfer.dir_mode
        return self._attempt(f"mkdir({path})", self._transport.mkdir, path, mode)

    def rmdir(self, path: str) -> bool:
        return self._attempt(f"rmdir({path})", self._transport.rmdir, path)

    def symlink(self, target: str, link: str) -> bool:
        return self._attempt(f"symlink({target}, {link})", self._transport.symlink, target, link)

    def rename(self, old_path: str, new_path: str, flags: int = 0) -> bool:
        return self._attempt(
            f"rename({old_path}, {new_path})", self._transport.rename, old_path, new_path, flags
        )

    # -- one-shot transfers ----------------------------------------------

    def _copy(self, source: File, target: IO[bytes]) -> int:
        total = 0
        while (chunk := source.read(self.chunk_size)) is not None:
            target.write(chunk)
            total += len(chunk)
        return total

    def download(
        self, remote: str, local: str | os.PathLike | IO[bytes] | None = None
    ) -> bytes | int:
        """
        Download a remote file.

        Args:
            remote: Remote file path.
            local: Local path or binary file object to stream into.

        Returns:
            The number of bytes written to ``local``, or the whole content
            when ``local`` is omitted.
        """
        with self.file().open(remote, "r") as io:
            if local is None:
                return io.read() or b""
            if hasattr(local, "write"):
                total = self._copy(io, local)
            else:
                with Path(local).open("wb") as fh:
                    total = self._copy(io, fh)

        logger.debug("Downloaded %d bytes from %s", total, remote)
        return total

    def upload(
        self, local: str | os.PathLike | IO[bytes], remote: str, mode: int | None = None
    ) -> int:
        """
        Upload a local file, replacing the remote one.

        Args:
            local: Local path or binary file object to read from.
            remote: Remote file path.
            mode: Permissions for the remote file if it is created.

        Returns:
            Number of bytes written.
        """
        if mode is None:
            mode = self._transfer.file_mode

        def _stream(source: IO[bytes]) -> int:
            total = 0
            with self.file().open(remote, "w", mode) as io:
                while chunk := source.read(self.chunk_size):
                    total += io.write(chunk)
            return total

        if hasattr(local, "read"):
            total = _stream(local)
        else:
            with Path(local).open("rb") as fh:
                total = _stream(fh)

        logger.debug("Uploaded %d bytes to %s", total, remote)
        return total

    def read(
        self, path: str, size: int | None = None, offset: int = 0, flags: str = "r"
    ) -> bytes | None:
        """Open ``path``, seek to ``offset`` and read ``size`` bytes (or the rest)."""
        with self.file().open(path, flags) as io:
            if offset:
                io.seek(offset)
            return io.read(size)

    def write(
        self,
        path: str,
        content: bytes | str,
        offset: int | None = 0,
        flags: str | None = None,
    ) -> int:
        """
        Write ``content`` to ``path``.

        The file is opened for update ("r+") when writing at a positive
        offset and truncated ("w") otherwise, unless ``flags`` says
        differently.

        Returns:
            Number of bytes written.
        """
        offset = offset or 0
        flags = flags or ("r+" if offset > 0 else "w")
        with self.file().open(path, flags, self._transfer.file_mode) as io:
            if offset:
                io.seek(offset)
            return io.write(content)
