"""
Transport protocol definition.

Defines the request/response primitives the handle layer needs from an
SFTP connection. ParamikoTransport implements it over paramiko; tests
use an in-memory implementation.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from paramiko.sftp import (
    SFTP_FLAG_APPEND,
    SFTP_FLAG_CREATE,
    SFTP_FLAG_EXCL,
    SFTP_FLAG_READ,
    SFTP_FLAG_TRUNC,
    SFTP_FLAG_WRITE,
)

# Open flags (FXF_*) as sent in an SFTP OPEN request
FXF_READ = SFTP_FLAG_READ
FXF_WRITE = SFTP_FLAG_WRITE
FXF_APPEND = SFTP_FLAG_APPEND
FXF_CREAT = SFTP_FLAG_CREATE
FXF_TRUNC = SFTP_FLAG_TRUNC
FXF_EXCL = SFTP_FLAG_EXCL

# Rename flags understood by servers implementing posix-rename semantics
RENAME_OVERWRITE = 0x1
RENAME_ATOMIC = 0x2
RENAME_NATIVE = 0x4


@runtime_checkable
class Transport(Protocol):
    """Protocol for an established SFTP session.

    Handle ids and attribute objects are opaque to the core: ids are only
    passed back to the transport, attributes are decoded with
    `Stat.from_attributes`. Failures are raised as `SFTPError` subclasses.
    """

    host: str

    def connect(self) -> None:
        """Start the SFTP subsystem on the underlying connection."""
        ...

    def disconnect(self) -> None:
        """Tear the connection down and notify on_close callbacks."""
        ...

    def is_connected(self) -> bool:
        ...

    def is_logged_in(self) -> bool:
        ...

    def on_close(self, callback: Callable[[], None]) -> None:
        """Register a callback invoked once the connection is torn down."""
        ...

    def open_file(self, path: str, flags: int, mode: int) -> Any:
        """Open a regular file.

        Args:
            path: Remote path.
            flags: Bitmask of SFTP ``FXF_*`` open flags.
            mode: Permissions applied if the file has to be created.

        Returns:
            An opaque handle id.
        """
        ...

    def open_dir(self, path: str) -> Any:
        ...

    def read(self, handle_id: Any, offset: int, max_len: int) -> bytes | None:
        """Read up to ``max_len`` bytes at ``offset``; None signals end of file."""
        ...

    def readdir(self, handle_id: Any) -> tuple[str, str, Any] | None:
        """Return the next ``(name, longname, attrs)`` record, or None at the end."""
        ...

    def write(self, handle_id: Any, offset: int, data: bytes) -> int:
        ...

    def close(self, handle_id: Any) -> None:
        ...

    def stat(self, path: str) -> Any:
        ...

    def lstat(self, path: str) -> Any:
        ...

    def fstat(self, handle_id: Any) -> Any:
        ...

    def setstat(self, path: str, attrs: Any) -> None:
        ...

    def mkdir(self, path: str, mode: int) -> None:
        ...

    def rmdir(self, path: str) -> None:
        ...

    def remove(self, path: str) -> None:
        ...

    def rename(self, old_path: str, new_path: str, flags: int) -> None:
        ...

    def symlink(self, target: str, link: str) -> None:
        ...

    def realpath(self, path: str) -> str:
        ...

    def last_error_code(self) -> int:
        ...
