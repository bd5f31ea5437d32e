from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .file import File
from .file_stat import Stat, Tristate
from .handle import DEFAULT_FILE_MODE

if TYPE_CHECKING:
    from .session import Session


class FileFactory:
    """Opens remote files as File instances bound to one session."""

    def __init__(self, session: Session):
        self._session = session

    def open(
        self,
        path: str,
        flags: str | int = "r",
        mode: int = DEFAULT_FILE_MODE,
        consumer: Callable[[File], Any] | None = None,
    ) -> Any:
        """
        Open a remote file.

        Args:
            path: Remote file path.
            flags: r, r+, w, w+, a, a+ or x.
            mode: Permissions used if the file has to be created.
            consumer: Optional callable receiving the open file. When given,
                the file is closed once it returns or raises.

        Returns:
            The open File (the caller must close it), or the consumer's
            return value when a consumer is given.
        """
        io = File(self._session, path)
        io.open(flags, mode)

        if consumer is None:
            return io

        try:
            return consumer(io)
        finally:
            io.close()

    def is_directory(self, path: str) -> Tristate:
        """lstat ``path`` and report whether it is a directory."""
        return self._session.lstat(path).is_directory()

    def exists(self, path: str) -> Tristate:
        return self._session.exists(path)

    def realpath(self, path: str) -> str:
        return self._session.realpath(path)

    def stat(self, path: str) -> Stat:
        return self._session.stat(path)

    def lstat(self, path: str) -> Stat:
        return self._session.lstat(path)
