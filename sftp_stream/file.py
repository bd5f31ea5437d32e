from __future__ import annotations

import logging
from collections.abc import Iterable

from .handle import DEFAULT_FILE_MODE, Handle

logger = logging.getLogger(__name__)


class File(Handle):
    """
    A handle restricted to regular files, with write support.

    Writes go to the current position and advance it by the number of
    bytes the server accepted.
    """

    def open(self, flags: str | int = "r", mode: int = DEFAULT_FILE_MODE) -> None:
        """
        Open the remote file.

        Args:
            flags: r, r+, w, w+, a, a+ or x (or an FXF_* bitmask).
            mode: Permissions used only if the file has to be created.
        """
        self.open_file(flags, mode)

    def write(self, data: bytes | str) -> int:
        """
        Write ``data`` at the current position.

        Args:
            data: Bytes, or text encoded with the session encoding.

        Returns:
            Number of bytes written.
        """
        if isinstance(data, str):
            data = data.encode(self._session.encoding)
        elif not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"data must be bytes or str, not {type(data).__name__}")
        self._ensure_file()

        written = self._session.transport.write(self._id, max(self._pos, 0), bytes(data))
        self._pos += written
        self._reset_stream()
        logger.debug("Wrote %d bytes to %s", written, self._path)
        return written

    def writelines(self, lines: Iterable[bytes | str]) -> int:
        """Write every item of ``lines``; no separators are added."""
        return sum(self.write(line) for line in lines)
