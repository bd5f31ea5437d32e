"""
Remote directory enumeration.

Listing a directory over SFTP is a multi-stage exchange: open a handle in
directory mode, request records until the server reports the end, close
the handle. Dir wraps that exchange and guarantees the close.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

from .entry import Entry
from .handle import Handle

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


class DirListing:
    """
    Lazy, restartable listing of one remote directory.

    Every iteration opens a fresh directory handle and enumerates from the
    first record. Abandoning an iteration early (break, exception, garbage
    collection of the iterator) closes its handle.
    """

    def __init__(self, session: Session, path: str):
        self._session = session
        self._path = path

    def __iter__(self) -> Iterator[Entry]:
        handle = Handle(self._session, self._path)
        try:
            handle.open_dir()
            while (entry := handle.readdir()) is not None:
                yield entry
        finally:
            handle.close()

    def __repr__(self) -> str:
        return f"<DirListing {self._path!r}>"


class Dir:
    """Directory operations bound to one session."""

    def __init__(self, session: Session):
        self._session = session

    def foreach(
        self, path: str, consumer: Callable[[Entry], Any] | None = None
    ) -> DirListing | None:
        """
        Call ``consumer`` once per entry of ``path``, in server order.

        Args:
            path: Remote directory path.
            consumer: Callable receiving each Entry. Returning ``False``
                stops the enumeration early.

        Returns:
            None when a consumer is given, otherwise a lazy DirListing.

        Raises:
            SFTPError: If the directory cannot be opened or read.
        """
        listing = DirListing(self._session, path)
        if consumer is None:
            return listing

        count = 0
        records = iter(listing)
        try:
            for entry in records:
                count += 1
                if consumer(entry) is False:
                    break
        finally:
            records.close()
        logger.debug("Enumerated %d entries in %s", count, path)
        return None

    each = foreach

    def entries(self, path: str) -> list[Entry]:
        """Return all entries of ``path`` in the order the server sent them."""
        return list(DirListing(self._session, path))

    def names(self, path: str) -> list[str]:
        return [entry.name for entry in DirListing(self._session, path)]
