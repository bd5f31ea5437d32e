from dataclasses import dataclass

from .file_stat import Stat, Tristate


@dataclass(frozen=True)
class Entry:
    """One record of a remote directory listing.

    Attributes:
        name: The entry's file name (no directory part).
        longname: The ``ls -l`` style line supplied by the server.
        stats: The entry's attributes.
    """

    name: str
    longname: str
    stats: Stat

    def is_file(self) -> Tristate:
        return self.stats.is_file()

    def is_directory(self) -> Tristate:
        return self.stats.is_directory()

    def __str__(self) -> str:
        return self.name
