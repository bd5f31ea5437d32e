"""
File attributes as reported by an SFTP server.

Decodes the numeric mode bitmask into a file type and permission queries.
Type predicates are tri-state because servers may omit the mode entirely.
"""

from __future__ import annotations

import stat
from dataclasses import dataclass, field
from enum import Enum

import paramiko


class Tristate(Enum):
    """Three-valued answer to a type query: yes, no, or unknown."""

    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"

    def __bool__(self) -> bool:
        if self is Tristate.UNKNOWN:
            raise ValueError("Truth value of Tristate.UNKNOWN is ambiguous")
        return self is Tristate.YES

    @classmethod
    def of(cls, value: bool) -> Tristate:
        return cls.YES if value else cls.NO


class FileType(Enum):
    SOCKET = "socket"
    SYMLINK = "symlink"
    REGULAR = "regular"
    BLOCK_DEVICE = "block_device"
    DIRECTORY = "directory"
    CHAR_DEVICE = "char_device"
    FIFO = "fifo"
    UNKNOWN = "unknown"


_FILE_TYPES = {
    stat.S_IFSOCK: FileType.SOCKET,
    stat.S_IFLNK: FileType.SYMLINK,
    stat.S_IFREG: FileType.REGULAR,
    stat.S_IFBLK: FileType.BLOCK_DEVICE,
    stat.S_IFDIR: FileType.DIRECTORY,
    stat.S_IFCHR: FileType.CHAR_DEVICE,
    stat.S_IFIFO: FileType.FIFO,
}

# (read, write, execute) bits per role, owner first
_ROLE_BITS = (
    (stat.S_IRUSR, stat.S_IWUSR, stat.S_IXUSR),
    (stat.S_IRGRP, stat.S_IWGRP, stat.S_IXGRP),
    (stat.S_IROTH, stat.S_IWOTH, stat.S_IXOTH),
)


@dataclass
class Stat:
    """
    Attributes of a remote file or directory.

    Instances built by the caller (for setstat) never carry a size; the
    size is only known for attributes returned by the server, see
    `from_attributes`.
    """

    mode: int | None = None
    uid: int | None = None
    gid: int | None = None
    atime: int | None = None
    mtime: int | None = None
    _size: int | None = field(default=None, init=False, repr=False, compare=False)

    @classmethod
    def from_attributes(cls, attrs) -> Stat:
        """
        Build a Stat from server attributes.

        Args:
            attrs: Any object exposing ``st_mode``, ``st_size``, ``st_uid``,
                ``st_gid``, ``st_atime`` and ``st_mtime`` (for example
                ``paramiko.SFTPAttributes``). Missing fields become None.

        Returns:
            A populated Stat, including the read-only size.
        """
        obj = cls(
            mode=getattr(attrs, "st_mode", None),
            uid=getattr(attrs, "st_uid", None),
            gid=getattr(attrs, "st_gid", None),
            atime=getattr(attrs, "st_atime", None),
            mtime=getattr(attrs, "st_mtime", None),
        )
        obj._size = getattr(attrs, "st_size", None)
        return obj

    def to_attributes(self) -> paramiko.SFTPAttributes:
        """Convert to paramiko attributes suitable for a setstat request."""
        attrs = paramiko.SFTPAttributes()
        attrs.st_mode = self.mode
        attrs.st_uid = self.uid
        attrs.st_gid = self.gid
        attrs.st_atime = self.atime
        attrs.st_mtime = self.mtime
        return attrs

    @property
    def size(self) -> int | None:
        return self._size

    @property
    def ftype(self) -> FileType:
        if not self.mode:
            return FileType.UNKNOWN
        return _FILE_TYPES.get(stat.S_IFMT(self.mode), FileType.UNKNOWN)

    @property
    def permissions(self) -> int:
        return (self.mode or 0) & 0o7777

    def _is_type(self, ftype: FileType) -> Tristate:
        current = self.ftype
        if current is FileType.UNKNOWN:
            return Tristate.UNKNOWN
        return Tristate.of(current is ftype)

    def is_directory(self) -> Tristate:
        return self._is_type(FileType.DIRECTORY)

    def is_file(self) -> Tristate:
        return self._is_type(FileType.REGULAR)

    def is_symlink(self) -> Tristate:
        return self._is_type(FileType.SYMLINK)

    def is_socket(self) -> Tristate:
        return self._is_type(FileType.SOCKET)

    def is_fifo(self) -> Tristate:
        return self._is_type(FileType.FIFO)

    def is_block_device(self) -> Tristate:
        return self._is_type(FileType.BLOCK_DEVICE)

    def is_char_device(self) -> Tristate:
        return self._is_type(FileType.CHAR_DEVICE)

    def umode(self) -> int:
        """
        Return the permissions as the familiar 3-digit display value.

        Each role contributes one digit (4 read + 2 write + 1 execute) and
        the digits are joined as a decimal literal: rwxr-xr-x gives 755.
        """
        mode = self.mode or 0
        result = 0
        for bits in _ROLE_BITS:
            digit = sum(weight for weight, bit in zip((4, 2, 1), bits) if mode & bit)
            result = result * 10 + digit
        return result

    def _any_role(self, index: int) -> bool:
        mode = self.mode or 0
        return any(mode & bits[index] for bits in _ROLE_BITS)

    def is_readable(self) -> bool:
        return self._any_role(0)

    def is_writable(self) -> bool:
        return self._any_role(1)

    def is_executable(self) -> bool:
        return self._any_role(2)

    def is_zero(self) -> bool:
        return self._size is None or self._size == 0
