"""
Shared pytest fixtures for sftp-stream tests.

FakeTransport is an in-memory SFTP server implementing the Transport
protocol; it keeps a flat path -> node map and records every request so
tests can assert on round trips.
"""

import posixpath
import stat
from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path

import paramiko
import pytest

from sftp_stream import errors
from sftp_stream.config import TransferConfig
from sftp_stream.errors import error_for_status
from sftp_stream.session import Session
from sftp_stream.transport import (
    FXF_APPEND,
    FXF_CREAT,
    FXF_EXCL,
    FXF_READ,
    FXF_TRUNC,
    FXF_WRITE,
    RENAME_OVERWRITE,
)

MTIME = 1718447400  # 2024-06-15 10:30 UTC


@dataclass
class FakeNode:
    mode: int
    data: bytearray = field(default_factory=bytearray)
    uid: int = 1000
    gid: int = 1000
    atime: int = MTIME
    mtime: int = MTIME
    target: str | None = None


@dataclass
class FakeOpenFile:
    path: str
    flags: int


@dataclass
class FakeOpenDir:
    path: str
    names: list[str]
    index: int = 0


class FakeTransport:
    """In-memory Transport. Paths are absolute and POSIX style."""

    def __init__(self, host: str = "fake.sftp.local", max_read: int | None = None):
        self.host = host
        self.max_read = max_read
        self.nodes: dict[str, FakeNode] = {"/": FakeNode(mode=stat.S_IFDIR | 0o755)}
        self.handles: dict[str, FakeOpenFile | FakeOpenDir] = {}
        self.calls: list[tuple] = []
        self.failures: dict[str, int] = {}
        self.logged_in = True
        self._connected = False
        self._callbacks = []
        self._next_handle = 0
        self._last_code = errors.OK

    # -- tree setup ------------------------------------------------------

    def add_dir(self, path: str, mode: int = 0o755) -> None:
        self.nodes[path] = FakeNode(mode=stat.S_IFDIR | mode)

    def add_file(self, path: str, data: bytes = b"", mode: int = 0o644) -> None:
        self.nodes[path] = FakeNode(mode=stat.S_IFREG | mode, data=bytearray(data))

    def add_symlink(self, path: str, target: str) -> None:
        self.nodes[path] = FakeNode(mode=stat.S_IFLNK | 0o777, target=target)

    def content(self, path: str) -> bytes:
        return bytes(self.nodes[path].data)

    def children(self, path: str) -> list[str]:
        return [
            posixpath.basename(p)
            for p in self.nodes
            if p != "/" and posixpath.dirname(p) == path
        ]

    def ops(self) -> list[str]:
        return [call[0] for call in self.calls]

    def drop(self) -> None:
        """Simulate the server going away."""
        self._connected = False
        self.handles.clear()
        for callback in self._callbacks:
            callback()

    # -- helpers ---------------------------------------------------------

    def _request(self, op: str, *args) -> None:
        self.calls.append((op, *args))
        if not self._connected:
            self._fail(errors.NO_CONNECTION, f"{op}: not connected")
        if op in self.failures:
            self._fail(self.failures[op], f"{op} failed")
        self._last_code = errors.OK

    def _fail(self, code: int, message: str):
        self._last_code = code
        raise error_for_status(code, message)

    def _node(self, path: str, follow: bool = True) -> FakeNode:
        node = self.nodes.get(path)
        if node is None:
            self._fail(errors.NO_SUCH_FILE, f"No such file: {path}")
        if follow and node.target is not None:
            return self._node(posixpath.normpath(posixpath.join(posixpath.dirname(path), node.target)))
        return node

    def _attrs(self, node: FakeNode, filename: str = "") -> paramiko.SFTPAttributes:
        attrs = paramiko.SFTPAttributes()
        attrs.filename = filename
        attrs.st_mode = node.mode
        attrs.st_size = len(node.data) if stat.S_ISREG(node.mode) else 0
        attrs.st_uid = node.uid
        attrs.st_gid = node.gid
        attrs.st_atime = node.atime
        attrs.st_mtime = node.mtime
        return attrs

    def _handle(self, handle_id: str):
        if handle_id not in self.handles:
            self._fail(errors.INVALID_HANDLE, f"Invalid handle: {handle_id}")
        return self.handles[handle_id]

    def _new_handle(self, record) -> str:
        self._next_handle += 1
        handle_id = f"h{self._next_handle}"
        self.handles[handle_id] = record
        return handle_id

    def _require_parent(self, path: str) -> None:
        parent = self.nodes.get(posixpath.dirname(path))
        if parent is None or not stat.S_ISDIR(parent.mode):
            self._fail(errors.NO_SUCH_PATH, f"No such path: {posixpath.dirname(path)}")

    # -- connection ------------------------------------------------------

    def connect(self) -> None:
        self.calls.append(("connect",))
        self._connected = True

    def disconnect(self) -> None:
        self.calls.append(("disconnect",))
        self.drop()

    def is_connected(self) -> bool:
        return self._connected

    def is_logged_in(self) -> bool:
        return self.logged_in

    def on_close(self, callback) -> None:
        self._callbacks.append(callback)

    def last_error_code(self) -> int:
        return self._last_code

    # -- handles ---------------------------------------------------------

    def open_file(self, path: str, flags: int, mode: int) -> str:
        self._request("open_file", path, flags, mode)
        node = self.nodes.get(path)
        if node is None:
            if not flags & FXF_CREAT:
                self._fail(errors.NO_SUCH_FILE, f"No such file: {path}")
            self._require_parent(path)
            node = self.nodes[path] = FakeNode(mode=stat.S_IFREG | mode)
        elif flags & FXF_CREAT and flags & FXF_EXCL:
            self._fail(errors.FILE_ALREADY_EXISTS, f"File exists: {path}")
        else:
            node = self._node(path)
        if stat.S_ISDIR(node.mode):
            self._fail(errors.FAILURE, f"Is a directory: {path}")
        if flags & FXF_TRUNC:
            node.data.clear()
        return self._new_handle(FakeOpenFile(path, flags))

    def open_dir(self, path: str) -> str:
        self._request("open_dir", path)
        node = self._node(path)
        if not stat.S_ISDIR(node.mode):
            self._fail(errors.NOT_A_DIRECTORY, f"Not a directory: {path}")
        return self._new_handle(FakeOpenDir(path, self.children(path)))

    def read(self, handle_id: str, offset: int, max_len: int) -> bytes | None:
        self._request("read", handle_id, offset, max_len)
        record = self._handle(handle_id)
        if not isinstance(record, FakeOpenFile) or not record.flags & FXF_READ:
            self._fail(errors.PERMISSION_DENIED, "Handle not open for reading")
        if self.max_read is not None:
            max_len = min(max_len, self.max_read)
        data = bytes(self._node(record.path).data[offset : offset + max_len])
        return data or None

    def readdir(self, handle_id: str):
        self._request("readdir", handle_id)
        record = self._handle(handle_id)
        if record.index >= len(record.names):
            return None
        name = record.names[record.index]
        record.index += 1
        path = posixpath.join(record.path, name)
        node = self.nodes[path]
        longname = f"{stat.filemode(node.mode)} 1 user group {len(node.data)} Jun 15 10:30 {name}"
        return name, longname, self._attrs(node, name)

    def write(self, handle_id: str, offset: int, data: bytes) -> int:
        self._request("write", handle_id, offset, len(data))
        record = self._handle(handle_id)
        if not isinstance(record, FakeOpenFile) or not record.flags & FXF_WRITE:
            self._fail(errors.PERMISSION_DENIED, "Handle not open for writing")
        buffer = self._node(record.path).data
        if record.flags & FXF_APPEND:
            offset = len(buffer)
        if offset > len(buffer):
            buffer.extend(b"\x00" * (offset - len(buffer)))
        buffer[offset : offset + len(data)] = data
        return len(data)

    def close(self, handle_id: str) -> None:
        self._request("close", handle_id)
        self._handle(handle_id)
        del self.handles[handle_id]

    # -- attributes ------------------------------------------------------

    def stat(self, path: str) -> paramiko.SFTPAttributes:
        self._request("stat", path)
        return self._attrs(self._node(path), posixpath.basename(path))

    def lstat(self, path: str) -> paramiko.SFTPAttributes:
        self._request("lstat", path)
        return self._attrs(self._node(path, follow=False), posixpath.basename(path))

    def fstat(self, handle_id: str) -> paramiko.SFTPAttributes:
        self._request("fstat", handle_id)
        record = self._handle(handle_id)
        return self._attrs(self._node(record.path), posixpath.basename(record.path))

    def setstat(self, path: str, attrs) -> None:
        self._request("setstat", path)
        node = self._node(path)
        if attrs.st_mode is not None:
            node.mode = stat.S_IFMT(node.mode) | stat.S_IMODE(attrs.st_mode)
        if attrs.st_uid is not None:
            node.uid = attrs.st_uid
        if attrs.st_gid is not None:
            node.gid = attrs.st_gid
        if attrs.st_atime is not None:
            node.atime = attrs.st_atime
        if attrs.st_mtime is not None:
            node.mtime = attrs.st_mtime
        if attrs.st_size is not None:
            del node.data[attrs.st_size :]

    # -- path operations -------------------------------------------------

    def mkdir(self, path: str, mode: int) -> None:
        self._request("mkdir", path, mode)
        if path in self.nodes:
            self._fail(errors.FILE_ALREADY_EXISTS, f"File exists: {path}")
        self._require_parent(path)
        self.add_dir(path, mode)

    def rmdir(self, path: str) -> None:
        self._request("rmdir", path)
        node = self._node(path, follow=False)
        if not stat.S_ISDIR(node.mode):
            self._fail(errors.NOT_A_DIRECTORY, f"Not a directory: {path}")
        if self.children(path):
            self._fail(errors.DIR_NOT_EMPTY, f"Directory not empty: {path}")
        del self.nodes[path]

    def remove(self, path: str) -> None:
        self._request("remove", path)
        node = self._node(path, follow=False)
        if stat.S_ISDIR(node.mode):
            self._fail(errors.FAILURE, f"Is a directory: {path}")
        del self.nodes[path]

    def rename(self, old_path: str, new_path: str, flags: int) -> None:
        self._request("rename", old_path, new_path, flags)
        self._node(old_path, follow=False)
        if new_path in self.nodes and not flags & RENAME_OVERWRITE:
            self._fail(errors.FILE_ALREADY_EXISTS, f"File exists: {new_path}")
        self._require_parent(new_path)
        for path in [p for p in self.nodes if p == old_path or p.startswith(old_path + "/")]:
            self.nodes[new_path + path[len(old_path) :]] = self.nodes.pop(path)

    def symlink(self, target: str, link: str) -> None:
        self._request("symlink", target, link)
        if link in self.nodes:
            self._fail(errors.FILE_ALREADY_EXISTS, f"File exists: {link}")
        self._require_parent(link)
        self.add_symlink(link, target)

    def realpath(self, path: str) -> str:
        self._request("realpath", path)
        resolved = posixpath.normpath(posixpath.join("/home/user", path))
        self._node(resolved)
        return resolved


HELLO = b"hello\nworld\nthird line\n"


@pytest.fixture
def transport() -> FakeTransport:
    """
    Fake server with a small tree:

        /home/user/hello.txt   three newline-terminated lines
        /home/user/empty.txt
        /home/user/docs/       empty directory
        /home/user/link        symlink to hello.txt
    """
    fake = FakeTransport()
    fake.add_dir("/home")
    fake.add_dir("/home/user")
    fake.add_file("/home/user/hello.txt", HELLO)
    fake.add_file("/home/user/empty.txt")
    fake.add_dir("/home/user/docs")
    fake.add_symlink("/home/user/link", "hello.txt")
    return fake


@pytest.fixture
def session(transport: FakeTransport) -> Generator[Session, None, None]:
    """
    Session over the fake transport.

    A 4 byte chunk size makes every read span several round trips.
    """
    yield Session(transport, TransferConfig(chunk_size=4))


@pytest.fixture
def tmp_config_file(tmp_path: Path) -> Path:
    """Creates a temporary INI configuration file for config tests."""
    config_content = """[ssh]
host = testserver.local
port = 2222
username = testuser
password = testpass
use_agent = false
encoding = latin-1

[connection]
timeout_seconds = 45
keepalive_interval_seconds = 90

[transfer]
chunk_size = 65536
file_mode = 600
dir_mode = 0700

[logging]
level = DEBUG
file = test.log
console = false
"""
    config_path = tmp_path / "test_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    return config_path

