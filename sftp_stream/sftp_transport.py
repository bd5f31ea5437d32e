"""
Transport implementation over paramiko's SSH/SFTP client.

Adapts paramiko.SFTPClient to the request/response primitives of the
Transport protocol: handle ids are paramiko SFTPFile objects for files and
buffered listings for directories, and paramiko's IOError/EOFError
failures are translated into typed SFTP errors.
"""

import errno
import logging
import os
import stat
import threading
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import paramiko
from paramiko.sftp import SFTP_DESC

from . import errors
from .config import ConnectionConfig, SSHConfig, TransferConfig
from .errors import NotConnectedError, SFTPError, UnsupportedError, error_for_status
from .session import Session
from .transport import (
    FXF_APPEND,
    FXF_CREAT,
    FXF_EXCL,
    FXF_READ,
    FXF_TRUNC,
    FXF_WRITE,
    RENAME_OVERWRITE,
)

logger = logging.getLogger(__name__)

_ERRNO_STATUS = {
    errno.ENOENT: errors.NO_SUCH_FILE,
    errno.EACCES: errors.PERMISSION_DENIED,
}


class TrustOnFirstUsePolicy(paramiko.MissingHostKeyPolicy):
    """
    Trust-on-first-use host key policy (same model as OpenSSH).

    - Unknown host: accept and save key to ~/.ssh/known_hosts
    - Known host, same key: accept
    - Known host, CHANGED key: reject (possible MITM attack)
    """

    def __init__(self):
        self._known_hosts_path = Path.home() / ".ssh" / "known_hosts"

    def missing_host_key(self, client, hostname, key):
        host_keys = client.get_host_keys()
        existing = host_keys.lookup(hostname)

        if existing is not None:
            existing_key = existing.get(key.get_name())
            if existing_key is not None and existing_key != key:
                raise paramiko.SSHException(
                    f"Host key for {hostname} has CHANGED. "
                    f"This could indicate a man-in-the-middle attack. "
                    f"If the server key was legitimately changed, remove the old "
                    f"entry from {self._known_hosts_path} and try again."
                )

        logger.info("Adding host key for %s to known_hosts", hostname)
        host_keys.add(hostname, key.get_name(), key)

        try:
            self._known_hosts_path.parent.mkdir(parents=True, exist_ok=True)
            host_keys.save(str(self._known_hosts_path))
        except OSError as e:
            logger.warning("Could not save known_hosts: %s", e)


class _DirCursor:
    """Directory handle: the listing is fetched on open and handed out one record at a time."""

    def __init__(self, path: str, records: list[paramiko.SFTPAttributes]):
        self.path = path
        self.records = deque(records)


def status_for(error: BaseException) -> int:
    """
    Map a paramiko failure to an SFTP status code.

    paramiko raises IOError with an errno for NO_SUCH_FILE and
    PERMISSION_DENIED, EOFError for EOF, and IOError carrying only the
    server's message for every other status.
    """
    if isinstance(error, SFTPError):
        return error.code
    if isinstance(error, EOFError):
        return errors.EOF
    if isinstance(error, paramiko.SSHException):
        return errors.CONNECTION_LOST
    if isinstance(error, (ConnectionError, TimeoutError)):
        return errors.CONNECTION_LOST
    if isinstance(error, OSError):
        if error.errno in _ERRNO_STATUS:
            return _ERRNO_STATUS[error.errno]
        message = str(error)
        if message in SFTP_DESC:
            return SFTP_DESC.index(message)
    return errors.FAILURE


def open_mode(flags: int, exists: bool = False) -> str:
    """
    Translate FXF_* open flags into the mode string paramiko's open() expects.

    ``exists`` tells whether the file is already on the server: CREAT
    without TRUNC must keep the content of an existing file.
    """
    readable = bool(flags & FXF_READ)
    if not flags & FXF_WRITE:
        return "rb"
    # paramiko only opens for writing when the mode has w, a or +
    if flags & FXF_EXCL:
        base = "wx"
    elif flags & FXF_APPEND:
        base = "a"
    elif flags & FXF_TRUNC or (flags & FXF_CREAT and not exists):
        base = "w"
    else:
        return "r+b"
    return base + ("+" if readable else "") + "b"


class ParamikoTransport:
    """
    SFTP transport backed by a paramiko SSH connection.

    Requests are serialized with a lock so one transport can be shared by
    handles used from several threads. There is no retry logic: a dropped
    connection is reported as ConnectionLostError and every registered
    on_close callback is invoked.
    """

    def __init__(self, ssh_config: SSHConfig, conn_config: ConnectionConfig | None = None):
        self.ssh_config = ssh_config
        self.conn_config = conn_config or ConnectionConfig()
        self.host = ssh_config.host
        self._ssh: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None
        self._lock = threading.Lock()
        self._connected = False
        self._callbacks: list[Callable[[], None]] = []
        self._last_error = errors.OK

    @classmethod
    def from_client(
        cls,
        client: paramiko.SSHClient,
        ssh_config: SSHConfig | None = None,
        conn_config: ConnectionConfig | None = None,
    ) -> "ParamikoTransport":
        """Wrap an SSHClient that is already connected and authenticated."""
        if ssh_config is None:
            transport = client.get_transport()
            host = transport.getpeername()[0] if transport is not None else ""
            ssh_config = SSHConfig(host=host)
        instance = cls(ssh_config, conn_config)
        instance._ssh = client
        return instance

    # -- connection ------------------------------------------------------

    def connect(self) -> None:
        """Open the SSH connection if needed, then the SFTP subsystem."""
        with self._lock:
            if self._connected and self._transport_active():
                return
            if not self._transport_active():
                self._connect_ssh()
            self._open_sftp()

    def _connect_ssh(self) -> None:
        """Connect and authenticate. Caller must hold lock."""
        try:
            self._ssh = paramiko.SSHClient()
            self._ssh.load_system_host_keys()
            try:
                known_hosts = str(Path.home() / ".ssh" / "known_hosts")
                self._ssh.load_host_keys(known_hosts)
            except FileNotFoundError:
                pass
            self._ssh.set_missing_host_key_policy(TrustOnFirstUsePolicy())
            self._ssh.connect(**self._connect_kwargs())

            transport = self._ssh.get_transport()
            if transport is not None and self.conn_config.keepalive_interval_seconds > 0:
                transport.set_keepalive(self.conn_config.keepalive_interval_seconds)
            logger.info(
                "Connected to SSH server %s:%d",
                self.ssh_config.host,
                self.ssh_config.port,
            )

        except paramiko.AuthenticationException as e:
            self._connection_failed()
            logger.error("SSH authentication failed: %s", e)
            raise PermissionError(f"SSH authentication failed: {e}") from e
        except TimeoutError as e:
            self._connection_failed()
            logger.error("SSH connection timeout: %s", e)
            raise TimeoutError(f"SSH connection timeout: {e}") from e
        except OSError as e:
            self._connection_failed()
            logger.error("SSH connection failed: %s", e)
            raise ConnectionError(f"SSH connection failed: {e}") from e
        except paramiko.SSHException as e:
            self._connection_failed()
            logger.error("SSH error: %s", e)
            raise ConnectionError(f"SSH error: {e}") from e

    def _connect_kwargs(self) -> dict:
        connect_kwargs: dict = {
            "hostname": self.ssh_config.host,
            "port": self.ssh_config.port,
            "timeout": self.conn_config.timeout_seconds,
            "allow_agent": self.ssh_config.use_agent,
        }

        if self.ssh_config.username:
            connect_kwargs["username"] = self.ssh_config.username

        # Auth priority: key file -> password -> agent/default keys
        if self.ssh_config.key_file:
            key_path = os.path.expanduser(self.ssh_config.key_file)
            connect_kwargs["key_filename"] = key_path
            if self.ssh_config.key_passphrase:
                connect_kwargs["passphrase"] = self.ssh_config.key_passphrase
            connect_kwargs["look_for_keys"] = True
            logger.debug(
                "Connecting to SSH %s:%d with key file: %s",
                self.ssh_config.host,
                self.ssh_config.port,
                key_path,
            )
        elif self.ssh_config.password:
            connect_kwargs["password"] = self.ssh_config.password
            connect_kwargs["look_for_keys"] = False
            logger.debug(
                "Connecting to SSH %s:%d with password",
                self.ssh_config.host,
                self.ssh_config.port,
            )
        else:
            connect_kwargs["look_for_keys"] = True
            logger.debug(
                "Connecting to SSH %s:%d with agent/default keys",
                self.ssh_config.host,
                self.ssh_config.port,
            )
        return connect_kwargs

    def _open_sftp(self) -> None:
        """Start the SFTP subsystem. Caller must hold lock."""
        try:
            self._sftp = self._ssh.open_sftp()
        except (OSError, paramiko.SSHException) as e:
            self._connection_failed()
            logger.error("Could not start SFTP subsystem on %s: %s", self.host, e)
            raise ConnectionError(f"SFTP subsystem unavailable: {e}") from e
        self._connected = True
        logger.debug("SFTP subsystem started on %s", self.host)

    def _connection_failed(self) -> None:
        self._connected = False
        self._cleanup_connections()

    def _cleanup_connections(self) -> None:
        """Close SFTP and SSH without raising."""
        if self._sftp:
            try:
                self._sftp.close()
            except Exception as e:
                logger.debug("Ignoring error while closing SFTP channel: %s", e)
            self._sftp = None
        if self._ssh:
            try:
                self._ssh.close()
            except Exception as e:
                logger.debug("Ignoring error while closing SSH client: %s", e)
            self._ssh = None

    def disconnect(self) -> None:
        """Close the SFTP session and SSH connection, then run on_close callbacks."""
        with self._lock:
            self._connection_failed()
        logger.debug("SSH connection to %s closed", self.host)
        self._notify_closed()

    def _transport_active(self) -> bool:
        if self._ssh is None:
            return False
        transport = self._ssh.get_transport()
        return transport is not None and bool(transport.is_active())

    def is_logged_in(self) -> bool:
        if not self._transport_active():
            return False
        return bool(self._ssh.get_transport().is_authenticated())

    def is_connected(self) -> bool:
        if not self._connected or self._sftp is None:
            return False
        if self._transport_active():
            return True
        logger.warning("SSH transport to %s lost", self.host)
        with self._lock:
            self._connection_failed()
        self._notify_closed()
        return False

    def on_close(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def _notify_closed(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception as e:
                logger.warning("on_close callback failed: %s", e)

    def last_error_code(self) -> int:
        return self._last_error

    # -- request dispatch ------------------------------------------------

    def _call(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        """Run one request under the lock and translate paramiko failures."""
        lost = False
        with self._lock:
            if not self._connected or self._sftp is None:
                raise NotConnectedError("SFTP session not connected", errors.NO_CONNECTION)
            try:
                result = func(*args)
            except (OSError, EOFError, paramiko.SSHException) as e:
                code = status_for(e)
                self._last_error = code
                if code == errors.CONNECTION_LOST and not self._transport_active():
                    logger.warning("%s failed, connection lost: %s", operation, e)
                    self._connection_failed()
                    lost = True
                else:
                    logger.debug("%s failed with status %d: %s", operation, code, e)
                error = e
            else:
                self._last_error = errors.OK
                return result

        if lost:
            self._notify_closed()
        raise error_for_status(code, f"{operation}: {error}") from error

    # -- handles ---------------------------------------------------------

    def open_file(self, path: str, flags: int, mode: int) -> paramiko.SFTPFile:
        def _open() -> paramiko.SFTPFile:
            created = False
            if flags & FXF_CREAT:
                try:
                    self._sftp.lstat(path)
                except FileNotFoundError:
                    created = True
            handle = self._sftp.open(path, open_mode(flags, exists=not created))
            if created:
                try:
                    self._sftp.chmod(path, mode)
                except Exception:
                    handle.close()
                    raise
            return handle

        logger.debug("Opening %s (flags=0x%x)", path, flags)
        return self._call(f"open({path})", _open)

    def open_dir(self, path: str) -> _DirCursor:
        logger.debug("Opening directory %s", path)
        return self._call(f"opendir({path})", lambda: _DirCursor(path, self._sftp.listdir_attr(path)))

    def read(self, handle_id: Any, offset: int, max_len: int) -> bytes | None:
        if isinstance(handle_id, _DirCursor):
            raise UnsupportedError(f"{handle_id.path} is a directory", errors.OP_UNSUPPORTED)

        def _read() -> bytes:
            handle_id.seek(offset)
            return handle_id.read(max_len)

        data = self._call("read", _read)
        return data or None

    def readdir(self, handle_id: Any) -> tuple[str, str, paramiko.SFTPAttributes] | None:
        if not isinstance(handle_id, _DirCursor):
            raise UnsupportedError("Handle is not a directory", errors.OP_UNSUPPORTED)
        if not handle_id.records:
            return None
        attrs = handle_id.records.popleft()
        return attrs.filename, getattr(attrs, "longname", None) or str(attrs), attrs

    def write(self, handle_id: Any, offset: int, data: bytes) -> int:
        def _write() -> int:
            handle_id.seek(offset)
            handle_id.write(data)
            handle_id.flush()
            return len(data)

        return self._call("write", _write)

    def close(self, handle_id: Any) -> None:
        if isinstance(handle_id, _DirCursor):
            handle_id.records.clear()
            return
        self._call("close", handle_id.close)

    # -- attributes ------------------------------------------------------

    def stat(self, path: str) -> paramiko.SFTPAttributes:
        return self._call(f"stat({path})", self._sftp_method("stat"), path)

    def lstat(self, path: str) -> paramiko.SFTPAttributes:
        return self._call(f"lstat({path})", self._sftp_method("lstat"), path)

    def fstat(self, handle_id: Any) -> paramiko.SFTPAttributes:
        if isinstance(handle_id, _DirCursor):
            return self.stat(handle_id.path)
        return self._call("fstat", handle_id.stat)

    def setstat(self, path: str, attrs: Any) -> None:
        def _setstat() -> None:
            if attrs.st_mode is not None:
                self._sftp.chmod(path, stat.S_IMODE(attrs.st_mode))
            if attrs.st_uid is not None and attrs.st_gid is not None:
                self._sftp.chown(path, attrs.st_uid, attrs.st_gid)
            if attrs.st_atime is not None and attrs.st_mtime is not None:
                self._sftp.utime(path, (attrs.st_atime, attrs.st_mtime))
            if getattr(attrs, "st_size", None) is not None:
                self._sftp.truncate(path, attrs.st_size)

        self._call(f"setstat({path})", _setstat)

    # -- path operations -------------------------------------------------

    def _sftp_method(self, name: str) -> Callable[..., Any]:
        # Resolved at call time; the SFTP client is replaced on reconnect.
        return lambda *args: getattr(self._sftp, name)(*args)

    def mkdir(self, path: str, mode: int) -> None:
        self._call(f"mkdir({path})", self._sftp_method("mkdir"), path, mode)

    def rmdir(self, path: str) -> None:
        self._call(f"rmdir({path})", self._sftp_method("rmdir"), path)

    def remove(self, path: str) -> None:
        self._call(f"remove({path})", self._sftp_method("remove"), path)

    def rename(self, old_path: str, new_path: str, flags: int = 0) -> None:
        method = "posix_rename" if flags & RENAME_OVERWRITE else "rename"
        self._call(f"rename({old_path}, {new_path})", self._sftp_method(method), old_path, new_path)

    def symlink(self, target: str, link: str) -> None:
        self._call(f"symlink({target}, {link})", self._sftp_method("symlink"), target, link)

    def realpath(self, path: str) -> str:
        return self._call(f"realpath({path})", self._sftp_method("normalize"), path)


@contextmanager
def start(
    ssh_config: SSHConfig,
    conn_config: ConnectionConfig | None = None,
    transfer_config: TransferConfig | None = None,
) -> Iterator[Session]:
    """
    Connect to an SSH server and yield a Session over it.

    The session, every handle opened through it and the SSH connection are
    closed when the block exits.

    Raises:
        PermissionError: If authentication fails.
        TimeoutError: If the connection times out.
        ConnectionError: For any other connection failure.
    """
    transport = ParamikoTransport(ssh_config, conn_config)
    transport.connect()
    session = Session(transport, transfer_config, encoding=ssh_config.encoding)
    try:
        yield session
    finally:
        session.close()
