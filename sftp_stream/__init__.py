__version__ = "0.1.0"

# Public API exports
from .config import (
    AppConfig,
    ConnectionConfig,
    LogConfig,
    SSHConfig,
    TransferConfig,
    load_config,
)
from .dir import Dir, DirListing
from .entry import Entry
from .errors import (
    ConnectionLostError,
    DirError,
    FileError,
    HandleNotOpenedError,
    InvalidNameError,
    NotConnectedError,
    PathError,
    PermissionDeniedError,
    SFTPError,
    UnsupportedError,
    error_for_status,
)
from .file import File
from .file_factory import FileFactory
from .file_stat import FileType, Stat, Tristate
from .handle import Handle, LineIterator, RemoteIO, Whence
from .session import Session
from .sftp_transport import ParamikoTransport, start
from .transport import Transport

__all__ = [
    "__version__",
    # Configuration
    "AppConfig",
    "SSHConfig",
    "ConnectionConfig",
    "TransferConfig",
    "LogConfig",
    "load_config",
    # Session and handles
    "Session",
    "start",
    "Handle",
    "File",
    "FileFactory",
    "Dir",
    "DirListing",
    "LineIterator",
    "RemoteIO",
    "Whence",
    # Metadata
    "Entry",
    "Stat",
    "FileType",
    "Tristate",
    # Transports
    "Transport",
    "ParamikoTransport",
    # Errors
    "SFTPError",
    "PermissionDeniedError",
    "UnsupportedError",
    "HandleNotOpenedError",
    "NotConnectedError",
    "ConnectionLostError",
    "FileError",
    "DirError",
    "PathError",
    "InvalidNameError",
    "error_for_status",
]
