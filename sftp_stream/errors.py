"""
SFTP status codes and the exception hierarchy raised by sftp_stream.

Every server-reported failure is raised as a subclass of SFTPError
carrying the raw numeric status in ``code``. Argument errors detected
locally use the builtin TypeError/ValueError instead.
"""

# Status codes as defined by the SFTP drafts (v3 through v6).
OK = 0
EOF = 1
NO_SUCH_FILE = 2
PERMISSION_DENIED = 3
FAILURE = 4
BAD_MESSAGE = 5
NO_CONNECTION = 6
CONNECTION_LOST = 7
OP_UNSUPPORTED = 8
INVALID_HANDLE = 9
NO_SUCH_PATH = 10
FILE_ALREADY_EXISTS = 11
WRITE_PROTECT = 12
NO_MEDIA = 13
NO_SPACE_ON_FILESYSTEM = 14
QUOTA_EXCEEDED = 15
UNKNOWN_PRINCIPAL = 16
LOCK_CONFLICT = 17
DIR_NOT_EMPTY = 18
NOT_A_DIRECTORY = 19
INVALID_FILENAME = 20
LINK_LOOP = 21


class SFTPError(Exception):
    """Base class for all SFTP errors.

    Args:
        message: Human readable description.
        code: The SFTP status code reported by the server, or FAILURE.
    """

    def __init__(self, message: str = "", code: int = FAILURE):
        super().__init__(message)
        self.code = code


class PermissionDeniedError(SFTPError):
    """The user lacks the permissions to perform the operation."""


class UnsupportedError(SFTPError):
    """The server (or this library) does not support the operation."""


class HandleNotOpenedError(SFTPError):
    """The handle is not open."""


class NotConnectedError(SFTPError):
    """There is no usable SFTP connection to the server."""


class ConnectionLostError(SFTPError):
    """The connection to the server was lost."""


class FileError(SFTPError):
    """A reference was made to a file that does not exist or cannot be used."""


class DirError(SFTPError):
    """The target is not a directory, or the directory is not empty."""


class PathError(SFTPError):
    """The path does not exist or cannot be resolved."""


class InvalidNameError(SFTPError):
    """The filename is not valid."""


_ERRORS_BY_STATUS: dict[int, type[SFTPError]] = {
    PERMISSION_DENIED: PermissionDeniedError,
    WRITE_PROTECT: PermissionDeniedError,
    OP_UNSUPPORTED: UnsupportedError,
    INVALID_HANDLE: HandleNotOpenedError,
    NO_CONNECTION: ConnectionLostError,
    CONNECTION_LOST: ConnectionLostError,
    NO_SUCH_FILE: FileError,
    FILE_ALREADY_EXISTS: FileError,
    NO_SPACE_ON_FILESYSTEM: FileError,
    QUOTA_EXCEEDED: FileError,
    LOCK_CONFLICT: FileError,
    NO_SUCH_PATH: PathError,
    LINK_LOOP: PathError,
    INVALID_FILENAME: InvalidNameError,
    DIR_NOT_EMPTY: DirError,
    NOT_A_DIRECTORY: DirError,
}


def error_for_status(code: int, message: str = "") -> SFTPError:
    """
    Build the exception matching an SFTP status code.

    Args:
        code: SFTP status code.
        message: Optional message; defaults to a generic description.

    Returns:
        An SFTPError subclass instance with ``code`` set.
    """
    cls = _ERRORS_BY_STATUS.get(code, SFTPError)
    return cls(message or f"SFTP request failed with status {code}", code)
