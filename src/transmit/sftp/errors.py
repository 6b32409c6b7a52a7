"""Exceptions raised by SFTP session and file operations."""

from contextlib import contextmanager
from typing import Iterator, Optional

import paramiko

from ..utils.error_handler import ErrorCategory


# Raised by paramiko's SFTPClient once the channel under a request is gone
CHANNEL_ERRORS = (paramiko.SSHException, EOFError)


class TransmitError(Exception):
    """Base exception for transmit operations."""
    category = ErrorCategory.UNKNOWN


class ConnectError(TransmitError):
    """Raised when a session cannot be established.

    ``stage`` names the connect stage that failed.
    """
    stage = "connect"


class TransportError(ConnectError):
    """Raised when the TCP connection cannot be opened."""
    category = ErrorCategory.TRANSPORT
    stage = "transport"


class HandshakeError(ConnectError):
    """Raised when the SSH handshake or host key check fails."""
    category = ErrorCategory.HANDSHAKE
    stage = "handshake"


class AuthError(ConnectError):
    """Raised when authentication fails."""
    category = ErrorCategory.AUTHENTICATION
    stage = "auth"


class SubsessionInitError(ConnectError):
    """Raised when the SFTP subsession cannot be opened."""
    category = ErrorCategory.SUBSESSION
    stage = "subsession"


class SessionClosedError(TransmitError):
    """Raised when an operation is attempted on a closed session."""
    category = ErrorCategory.VALIDATION


class LivenessLost(TransmitError):
    """Raised when an established session is no longer usable."""
    category = ErrorCategory.LIVENESS


class PathConflictError(TransmitError):
    """Raised when a non-directory entry obstructs directory creation."""
    category = ErrorCategory.PATH_CONFLICT


class NotFoundError(TransmitError):
    """Raised when a remote path does not exist."""
    category = ErrorCategory.NOT_FOUND


class InvalidPathError(TransmitError):
    """Raised when a remote path cannot be built or is malformed."""
    category = ErrorCategory.VALIDATION


class LocalIOError(TransmitError):
    """Raised when a local file cannot be opened or read."""
    category = ErrorCategory.LOCAL_IO


class DirectoryUploadError(LocalIOError):
    """Raised when a directory is given where a single file is expected."""


class RemoteProtocolError(TransmitError):
    """Raised when a remote stat/open/write/mkdir/unlink/rmdir call fails.

    ``errno`` carries the remote status code when the server reported one.
    """
    category = ErrorCategory.REMOTE_PROTOCOL

    def __init__(self, message: str, errno: Optional[int] = None):
        super().__init__(message)
        self.errno = errno


def describe_remote_error(error: BaseException) -> str:
    """Return the server's description of a failed remote call."""
    strerror = getattr(error, "strerror", None)
    if strerror:
        return str(strerror)
    return str(error) or type(error).__name__


@contextmanager
def guard_channel(operation: str, path: str) -> Iterator[None]:
    """
    Translate paramiko failures that are not SFTP status codes.

    A dropped channel becomes LivenessLost and a malformed SFTP response
    becomes RemoteProtocolError, so callers only ever see TransmitError.
    """
    try:
        yield
    except CHANNEL_ERRORS as e:
        raise LivenessLost(
            f"SFTP session lost during {operation} of {path}: {describe_remote_error(e)}"
        ) from e
    except paramiko.SFTPError as e:
        raise RemoteProtocolError(
            f"SFTP protocol error during {operation} of {path}: {describe_remote_error(e)}"
        ) from e
