"""SFTP module for remote file operations."""

from .errors import (
    TransmitError, ConnectError, TransportError, HandshakeError, AuthError,
    SubsessionInitError, SessionClosedError, LivenessLost, PathConflictError,
    NotFoundError, InvalidPathError, LocalIOError, DirectoryUploadError,
    RemoteProtocolError,
)
from .session import Session, SessionManager, SessionState
from .directories import ensure_directory
from .uploader import upload
from .remover import remove

__all__ = [
    'TransmitError', 'ConnectError', 'TransportError', 'HandshakeError', 'AuthError',
    'SubsessionInitError', 'SessionClosedError', 'LivenessLost', 'PathConflictError',
    'NotFoundError', 'InvalidPathError', 'LocalIOError', 'DirectoryUploadError',
    'RemoteProtocolError',
    'Session', 'SessionManager', 'SessionState',
    'ensure_directory', 'upload', 'remove',
]
