"""Streamed single-file upload."""

import logging
import os
from typing import Callable, Optional

from paramiko import SFTPClient

from .directories import ensure_directory
from .errors import (
    DirectoryUploadError,
    InvalidPathError,
    LocalIOError,
    RemoteProtocolError,
    describe_remote_error,
    guard_channel,
)
from .paths import remote_parent, split_remote
from .session import Session


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 32768
FILE_MODE = 0o600

ProgressCallback = Callable[[int, int], None]


def upload(session: Session,
           local_path: str,
           remote_path: str,
           chunk_size: int = DEFAULT_CHUNK_SIZE,
           progress: Optional[ProgressCallback] = None) -> None:
    """
    Upload one local file to one remote file, creating missing remote parents.

    The remote file is created or truncated. Content is streamed through a
    buffer of ``chunk_size`` bytes. When a transfer fails midway, the partially
    written remote file is left in place.

    Args:
        session: Open session
        local_path: Local file to read
        remote_path: Remote file to write
        chunk_size: Transfer buffer size in bytes
        progress: Called as ``progress(bytes_sent, total_bytes)`` after each chunk

    Raises:
        DirectoryUploadError: If local_path is a directory
        LocalIOError: If the local file cannot be opened or read
        PathConflictError: If a remote parent component is not a directory
        RemoteProtocolError: If a remote open, write or close fails
        LivenessLost: If the SFTP channel drops during the transfer
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    sftp = session.require_sftp()

    if os.path.isdir(local_path):
        raise DirectoryUploadError(f"Directory upload is not supported: {local_path}")

    _, components = split_remote(remote_path)
    if not components:
        raise InvalidPathError(f"Remote path has no file name: {remote_path!r}")

    parent = remote_parent(remote_path)
    if parent and parent != "/":
        ensure_directory(session, parent)

    with guard_channel("upload", remote_path):
        sent = _transfer(sftp, local_path, remote_path, chunk_size, progress)

    logger.info(f"Uploaded {local_path} to {remote_path} ({sent} bytes)")


def _transfer(sftp: SFTPClient,
              local_path: str,
              remote_path: str,
              chunk_size: int,
              progress: Optional[ProgressCallback]) -> int:
    """Stream local_path into a freshly truncated remote_path and return the byte count."""
    try:
        remote_file = sftp.open(remote_path, "wb")
    except IOError as e:
        raise RemoteProtocolError(
            f"Unable to open remote file {remote_path}: {describe_remote_error(e)}", errno=e.errno
        ) from e

    try:
        try:
            remote_file.chmod(FILE_MODE)
        except IOError as e:
            logger.warning(f"Could not set mode {oct(FILE_MODE)} on {remote_path}: {describe_remote_error(e)}")

        try:
            local_file = open(local_path, "rb")
        except OSError as e:
            raise LocalIOError(f"Failed to open local file {local_path}: {e.strerror or e}") from e

        with local_file:
            total = os.fstat(local_file.fileno()).st_size
            sent = 0
            while True:
                try:
                    chunk = local_file.read(chunk_size)
                except OSError as e:
                    raise LocalIOError(f"Failed to read local file {local_path}: {e.strerror or e}") from e
                if not chunk:
                    break

                _write_fully(remote_file, chunk, remote_path)
                sent += len(chunk)
                if progress is not None:
                    progress(sent, total)
    except BaseException:
        _close_quietly(remote_file, remote_path)
        raise

    # Buffered writes are flushed on close, so a failure here is a write failure
    try:
        remote_file.close()
    except IOError as e:
        raise RemoteProtocolError(
            f"SFTP write error on {remote_path}: {describe_remote_error(e)}", errno=e.errno
        ) from e

    return sent


def _write_fully(remote_file, chunk: bytes, remote_path: str) -> None:
    """Write a whole chunk, resuming after short writes."""
    offset = 0
    while offset < len(chunk):
        try:
            written = remote_file.write(chunk[offset:])
        except IOError as e:
            raise RemoteProtocolError(
                f"SFTP write error on {remote_path}: {describe_remote_error(e)}", errno=e.errno
            ) from e

        # Buffered file objects accept everything and return None
        if written is None:
            written = len(chunk) - offset
        if written <= 0:
            raise RemoteProtocolError(f"SFTP write error on {remote_path}: no bytes accepted")
        offset += written


def _close_quietly(remote_file, remote_path: str) -> None:
    try:
        remote_file.close()
    except Exception as e:
        logger.warning(f"Error closing remote file {remote_path}: {e}")
