"""Recursive removal of remote files and directory trees."""

import logging
import stat
from dataclasses import dataclass
from typing import Iterator, List, Optional

from paramiko import SFTPAttributes, SFTPClient

from .errors import (
    InvalidPathError,
    NotFoundError,
    RemoteProtocolError,
    describe_remote_error,
    guard_channel,
)
from .paths import join_remote, split_remote
from .session import Session


logger = logging.getLogger(__name__)


@dataclass
class _DirectoryFrame:
    """A directory whose remaining entries are still being removed."""
    path: str
    entries: Iterator[SFTPAttributes]


def remove(session: Session, path: str) -> None:
    """
    Remove a remote file or directory tree, children before parents.

    A path that does not exist is not an error. The first failure stops the
    whole removal; entries already deleted stay deleted, so the call can be
    repeated once the obstruction is gone.

    Args:
        session: Open session
        path: Remote file or directory to remove

    Raises:
        InvalidPathError: If path names no entry (empty, ``.`` or ``/``)
        RemoteProtocolError: If a stat, unlink or rmdir call fails
        LivenessLost: If the SFTP channel drops mid-removal
    """
    sftp = session.require_sftp()

    _, components = split_remote(path)
    if not components:
        raise InvalidPathError(f"Refusing to remove {path!r}")

    with guard_channel("remove", path):
        _remove_tree(sftp, path)

    logger.info(f"Removed remote path: {path}")


def _remove_tree(sftp: SFTPClient, path: str) -> None:
    entries = _open_entry(sftp, path)
    if entries is None:
        return

    # Explicit stack keeps deep trees off the interpreter stack
    stack: List[_DirectoryFrame] = [_DirectoryFrame(path, iter(entries))]
    while stack:
        frame = stack[-1]
        entry = next(frame.entries, None)

        if entry is None:
            _remove_directory(sftp, frame.path)
            stack.pop()
            continue

        if entry.filename in (".", ".."):
            continue

        child = join_remote(frame.path, entry.filename)
        if entry.st_mode is not None and stat.S_ISDIR(entry.st_mode):
            child_entries = _open_entry(sftp, child)
            if child_entries is not None:
                stack.append(_DirectoryFrame(child, iter(child_entries)))
        else:
            _remove_file(sftp, child)


def _open_entry(sftp: SFTPClient, path: str) -> Optional[List[SFTPAttributes]]:
    """
    Remove path if it is absent, a file, or an unlistable empty directory.

    Returns:
        The directory listing when path is a directory that still has to be
        emptied, None when nothing is left to do
    """
    try:
        _stat(sftp, path)
    except NotFoundError:
        logger.debug(f"Remote path already absent: {path}")
        return None

    try:
        sftp.remove(path)
        logger.debug(f"Removed remote file: {path}")
        return None
    except IOError:
        pass

    try:
        return sftp.listdir_attr(path)
    except IOError:
        pass

    try:
        sftp.rmdir(path)
    except IOError as e:
        raise RemoteProtocolError(
            f"Failed to open or remove path: {path} ({describe_remote_error(e)})", errno=e.errno
        ) from e

    logger.debug(f"Removed unlistable remote directory: {path}")
    return None


def _stat(sftp: SFTPClient, path: str) -> SFTPAttributes:
    try:
        return sftp.stat(path)
    except FileNotFoundError as e:
        raise NotFoundError(f"No such remote path: {path}") from e
    except IOError as e:
        raise RemoteProtocolError(f"Failed to stat {path}: {describe_remote_error(e)}", errno=e.errno) from e


def _remove_file(sftp: SFTPClient, path: str) -> None:
    try:
        sftp.remove(path)
    except IOError as e:
        raise RemoteProtocolError(
            f"Failed to delete file: {path} ({describe_remote_error(e)})", errno=e.errno
        ) from e
    logger.debug(f"Removed remote file: {path}")


def _remove_directory(sftp: SFTPClient, path: str) -> None:
    try:
        sftp.rmdir(path)
    except IOError as e:
        raise RemoteProtocolError(
            f"Failed to remove directory: {path} ({describe_remote_error(e)})", errno=e.errno
        ) from e
    logger.debug(f"Removed remote directory: {path}")
