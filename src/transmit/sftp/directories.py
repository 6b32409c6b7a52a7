"""Remote directory materialization."""

import logging
import stat

from paramiko import SFTPClient

from .errors import PathConflictError, RemoteProtocolError, describe_remote_error, guard_channel
from .paths import split_remote
from .session import Session


logger = logging.getLogger(__name__)

DIRECTORY_MODE = 0o700


def ensure_directory(session: Session, path: str) -> None:
    """
    Ensure a remote directory and all of its ancestors exist.

    Components are walked left to right; each missing prefix is created with
    owner-only permissions before its children. An existing non-directory
    entry is never replaced.

    Args:
        session: Open session
        path: Remote directory path

    Raises:
        PathConflictError: If a component exists and is not a directory
        RemoteProtocolError: If a stat or mkdir call fails
        LivenessLost: If the SFTP channel drops mid-walk
    """
    sftp = session.require_sftp()
    with guard_channel("directory creation", path):
        _materialize(sftp, path)


def _materialize(sftp: SFTPClient, path: str) -> None:
    is_absolute, components = split_remote(path)

    prefix = "/" if is_absolute else ""
    for component in components:
        prefix = f"{prefix}/{component}" if prefix and prefix != "/" else f"{prefix}{component}"

        try:
            attrs = sftp.stat(prefix)
        except FileNotFoundError:
            attrs = None
        except IOError as e:
            raise RemoteProtocolError(
                f"Failed to stat {prefix}: {describe_remote_error(e)}", errno=e.errno
            ) from e

        if attrs is None:
            try:
                sftp.mkdir(prefix, DIRECTORY_MODE)
            except IOError as e:
                raise RemoteProtocolError(
                    f"Failed to create directory {prefix}: {describe_remote_error(e)}", errno=e.errno
                ) from e
            logger.info(f"Created remote directory: {prefix}")
            continue

        # Servers that omit permissions give no type; treat the entry as usable
        if attrs.st_mode is not None and not stat.S_ISDIR(attrs.st_mode):
            raise PathConflictError(f"Path exists and is not a directory: {prefix}")

        logger.debug(f"Remote directory exists: {prefix}")
