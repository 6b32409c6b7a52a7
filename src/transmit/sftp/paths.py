"""Helpers for slash-separated remote paths."""

from typing import List, Tuple

from .errors import InvalidPathError


MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255


def normalize_remote(path: str) -> str:
    """Collapse repeated ``/`` separators.

    Backslashes are ordinary filename characters on the remote side and are
    left alone.
    """
    if "\x00" in path:
        raise InvalidPathError(f"Remote path contains a NUL byte: {path!r}")
    while "//" in path:
        path = path.replace("//", "/")
    return path


def split_remote(path: str) -> Tuple[bool, List[str]]:
    """Split a remote path into ``(is_absolute, components)``.

    Empty and ``.`` components are dropped.
    """
    normalized = normalize_remote(path)
    components = [part for part in normalized.split("/") if part and part != "."]
    return normalized.startswith("/"), components


def join_remote(base: str, name: str) -> str:
    """Join a single entry name onto a remote directory path.

    Raises:
        InvalidPathError: If the name is empty, contains a separator or NUL,
            or the result exceeds the maximum path length
    """
    if not name:
        raise InvalidPathError(f"Empty entry name under {base}")
    if "/" in name or "\x00" in name:
        raise InvalidPathError(f"Invalid entry name under {base}: {name!r}")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidPathError(f"Entry name too long under {base}: {name[:32]}...")

    base = normalize_remote(base)
    if not base:
        joined = name
    elif base.endswith("/"):
        joined = base + name
    else:
        joined = f"{base}/{name}"

    if len(joined) > MAX_PATH_LENGTH:
        raise InvalidPathError(f"Remote path exceeds {MAX_PATH_LENGTH} characters: {joined[:64]}...")
    return joined


def remote_parent(path: str) -> str:
    """Return the remote path minus its final component.

    ``""`` is returned for a single relative component and ``/`` for a
    top-level absolute entry.
    """
    is_absolute, components = split_remote(path)
    parent = "/".join(components[:-1])
    if is_absolute:
        return "/" + parent
    return parent
