"""
Pytest configuration and fixtures for transmit tests.
"""
import errno
import posixpath
import stat
import sys
from pathlib import Path

import pytest
from paramiko import SFTPAttributes

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from transmit.sftp.session import Session, SessionState  # noqa: E402
from transmit.utils import error_handler  # noqa: E402


def _no_such_file(path):
    return IOError(errno.ENOENT, "No such file", path)


class FakeRemoteFile:
    """Writable remote file handle backed by FakeSFTPClient."""

    def __init__(self, fs, key):
        self.fs = fs
        self.key = key
        self.closed = False
        fs.open_handles += 1

    def write(self, data):
        if self.closed:
            raise IOError("File is closed")
        if self.fs.fail_write_after is not None:
            stored = len(self.fs.entries[self.key]["data"])
            if stored + len(data) > self.fs.fail_write_after:
                raise IOError(errno.EIO, "Failure")
        if self.fs.max_write is None:
            self.fs.entries[self.key]["data"] += data
            return None
        accepted = data[:self.fs.max_write]
        self.fs.entries[self.key]["data"] += accepted
        return len(accepted)

    def chmod(self, mode):
        self.fs.entries[self.key]["mode"] = mode

    def close(self):
        if not self.closed:
            self.closed = True
            self.fs.open_handles -= 1


class FakeSFTPClient:
    """In-memory stand-in for the parts of paramiko.SFTPClient transmit uses.

    Relative paths resolve against ``/``. Failures are raised the way
    paramiko raises them: IOError with ENOENT for missing paths, a bare
    IOError("Failure") for generic server failures.
    """

    def __init__(self):
        self.entries = {"/": {"type": "dir", "mode": 0o755}}
        self.calls = []
        self.fail_remove = set()
        self.fail_stat = {}
        self.max_write = None
        self.fail_write_after = None
        self.list_dot_entries = True
        self.open_handles = 0
        self.closed = False

    # ---------- helpers ----------
    @staticmethod
    def key(path):
        if not path.startswith("/"):
            path = "/" + path
        return posixpath.normpath(path)

    def _add_parents(self, key):
        missing = []
        parent = posixpath.dirname(key)
        while parent not in self.entries:
            missing.append(parent)
            parent = posixpath.dirname(parent)
        for directory in reversed(missing):
            self.entries[directory] = {"type": "dir", "mode": 0o755}

    def add_dir(self, path, mode=0o755):
        key = self.key(path)
        self._add_parents(key)
        self.entries[key] = {"type": "dir", "mode": mode}

    def add_file(self, path, data=b"", mode=0o644):
        key = self.key(path)
        self._add_parents(key)
        self.entries[key] = {"type": "file", "mode": mode, "data": bytearray(data)}

    def exists(self, path):
        return self.key(path) in self.entries

    def is_dir(self, path):
        entry = self.entries.get(self.key(path))
        return entry is not None and entry["type"] == "dir"

    def read_file(self, path):
        return bytes(self.entries[self.key(path)]["data"])

    def snapshot(self):
        return {
            k: (v["type"], v["mode"], bytes(v.get("data", b"")))
            for k, v in self.entries.items()
        }

    def children(self, key):
        return sorted(
            k for k in self.entries
            if k != key and posixpath.dirname(k) == key
        )

    def calls_named(self, name):
        return [path for call, path in self.calls if call == name]

    def _attrs(self, key, filename=None):
        entry = self.entries[key]
        attrs = SFTPAttributes()
        if entry["type"] == "dir":
            attrs.st_mode = stat.S_IFDIR | entry["mode"]
            attrs.st_size = 4096
        else:
            attrs.st_mode = stat.S_IFREG | entry["mode"]
            attrs.st_size = len(entry["data"])
        attrs.filename = filename if filename is not None else posixpath.basename(key)
        return attrs

    # ---------- SFTPClient surface ----------
    def stat(self, path):
        key = self.key(path)
        self.calls.append(("stat", key))
        if key in self.fail_stat:
            raise IOError(self.fail_stat[key], "Permission denied", path)
        if key not in self.entries:
            raise _no_such_file(path)
        return self._attrs(key)

    def mkdir(self, path, mode=0o777):
        key = self.key(path)
        self.calls.append(("mkdir", key))
        parent = self.entries.get(posixpath.dirname(key))
        if parent is None or parent["type"] != "dir":
            raise _no_such_file(path)
        if key in self.entries:
            raise IOError("Failure")
        self.entries[key] = {"type": "dir", "mode": mode}

    def open(self, path, mode="r"):
        key = self.key(path)
        self.calls.append(("open", key))
        if "w" not in mode:
            raise NotImplementedError("FakeSFTPClient only opens files for writing")
        parent = self.entries.get(posixpath.dirname(key))
        if parent is None or parent["type"] != "dir":
            raise _no_such_file(path)
        existing = self.entries.get(key)
        if existing is not None and existing["type"] == "dir":
            raise IOError("Failure")
        if existing is None:
            self.entries[key] = {"type": "file", "mode": 0o644, "data": bytearray()}
        else:
            existing["data"] = bytearray()
        return FakeRemoteFile(self, key)

    def remove(self, path):
        key = self.key(path)
        self.calls.append(("remove", key))
        if key in self.fail_remove:
            raise IOError(errno.EACCES, "Permission denied", path)
        entry = self.entries.get(key)
        if entry is None:
            raise _no_such_file(path)
        if entry["type"] == "dir":
            raise IOError("Failure")
        del self.entries[key]

    def rmdir(self, path):
        key = self.key(path)
        self.calls.append(("rmdir", key))
        entry = self.entries.get(key)
        if entry is None:
            raise _no_such_file(path)
        if entry["type"] != "dir" or self.children(key):
            raise IOError("Failure")
        del self.entries[key]

    def listdir_attr(self, path="."):
        key = self.key(path)
        self.calls.append(("listdir_attr", key))
        entry = self.entries.get(key)
        if entry is None:
            raise _no_such_file(path)
        if entry["type"] != "dir":
            raise IOError("Failure")
        listing = []
        if self.list_dot_entries:
            listing.append(self._attrs(key, filename="."))
            listing.append(self._attrs(key, filename=".."))
        for child in self.children(key):
            listing.append(self._attrs(child))
        return listing

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def fresh_error_handler():
    """Give every test its own in-memory error handler."""
    error_handler.reset_error_handler()
    yield
    error_handler.reset_error_handler()


@pytest.fixture
def fake_sftp():
    return FakeSFTPClient()


@pytest.fixture
def session(fake_sftp):
    """A ready session whose subsession is the in-memory fake."""
    return Session(
        hostname="sftp.example.test",
        port=22,
        username="deploy",
        sftp=fake_sftp,
        state=SessionState.SUBSESSION_READY,
    )
