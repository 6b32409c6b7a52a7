"""Line-oriented command shell speaking the ``<status>|<message>`` protocol."""

import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional, TextIO

from .sftp.errors import (
    InvalidPathError,
    LivenessLost,
    LocalIOError,
    PathConflictError,
    TransmitError,
)
from .sftp.remover import remove
from .sftp.session import Session, SessionManager
from .sftp.uploader import DEFAULT_CHUNK_SIZE, upload
from .utils.error_handler import ErrorSeverity, handle_error


logger = logging.getLogger(__name__)

PROMPT = "Command (upload <local> <remote> | remove <remote> | exit): "
USAGE_ERROR = "Unknown command or incorrect usage"
MAX_TOKENS = 3


@dataclass
class CommandResult:
    """Outcome of one shell command."""
    success: bool
    message: str

    def render(self) -> str:
        """Format as a protocol line: ``1|message`` or ``0|message``."""
        message = " ".join(self.message.splitlines())
        return f"{1 if self.success else 0}|{message}"


class TransmitShell:
    """Reads commands, runs them against one session and prints one status line per command."""

    def __init__(self,
                 session_manager: SessionManager,
                 session: Session,
                 chunk_size: int = DEFAULT_CHUNK_SIZE,
                 stdin: Optional[TextIO] = None,
                 stdout: Optional[TextIO] = None,
                 show_prompt: Optional[bool] = None):
        """
        Initialize the shell.

        Args:
            session_manager: Manager used for the liveness probe
            session: Open session every command runs against
            chunk_size: Upload buffer size in bytes
            stdin: Command input (defaults to sys.stdin)
            stdout: Protocol output (defaults to sys.stdout)
            show_prompt: Print the command prompt; defaults to whether stdin is a terminal
        """
        self.session_manager = session_manager
        self.session = session
        self.chunk_size = chunk_size
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        if show_prompt is None:
            show_prompt = hasattr(self.stdin, "isatty") and self.stdin.isatty()
        self.show_prompt = show_prompt
        self.finished = False

    def emit(self, line: str) -> None:
        """Write one protocol line and flush it."""
        self.stdout.write(line + "\n")
        self.stdout.flush()

    def run(self) -> int:
        """
        Process commands until ``exit``, end of input, or loss of the session.

        Returns:
            Process exit status: 0 after ``exit``, 1 otherwise
        """
        while not self.finished:
            if not self.session_manager.is_alive(self.session):
                error = LivenessLost(f"SFTP session to {self.session.hostname}:{self.session.port} lost")
                self._record(error, "liveness_probe")
                self.emit(CommandResult(False, "SFTP session lost").render())
                return 1

            if self.show_prompt:
                self.stdout.write(PROMPT)
                self.stdout.flush()

            line = self.stdin.readline()
            if not line:
                self.emit(CommandResult(False, "Failed to read input").render())
                return 1

            self.emit(self.execute(line).render())

        return 0

    def execute(self, line: str) -> CommandResult:
        """
        Run a single command line and return its outcome.

        Arguments are whitespace-separated and taken literally, so quotes,
        apostrophes and backslashes are part of the path. Only the first three
        tokens are read: ``upload`` ignores anything after its two paths,
        while ``remove`` with a second path is a usage error.
        """
        args = line.split()[:MAX_TOKENS]
        if not args:
            return CommandResult(False, USAGE_ERROR)

        command = args[0]
        if command == "exit":
            self.finished = True
            return CommandResult(True, "Exiting shell")
        if command == "upload" and len(args) == 3:
            return self._upload(args[1], args[2])
        if command == "remove" and len(args) == 2:
            return self._remove(args[1])

        logger.debug(f"Rejected command line: {line.strip()!r}")
        return CommandResult(False, USAGE_ERROR)

    def _upload(self, local_path: str, remote_path: str) -> CommandResult:
        try:
            upload(self.session, local_path, remote_path,
                   chunk_size=self.chunk_size,
                   progress=self._progress_reporter(local_path))
        except TransmitError as e:
            self._record(e, "upload", {"local_path": local_path, "remote_path": remote_path})
            return CommandResult(False, str(e) or "Upload failed")
        return CommandResult(True, "Upload succeeded")

    def _remove(self, remote_path: str) -> CommandResult:
        try:
            remove(self.session, remote_path)
        except TransmitError as e:
            self._record(e, "remove", {"remote_path": remote_path})
            return CommandResult(False, str(e) or "Remove failed")
        return CommandResult(True, "Remove succeeded")

    def _progress_reporter(self, local_path: str):
        last_percent = None

        def report(sent: int, total: int) -> None:
            nonlocal last_percent
            if total <= 0:
                return
            percent = min(100, sent * 100 // total)
            if percent != last_percent:
                last_percent = percent
                self.emit(f"PROGRESS|{local_path}|{percent}")

        return report

    def _record(self, error: TransmitError, operation: str,
                additional_data: Optional[Dict[str, Any]] = None) -> None:
        if isinstance(error, LivenessLost):
            severity = ErrorSeverity.CRITICAL
        elif isinstance(error, (PathConflictError, InvalidPathError, LocalIOError)):
            severity = ErrorSeverity.MEDIUM
        else:
            severity = ErrorSeverity.HIGH

        handle_error(
            error=error,
            category=error.category,
            severity=severity,
            component="TransmitShell",
            operation=operation,
            additional_data=additional_data
        )
