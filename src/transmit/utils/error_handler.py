"""Error tracking for the transmit SFTP shell.

Every failed command, connect stage and liveness check is recorded as an
ErrorContext. At shutdown the handler summarizes the session: which shell
operations failed and why, the connect stage that stopped the session, and
whether the session was lost.
"""

import json
import logging
import traceback
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, List


class ErrorCategory(Enum):
    """Categories of errors that can occur in the system."""
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    HANDSHAKE = "handshake"
    AUTHENTICATION = "authentication"
    SUBSESSION = "subsession"
    PATH_CONFLICT = "path_conflict"
    NOT_FOUND = "not_found"
    LOCAL_IO = "local_io"
    REMOTE_PROTOCOL = "remote_protocol"
    LIVENESS = "liveness"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Session cannot continue
    HIGH = "high"         # Operation failed
    MEDIUM = "medium"     # Operation failed on bad input
    LOW = "low"          # Minor issues, shell continues normally


_LOG_LEVELS = {
    ErrorSeverity.CRITICAL: logging.CRITICAL,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.LOW: logging.INFO,
}

CONNECT_OPERATION_PREFIX = "connect."
MAX_HISTORY = 1000
ERROR_LOG_NAME = "error_context.jsonl"


@dataclass
class ErrorContext:
    """Context information for an error occurrence."""
    timestamp: datetime = field(default_factory=datetime.now)
    category: ErrorCategory = ErrorCategory.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    component: str = ""
    operation: str = ""
    error_message: str = ""
    exception_type: str = ""
    stack_trace: str = ""
    additional_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def connect_stage(self) -> Optional[str]:
        """Connect stage named by an operation like ``connect.auth``, else None."""
        if self.operation.startswith(CONNECT_OPERATION_PREFIX):
            return self.operation[len(CONNECT_OPERATION_PREFIX):]
        return None

    def to_record(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "severity": self.severity.value,
            "component": self.component,
            "operation": self.operation,
            "error_message": self.error_message,
            "exception_type": self.exception_type,
            "additional_data": self.additional_data,
        }


@dataclass
class SessionErrorSummary:
    """Errors of one shell session, grouped the way the report prints them."""
    total: int = 0
    by_operation: Dict[str, Counter] = field(default_factory=dict)
    connect_stage: Optional[str] = None
    session_lost: bool = False
    last_error: Optional[str] = None


class ErrorHandler:
    """Records shell and connect failures; optionally appends them to a JSONL file."""

    def __init__(self, storage_path: Optional[str] = None, retention_days: int = 0):
        """Initialize the error handler.

        Args:
            storage_path: Directory for error_context.jsonl; nothing is persisted when None
            retention_days: Days of persisted error context to keep (0 = keep everything)
        """
        self.logger = logging.getLogger(__name__)
        self.retention_days = retention_days
        self.error_log_file: Optional[Path] = None
        if storage_path:
            storage = Path(storage_path)
            storage.mkdir(parents=True, exist_ok=True)
            self.error_log_file = storage / ERROR_LOG_NAME

        self.error_history: List[ErrorContext] = []
        self.operation_counts: Counter = Counter()

    def handle_error(self,
                     error: Exception,
                     category: ErrorCategory,
                     severity: ErrorSeverity,
                     component: str,
                     operation: str,
                     additional_data: Optional[Dict[str, Any]] = None) -> ErrorContext:
        """Log an error, count it against its operation and keep its context.

        Args:
            error: The exception that occurred
            category: Category of the error
            severity: Severity level of the error
            component: Component where the error occurred
            operation: Shell command (``upload``, ``remove``), ``liveness_probe``
                or ``connect.<stage>``
            additional_data: Paths, host or other context for the log line

        Returns:
            ErrorContext object with error details
        """
        context = ErrorContext(
            category=category,
            severity=severity,
            component=component,
            operation=operation,
            error_message=str(error),
            exception_type=type(error).__name__,
            stack_trace="".join(traceback.format_exception(type(error), error, error.__traceback__)),
            additional_data=additional_data or {},
        )

        message = f"{operation} failed [{category.value}]: {context.error_message}"
        if context.additional_data:
            details = ", ".join(f"{k}={v}" for k, v in context.additional_data.items())
            message += f" ({details})"
        self.logger.log(_LOG_LEVELS[severity], message)
        self.logger.debug(f"Traceback for {component}.{operation}:\n{context.stack_trace}")

        self.operation_counts[operation] += 1
        self._append(context)

        self.error_history.append(context)
        del self.error_history[:-MAX_HISTORY]
        return context

    def _append(self, context: ErrorContext) -> None:
        if self.error_log_file is None:
            return
        try:
            with open(self.error_log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(context.to_record(), default=str) + '\n')
        except OSError as e:
            self.logger.warning(f"Failed to store error context: {e}")

    def summarize(self, hours: int = 24) -> SessionErrorSummary:
        """Group the errors of the last ``hours`` by operation and category."""
        cutoff_time = datetime.now() - timedelta(hours=hours)
        summary = SessionErrorSummary()

        for context in self.error_history:
            if context.timestamp < cutoff_time:
                continue
            summary.total += 1
            summary.last_error = f"{context.operation}: {context.error_message}"
            if context.connect_stage is not None:
                summary.connect_stage = context.connect_stage
            if context.category is ErrorCategory.LIVENESS:
                summary.session_lost = True
            per_category = summary.by_operation.setdefault(context.operation, Counter())
            per_category[context.category.value] += 1

        return summary

    def generate_error_report(self, hours: int = 24) -> str:
        """Render the session summary as log-ready lines; empty when nothing failed."""
        summary = self.summarize(hours)
        if summary.total == 0:
            return ""

        lines = [f"Session errors in the last {hours}h: {summary.total}"]
        for operation, categories in sorted(summary.by_operation.items()):
            breakdown = ", ".join(f"{name} {count}" for name, count in categories.most_common())
            lines.append(f"  {operation}: {sum(categories.values())} ({breakdown})")
        if summary.connect_stage is not None:
            lines.append(f"  connect stopped at: {summary.connect_stage}")
        if summary.session_lost:
            lines.append("  session lost: yes")
        lines.append(f"  last error: {summary.last_error}")
        return "\n".join(lines)

    def cleanup_old_error_logs(self, days_to_keep: Optional[int] = None) -> None:
        """Drop error context older than the retention period, in memory and on disk.

        Args:
            days_to_keep: Days to retain (uses the configured value if None; 0 disables)
        """
        retention_days = self.retention_days if days_to_keep is None else days_to_keep
        if retention_days <= 0:
            return

        cutoff_time = datetime.now() - timedelta(days=retention_days)
        self.error_history = [c for c in self.error_history if c.timestamp >= cutoff_time]

        if self.error_log_file is None or not self.error_log_file.exists():
            return

        kept = []
        try:
            for line in self.error_log_file.read_text(encoding='utf-8').splitlines():
                try:
                    recorded = datetime.fromisoformat(json.loads(line)['timestamp'])
                except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                    continue
                if recorded >= cutoff_time:
                    kept.append(line)
            self.error_log_file.write_text("".join(f"{line}\n" for line in kept), encoding='utf-8')
        except OSError as e:
            self.logger.warning(f"Failed to prune {self.error_log_file}: {e}")
            return

        self.logger.info(f"Kept {len(kept)} error records from the last {retention_days} days")


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler(storage_path: Optional[str] = None, retention_days: int = 0) -> ErrorHandler:
    """Return the process-wide ErrorHandler, creating it on first use.

    The arguments only take effect on the call that creates it.
    """
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler(storage_path, retention_days)
    return _global_error_handler


def reset_error_handler() -> None:
    """Forget the global error handler so the next call creates a fresh one."""
    global _global_error_handler
    _global_error_handler = None


def handle_error(error: Exception,
                 category: ErrorCategory,
                 severity: ErrorSeverity,
                 component: str,
                 operation: str,
                 additional_data: Optional[Dict[str, Any]] = None) -> ErrorContext:
    """Record an error on the global handler."""
    return get_error_handler().handle_error(
        error=error,
        category=category,
        severity=severity,
        component=component,
        operation=operation,
        additional_data=additional_data,
    )
