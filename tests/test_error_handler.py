"""
Unit tests for error tracking and logging setup.
"""

import json
import logging
import sys
from datetime import datetime, timedelta

import pytest

from transmit.sftp.errors import AuthError, LivenessLost, RemoteProtocolError
from transmit.utils.error_handler import (
    ErrorCategory,
    ErrorHandler,
    ErrorSeverity,
    get_error_handler,
    handle_error,
    reset_error_handler,
)
from transmit.utils.logging_config import ColoredFormatter, setup_logging


def _record(handler, error=None, category=ErrorCategory.REMOTE_PROTOCOL,
            severity=ErrorSeverity.HIGH, operation="remove"):
    return handler.handle_error(
        error=error or RemoteProtocolError("Failed to delete file: a.txt (Permission denied)"),
        category=category,
        severity=severity,
        component="TransmitShell",
        operation=operation,
        additional_data={"remote_path": "a.txt"},
    )


class TestErrorHandler:
    def test_context_captures_error(self):
        handler = ErrorHandler()

        context = _record(handler)

        assert context.exception_type == "RemoteProtocolError"
        assert context.error_message.startswith("Failed to delete file")
        assert context.component == "TransmitShell"
        assert handler.error_history == [context]
        assert handler.operation_counts == {"remove": 1}

    def test_in_memory_handler_writes_nothing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        handler = ErrorHandler()

        _record(handler)

        assert handler.error_log_file is None
        assert list(tmp_path.iterdir()) == []

    def test_contexts_are_persisted_as_json_lines(self, tmp_path):
        handler = ErrorHandler(storage_path=str(tmp_path / "errors"))

        _record(handler)
        _record(handler, LivenessLost("SFTP session lost"), ErrorCategory.LIVENESS,
                ErrorSeverity.CRITICAL, "liveness_probe")

        lines = (tmp_path / "errors" / "error_context.jsonl").read_text().splitlines()
        records = [json.loads(line) for line in lines]
        assert [r["category"] for r in records] == ["remote_protocol", "liveness"]
        assert records[1]["severity"] == "critical"
        assert records[0]["additional_data"] == {"remote_path": "a.txt"}

    def test_severity_maps_to_log_level(self, caplog):
        handler = ErrorHandler()

        with caplog.at_level(logging.DEBUG, logger="transmit.utils.error_handler"):
            _record(handler, severity=ErrorSeverity.CRITICAL)
            _record(handler, severity=ErrorSeverity.MEDIUM)

        levels = [r.levelno for r in caplog.records if r.levelno >= logging.WARNING]
        assert levels == [logging.CRITICAL, logging.WARNING]

    def test_history_is_bounded(self):
        handler = ErrorHandler()

        for _ in range(1005):
            _record(handler)

        assert len(handler.error_history) == 1000

    def test_summary_groups_by_operation(self):
        handler = ErrorHandler()
        _record(handler)
        _record(handler, operation="upload")
        _record(handler, LivenessLost("lost"), ErrorCategory.LIVENESS, ErrorSeverity.CRITICAL,
                "liveness_probe")

        summary = handler.summarize(hours=1)

        assert summary.total == 3
        assert summary.by_operation["remove"] == {"remote_protocol": 1}
        assert summary.by_operation["liveness_probe"] == {"liveness": 1}
        assert summary.session_lost is True
        assert summary.connect_stage is None
        assert summary.last_error == "liveness_probe: lost"

    def test_connect_stage_is_reported(self):
        handler = ErrorHandler()
        _record(handler, AuthError("Authentication failed."), ErrorCategory.AUTHENTICATION,
                ErrorSeverity.CRITICAL, "connect.auth")

        report = handler.generate_error_report(hours=1)

        assert handler.summarize().connect_stage == "auth"
        assert "Session errors in the last 1h: 1" in report
        assert "  connect.auth: 1 (authentication 1)" in report
        assert "  connect stopped at: auth" in report
        assert "session lost" not in report

    def test_report_is_empty_without_errors(self):
        assert ErrorHandler().generate_error_report() == ""

    def test_cleanup_drops_old_entries(self, tmp_path):
        handler = ErrorHandler(storage_path=str(tmp_path), retention_days=7)
        old = _record(handler)
        old.timestamp = datetime.now() - timedelta(days=30)
        _record(handler)

        log_file = tmp_path / "error_context.jsonl"
        lines = log_file.read_text().splitlines()
        stale = json.loads(lines[0])
        stale["timestamp"] = old.timestamp.isoformat()
        log_file.write_text(json.dumps(stale) + "\n" + lines[1] + "\n" + "not json\n")

        handler.cleanup_old_error_logs()

        assert len(handler.error_history) == 1
        assert log_file.read_text().splitlines() == [lines[1]]

    def test_cleanup_disabled_by_default(self, tmp_path):
        handler = ErrorHandler(storage_path=str(tmp_path))
        old = _record(handler)
        old.timestamp = datetime.now() - timedelta(days=365)

        handler.cleanup_old_error_logs()

        assert handler.error_history == [old]


class TestGlobalHandler:
    def test_global_handler_is_shared(self):
        assert get_error_handler() is get_error_handler()

    def test_reset_creates_fresh_handler(self):
        first = get_error_handler()
        handle_error(RuntimeError("x"), ErrorCategory.UNKNOWN, ErrorSeverity.LOW, "test", "op")

        reset_error_handler()

        assert get_error_handler() is not first
        assert get_error_handler().error_history == []


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestLoggingSetup:
    def test_console_and_file_handlers(self, tmp_path, restore_root_logger):
        manager = setup_logging(str(tmp_path), console_level="ERROR", enable_colors=False)

        root = restore_root_logger
        streams = [h for h in root.handlers if type(h) is logging.StreamHandler]
        assert len(streams) == 1
        assert streams[0].stream is sys.stderr
        assert streams[0].level == logging.ERROR
        assert manager.main_log_file == tmp_path / "transmit.log"

        logging.getLogger("transmit.test").error("disk full")
        for handler in root.handlers:
            handler.flush()

        assert "disk full" in manager.main_log_file.read_text()
        assert "disk full" in manager.error_log_file.read_text()

    def test_console_only_without_log_dir(self, restore_root_logger):
        manager = setup_logging(None)

        assert manager.main_log_file is None
        assert all(type(h) is logging.StreamHandler for h in restore_root_logger.handlers)

    def test_paramiko_is_quieted(self, tmp_path, restore_root_logger):
        setup_logging(str(tmp_path))

        assert logging.getLogger("paramiko.transport").level == logging.ERROR

    def test_colored_formatter_restores_level_name(self):
        formatter = ColoredFormatter("%(levelname)s %(message)s")
        record = logging.LogRecord("t", logging.ERROR, __file__, 1, "boom", None, None)

        assert "\033[31mERROR" in formatter.format(record)
        assert record.levelname == "ERROR"
