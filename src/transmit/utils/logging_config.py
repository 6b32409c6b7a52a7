"""Logging configuration for the transmit SFTP client.

Standard output carries the shell protocol, so every console handler here
writes to standard error.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional


class ContextFilter(logging.Filter):
    """Adds the process ID to log records."""

    def filter(self, record):
        record.process_id = os.getpid()
        return True


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record):
        """Format the log record with a colored level name."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class LoggingManager:
    """Logging manager writing to stderr and rotating files."""

    def __init__(self, log_dir: Optional[str], app_name: str = "transmit"):
        """Initialize the logging manager.

        Args:
            log_dir: Directory to store log files; console-only logging when None
            app_name: Application name for log files
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.app_name = app_name
        self.main_log_file = None
        self.error_log_file = None

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.main_log_file = self.log_dir / f"{app_name}.log"
            self.error_log_file = self.log_dir / f"{app_name}_errors.log"

    def setup_logging(self,
                      console_level: str = "WARNING",
                      file_level: str = "DEBUG",
                      enable_colors: bool = True,
                      max_file_size: int = 10 * 1024 * 1024,  # 10MB
                      backup_count: int = 5) -> None:
        """Set up console and file logging.

        Args:
            console_level: Logging level for stderr output
            file_level: Logging level for the main log file
            enable_colors: Whether to enable colored console output
            max_file_size: Maximum size of the error log before rotation
            backup_count: Number of rotated error logs to keep
        """
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

        root_logger.setLevel(logging.DEBUG)

        detailed_formatter = logging.Formatter(
            '[%(asctime)s] [%(levelname)-8s] [%(name)s:%(funcName)s:%(lineno)d] '
            '[PID:%(process_id)s] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, console_level.upper()))
        console_format = '[%(asctime)s] [%(levelname)-8s] - %(message)s'
        if enable_colors and sys.stderr.isatty():
            console_handler.setFormatter(ColoredFormatter(console_format, datefmt='%H:%M:%S'))
        else:
            console_handler.setFormatter(logging.Formatter(console_format, datefmt='%H:%M:%S'))
        console_handler.addFilter(ContextFilter())
        root_logger.addHandler(console_handler)

        if self.log_dir is not None:
            # Main log file (rotating by time)
            try:
                main_file_handler = logging.handlers.TimedRotatingFileHandler(
                    self.main_log_file,
                    when='midnight',
                    interval=1,
                    backupCount=30,
                    encoding='utf-8'
                )
                main_file_handler.setLevel(getattr(logging, file_level.upper()))
                main_file_handler.setFormatter(detailed_formatter)
                main_file_handler.addFilter(ContextFilter())
                root_logger.addHandler(main_file_handler)
            except OSError as e:
                print(f"Warning: Could not set up main log file: {e}", file=sys.stderr)

            # Error-only log file (rotating by size)
            try:
                error_file_handler = logging.handlers.RotatingFileHandler(
                    self.error_log_file,
                    maxBytes=max_file_size,
                    backupCount=backup_count,
                    encoding='utf-8'
                )
                error_file_handler.setLevel(logging.ERROR)
                error_file_handler.setFormatter(detailed_formatter)
                error_file_handler.addFilter(ContextFilter())
                root_logger.addHandler(error_file_handler)
            except OSError as e:
                print(f"Warning: Could not set up error log file: {e}", file=sys.stderr)

        self._configure_third_party_loggers()

        logger = logging.getLogger(__name__)
        logger.info(f"Logging system initialized - Console: {console_level}, File: {file_level}")
        if self.log_dir is not None:
            logger.info(f"Log directory: {self.log_dir}")

    def _configure_third_party_loggers(self):
        """Configure third-party library loggers to reduce noise."""
        third_party_configs = {
            'paramiko': logging.WARNING,
            'paramiko.transport': logging.ERROR,
            'paramiko.transport.sftp': logging.WARNING,
        }

        for logger_name, level in third_party_configs.items():
            logging.getLogger(logger_name).setLevel(level)


def setup_logging(log_dir: Optional[str],
                  console_level: str = "WARNING",
                  file_level: str = "DEBUG",
                  enable_colors: bool = True) -> LoggingManager:
    """Convenience function to set up logging.

    Args:
        log_dir: Directory to store log files
        console_level: Logging level for stderr output
        file_level: Logging level for file output
        enable_colors: Whether to enable colored console output

    Returns:
        Configured LoggingManager instance
    """
    manager = LoggingManager(log_dir)
    manager.setup_logging(
        console_level=console_level,
        file_level=file_level,
        enable_colors=enable_colors
    )
    return manager
