"""Main entry point for the transmit SFTP shell."""

import argparse
import getpass
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config.models import AUTH_METHOD_KEY, AUTH_METHOD_PASSWORD, SFTPConfig
from .config.settings import ConfigManager, ConfigurationError
from .sftp.errors import ConnectError
from .sftp.session import SessionManager
from .shell import TransmitShell
from .utils.error_handler import ErrorSeverity, get_error_handler, handle_error
from .utils.logging_config import setup_logging


logger = logging.getLogger(__name__)


class InputClosedError(Exception):
    """Raised when standard input ends while prompting for connection details."""
    pass


def emit(line: str) -> None:
    """Write one protocol line to standard output."""
    print(line, flush=True)


def signal_handler(signum, frame):
    """Turn SIGTERM into a normal exit so the session is closed on the way out."""
    logger.info(f"Received signal {signum}, closing session...")
    raise SystemExit(0)


def _ask(prompt: str, label: str, secret: bool = False) -> str:
    try:
        if secret:
            value = getpass.getpass(prompt)
        else:
            value = input(prompt)
    except EOFError:
        raise InputClosedError(f"Failed to read {label}")
    return value.strip() if not secret else value


def prompt_missing_settings(sftp_config: SFTPConfig) -> SFTPConfig:
    """
    Ask on the terminal for connection details the configuration left empty.

    Raises:
        InputClosedError: If input ends before a required value is read
    """
    if not sftp_config.host:
        sftp_config.host = _ask("Enter SSH hostname: ", "hostname")
    if not sftp_config.username:
        sftp_config.username = _ask("Enter SSH username: ", "username")
    if not sftp_config.auth_method:
        method = _ask("Authentication method (key/password): ", "auth method").lower()
        sftp_config.auth_method = AUTH_METHOD_PASSWORD if method == AUTH_METHOD_PASSWORD else AUTH_METHOD_KEY

    if sftp_config.auth_method == AUTH_METHOD_PASSWORD:
        if sftp_config.password is None:
            sftp_config.password = _ask("Enter password: ", "password", secret=True)
    elif not sftp_config.private_key_path:
        sftp_config.private_key_path = os.path.expanduser(
            _ask("Enter path to private key: ", "private key path")
        )

    return sftp_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transmit",
        description="Interactive SFTP shell: upload <local> <remote> | remove <remote> | exit",
    )
    parser.add_argument("--env-file", default=None,
                        help="Load settings from this .env file instead of the default lookup")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)

    try:
        config_manager = ConfigManager(env_file=args.env_file)
    except ConfigurationError as e:
        emit(f"0|Configuration error: {e}")
        return 1

    logging_config = config_manager.get_logging_config()
    log_dir = Path(logging_config.log_dir)
    setup_logging(
        log_dir=str(log_dir),
        console_level=logging_config.console_level,
        file_level=logging_config.file_level,
    )
    error_handler = get_error_handler(
        str(log_dir / "error_context"), logging_config.error_log_retention_days
    )

    logger.info("=" * 60)
    logger.info("transmit starting up")
    logger.info(f"Python version: {sys.version}")
    logger.info("=" * 60)

    try:
        sftp_config = prompt_missing_settings(config_manager.get_sftp_config())
    except InputClosedError as e:
        emit(f"0|{e}")
        return 1

    session_manager = SessionManager(
        timeout=sftp_config.connect_timeout,
        known_hosts_path=sftp_config.known_hosts_path,
    )

    try:
        session = session_manager.connect(sftp_config.host, sftp_config.port, sftp_config.credentials())
    except ConnectError as e:
        handle_error(
            error=e,
            category=e.category,
            severity=ErrorSeverity.CRITICAL,
            component="main",
            operation=f"connect.{e.stage}",
            additional_data={
                "host": sftp_config.host,
                "port": sftp_config.port,
                "username": sftp_config.username,
            }
        )
        emit(f"0|Failed to establish SFTP session with {sftp_config.auth_method}: {e}")
        return 1

    emit(f"1|Connected to {sftp_config.host} as {sftp_config.username}")
    signal.signal(signal.SIGTERM, signal_handler)

    exit_code = 1
    try:
        shell = TransmitShell(
            session_manager,
            session,
            chunk_size=config_manager.get_transfer_config().chunk_size,
        )
        exit_code = shell.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, closing session...")
    finally:
        session_manager.close(session)
        emit("1|Session closed")

        for line in error_handler.generate_error_report(hours=24).splitlines():
            logger.info(line)
        error_handler.cleanup_old_error_logs()
        logger.info("transmit shutdown complete")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
