"""Configuration manager for the transmit SFTP client."""

import logging
import os
from typing import Dict, Any, Optional
from dotenv import load_dotenv

from .models import (
    AUTH_METHODS, SFTPConfig, TransferConfig, LoggingConfig
)


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""
    pass


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def _expand(value: Optional[str]) -> Optional[str]:
    value = _optional(value)
    return os.path.expanduser(value) if value else None


class ConfigManager:
    """Loads transmit configuration from the environment and an optional .env file."""

    def __init__(self, env_file: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            env_file: Explicit .env file to load; the default lookup is used when None
        """
        load_dotenv(dotenv_path=env_file)
        self._config = self._load_config()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        try:
            return {
                # Remote server
                'TRANSMIT_HOST': _optional(os.getenv('TRANSMIT_HOST')),
                'TRANSMIT_PORT': int(os.getenv('TRANSMIT_PORT', '22')),
                'TRANSMIT_USERNAME': _optional(os.getenv('TRANSMIT_USERNAME')),
                'TRANSMIT_AUTH_METHOD': _optional(os.getenv('TRANSMIT_AUTH_METHOD')),
                'TRANSMIT_PRIVATE_KEY': _expand(os.getenv('TRANSMIT_PRIVATE_KEY')),
                'TRANSMIT_PASSPHRASE': os.getenv('TRANSMIT_PASSPHRASE') or None,
                'TRANSMIT_PASSWORD': os.getenv('TRANSMIT_PASSWORD') or None,
                'TRANSMIT_KNOWN_HOSTS': _expand(os.getenv('TRANSMIT_KNOWN_HOSTS')),
                'TRANSMIT_CONNECT_TIMEOUT': float(os.getenv('TRANSMIT_CONNECT_TIMEOUT', '30')),

                # Transfers
                'TRANSMIT_CHUNK_SIZE': int(os.getenv('TRANSMIT_CHUNK_SIZE', '32768')),

                # Logging (0 = retention disabled)
                'TRANSMIT_LOG_DIR': os.getenv('TRANSMIT_LOG_DIR', './logs'),
                'TRANSMIT_LOG_LEVEL': os.getenv('TRANSMIT_LOG_LEVEL', 'WARNING').upper(),
                'TRANSMIT_ERROR_LOG_RETENTION_DAYS': int(os.getenv('TRANSMIT_ERROR_LOG_RETENTION_DAYS', '0')),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric configuration value: {e}")

    def _validate_config(self) -> None:
        """Validate configuration values that have a fixed domain."""
        if not (1 <= self._config['TRANSMIT_PORT'] <= 65535):
            raise ConfigurationError("TRANSMIT_PORT must be between 1 and 65535")

        auth_method = self._config['TRANSMIT_AUTH_METHOD']
        if auth_method is not None:
            auth_method = auth_method.lower()
            if auth_method not in AUTH_METHODS:
                raise ConfigurationError(
                    f"TRANSMIT_AUTH_METHOD must be one of: {', '.join(AUTH_METHODS)}"
                )
            self._config['TRANSMIT_AUTH_METHOD'] = auth_method

        if self._config['TRANSMIT_CONNECT_TIMEOUT'] <= 0:
            raise ConfigurationError("TRANSMIT_CONNECT_TIMEOUT must be greater than 0")

        if self._config['TRANSMIT_CHUNK_SIZE'] < 1:
            raise ConfigurationError("TRANSMIT_CHUNK_SIZE must be at least 1")

        if not isinstance(logging.getLevelName(self._config['TRANSMIT_LOG_LEVEL']), int):
            raise ConfigurationError(
                f"TRANSMIT_LOG_LEVEL is not a logging level: {self._config['TRANSMIT_LOG_LEVEL']}"
            )

        if self._config['TRANSMIT_ERROR_LOG_RETENTION_DAYS'] < 0:
            raise ConfigurationError("TRANSMIT_ERROR_LOG_RETENTION_DAYS cannot be negative")

    def get_sftp_config(self) -> SFTPConfig:
        """Get remote SFTP server configuration."""
        return SFTPConfig(
            host=self._config['TRANSMIT_HOST'],
            port=self._config['TRANSMIT_PORT'],
            username=self._config['TRANSMIT_USERNAME'],
            auth_method=self._config['TRANSMIT_AUTH_METHOD'],
            private_key_path=self._config['TRANSMIT_PRIVATE_KEY'],
            passphrase=self._config['TRANSMIT_PASSPHRASE'],
            password=self._config['TRANSMIT_PASSWORD'],
            known_hosts_path=self._config['TRANSMIT_KNOWN_HOSTS'],
            connect_timeout=self._config['TRANSMIT_CONNECT_TIMEOUT'],
        )

    def get_transfer_config(self) -> TransferConfig:
        """Get file transfer configuration."""
        return TransferConfig(chunk_size=self._config['TRANSMIT_CHUNK_SIZE'])

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return LoggingConfig(
            log_dir=self._config['TRANSMIT_LOG_DIR'],
            console_level=self._config['TRANSMIT_LOG_LEVEL'],
            error_log_retention_days=self._config['TRANSMIT_ERROR_LOG_RETENTION_DAYS'],
        )

    def get_config_value(self, key: str, default: Any = None) -> Any:
        """Get a specific configuration value."""
        return self._config.get(key, default)
