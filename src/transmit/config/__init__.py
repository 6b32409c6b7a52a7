# Configuration module

from .models import (
    Credentials,
    SFTPConfig,
    TransferConfig,
    LoggingConfig,
    AUTH_METHOD_KEY,
    AUTH_METHOD_PASSWORD,
)
from .settings import ConfigManager, ConfigurationError

__all__ = [
    'Credentials',
    'SFTPConfig',
    'TransferConfig',
    'LoggingConfig',
    'AUTH_METHOD_KEY',
    'AUTH_METHOD_PASSWORD',
    'ConfigManager',
    'ConfigurationError',
]
