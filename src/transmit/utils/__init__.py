# Utilities module

from .error_handler import (
    ErrorCategory,
    ErrorSeverity,
    ErrorHandler,
    get_error_handler,
    handle_error,
)
from .logging_config import LoggingManager, setup_logging

__all__ = [
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorHandler',
    'get_error_handler',
    'handle_error',
    'LoggingManager',
    'setup_logging',
]
