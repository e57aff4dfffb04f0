"""Common utilities for shuk."""

from .config import ConfigLoader, user_config_dir
from .logging import setup_logging, LogContext
from .logging_config import LoggingConfig
from .errors import (
    ShukError, LocalIoError, RemoteServiceError, ForeignObjectError,
    ConfigurationError
)
from .checksums import md5_hex, compute_md5_hex

__all__ = [
    'ConfigLoader',
    'user_config_dir',
    'LoggingConfig',
    'setup_logging',
    'LogContext',
    'ShukError',
    'LocalIoError',
    'RemoteServiceError',
    'ForeignObjectError',
    'ConfigurationError',
    'md5_hex',
    'compute_md5_hex',
]
