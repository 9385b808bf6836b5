"""Core module - Foundation components for kvlock.

This module provides the building blocks used throughout the package:
- Version information
- Custom exceptions
- Configuration dataclasses and environment loading
- Constants and defaults
- Logging helpers
"""

from kvlock.core.version import __version__

from kvlock.core.exceptions import (
    KVLockError,
    ConfigurationError,
    StoreError,
    LockNotAcquiredError,
)

from kvlock.core.config import (
    LockConfig,
    StoreBackend,
    StoreConfig,
    LogConfig,
)

from kvlock.core.constants import (
    DEFAULT_LOCK,
    DEFAULT_STORE,
    DEFAULT_LOG,
    DEFAULT_STALE_TIMEOUT_FLOOR,
    LOG_FILE_MAX_BYTES,
    LOG_FILE_BACKUP_COUNT,
    LOCK_ENV_VAR_MAPPING,
)

from kvlock.core.env import (
    load_lock_config,
    load_store_config,
    resolve_execution_budget,
    derive_stale_timeout,
)

from kvlock.core.logging import (
    JSONFormatter,
    ContextLoggerAdapter,
    setup_logging,
    with_log_context,
)

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'KVLockError',
    'ConfigurationError',
    'StoreError',
    'LockNotAcquiredError',
    # Config
    'LockConfig',
    'StoreBackend',
    'StoreConfig',
    'LogConfig',
    # Constants
    'DEFAULT_LOCK',
    'DEFAULT_STORE',
    'DEFAULT_LOG',
    'DEFAULT_STALE_TIMEOUT_FLOOR',
    'LOG_FILE_MAX_BYTES',
    'LOG_FILE_BACKUP_COUNT',
    'LOCK_ENV_VAR_MAPPING',
    # Environment
    'load_lock_config',
    'load_store_config',
    'resolve_execution_budget',
    'derive_stale_timeout',
    # Logging
    'JSONFormatter',
    'ContextLoggerAdapter',
    'setup_logging',
    'with_log_context',
]
