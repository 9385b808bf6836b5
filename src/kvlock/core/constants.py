"""Constants and default values for kvlock.

This module centralizes the default configuration instances and the
environment variable names read by ``kvlock.core.env``.
"""

from kvlock.core.config import LockConfig, LogConfig, StoreConfig

# ==================== LOGGING DEFAULTS ====================

LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB max per log file
LOG_FILE_BACKUP_COUNT: int = 5  # Number of backup log files to keep
VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ==================== DEFAULT CONFIG INSTANCES ====================

DEFAULT_LOCK = LockConfig()
DEFAULT_STORE = StoreConfig()
DEFAULT_LOG = LogConfig()

# Records younger than this are never reclaimed, whatever the execution budget.
DEFAULT_STALE_TIMEOUT_FLOOR: float = DEFAULT_LOCK.stale_timeout_floor

# ==================== ENVIRONMENT VARIABLES ====================

ENV_MAX_EXECUTION_TIME = "KVLOCK_MAX_EXECUTION_TIME"
ENV_STORE = "KVLOCK_STORE"
ENV_STORE_PATH = "KVLOCK_STORE_PATH"
ENV_STORE_TABLE = "KVLOCK_STORE_TABLE"

# LockConfig field -> (environment variable, parser)
LOCK_ENV_VAR_MAPPING: dict[str, tuple[str, type]] = {
    "max_attempts": ("KVLOCK_MAX_ATTEMPTS", int),
    "acquire_timeout": ("KVLOCK_ACQUIRE_TIMEOUT", float),
    "min_sleep": ("KVLOCK_MIN_SLEEP", float),
    "max_sleep": ("KVLOCK_MAX_SLEEP", float),
    "stale_timeout_floor": ("KVLOCK_STALE_TIMEOUT_FLOOR", float),
}
