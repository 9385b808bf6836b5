"""Configuration dataclasses for kvlock.

These dataclasses centralize the tunable lock, store and logging options
for type safety and easy testing. They can be built from environment
variables (see ``kvlock.core.env``) or constructed directly in code.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from kvlock.core.exceptions import ConfigurationError


@dataclass
class LockConfig:
    """Configuration for lock acquisition.

    Attributes:
        max_attempts: Maximum insert attempts per acquire call (default: 10)
        acquire_timeout: Wall-clock seconds an acquire call may spend (default: 5.0)
        min_sleep: Lower bound of the jittered backoff in seconds (default: 0.1)
        max_sleep: Upper bound of the jittered backoff in seconds (default: 0.5)
        stale_timeout_floor: Minimum age in seconds before a record counts as stale (default: 15.0)
    """

    max_attempts: int = 10
    acquire_timeout: float = 5.0
    min_sleep: float = 0.1
    max_sleep: float = 0.5
    stale_timeout_floor: float = 15.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "acquire_timeout": self.acquire_timeout,
            "min_sleep": self.min_sleep,
            "max_sleep": self.max_sleep,
            "stale_timeout_floor": self.stale_timeout_floor,
        }

    def validate(self) -> None:
        """Raise ConfigurationError if any value is outside its allowed range."""
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1", field="max_attempts")
        if self.acquire_timeout <= 0:
            raise ConfigurationError("acquire_timeout must be positive", field="acquire_timeout")
        if self.min_sleep < 0:
            raise ConfigurationError("min_sleep must not be negative", field="min_sleep")
        if self.max_sleep < self.min_sleep:
            raise ConfigurationError(
                "max_sleep must not be lower than min_sleep",
                field="max_sleep",
                details=f"min_sleep={self.min_sleep}, max_sleep={self.max_sleep}",
            )
        if self.stale_timeout_floor <= 0:
            raise ConfigurationError("stale_timeout_floor must be positive", field="stale_timeout_floor")


class StoreBackend(Enum):
    """Key store implementations shipped with kvlock."""

    MEMORY = "memory"
    SQLITE = "sqlite"
    FILE = "file"


@dataclass
class StoreConfig:
    """Configuration for the shared key store.

    Attributes:
        backend: Store implementation name (default: "memory")
        path: Database file for sqlite, directory for file (default: None)
        table: Table holding lock records for sqlite (default: "kvlock_records")
    """

    backend: str = StoreBackend.MEMORY.value
    path: str | None = None
    table: str = "kvlock_records"


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        format: "text" or "json" (default: "text")
        file_max_bytes: Maximum size per log file (default: 10MB)
        file_backup_count: Number of backup log files (default: 5)
    """

    level: str = "INFO"
    format: str = "text"
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5
