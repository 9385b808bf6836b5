"""
kvlock - Polling distributed locks over a shared key-value store

Serializes a named critical section across processes that share nothing
but a store offering an atomic insert-if-absent.
"""

from kvlock.core.exceptions import ConfigurationError, KVLockError, LockNotAcquiredError, StoreError
from kvlock.core.locks import (
    AcquireResult,
    AcquireStatus,
    AtomicKeyStore,
    FileKeyStore,
    LockManager,
    MemoryKeyStore,
    SQLiteKeyStore,
    create_key_store,
)
from kvlock.core.version import __version__

__all__ = [
    "__version__",
    "AcquireResult",
    "AcquireStatus",
    "AtomicKeyStore",
    "ConfigurationError",
    "FileKeyStore",
    "KVLockError",
    "LockManager",
    "LockNotAcquiredError",
    "MemoryKeyStore",
    "SQLiteKeyStore",
    "StoreError",
    "create_key_store",
]
