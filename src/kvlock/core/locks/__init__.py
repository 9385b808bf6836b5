"""Locking subsystem for cross-process coordination.

This package keeps the acquisition algorithm behind a small store
abstraction so callers can pick any backing store offering an atomic
insert-if-absent.
"""

from kvlock.core.locks.manager import (
    AcquireResult,
    AcquireStatus,
    LockManager,
    create_key_store,
    create_key_store_from_config,
    generate_sleep_duration,
)
from kvlock.core.locks.stores import AtomicKeyStore, FileKeyStore, MemoryKeyStore, SQLiteKeyStore

__all__ = [
    "AcquireResult",
    "AcquireStatus",
    "AtomicKeyStore",
    "FileKeyStore",
    "LockManager",
    "MemoryKeyStore",
    "SQLiteKeyStore",
    "create_key_store",
    "create_key_store_from_config",
    "generate_sleep_duration",
]
