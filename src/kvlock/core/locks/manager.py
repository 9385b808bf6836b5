"""Lock manager driving acquisition against an atomic key store."""

from __future__ import annotations

import logging
import math
import random
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from kvlock.core.config import LockConfig, StoreBackend, StoreConfig
from kvlock.core.constants import DEFAULT_STORE
from kvlock.core.env import derive_stale_timeout, load_lock_config, load_store_config, resolve_execution_budget
from kvlock.core.exceptions import ConfigurationError, LockNotAcquiredError, StoreError
from kvlock.core.locks.stores import AtomicKeyStore, FileKeyStore, MemoryKeyStore, SQLiteKeyStore
from kvlock.core.logging import with_log_context


def create_key_store(
    backend_name: str | None = None,
    *,
    path: str | None = None,
    table: str | None = None,
    logger: logging.Logger | None = None,
) -> AtomicKeyStore:
    """Create a key store by name, or from the KVLOCK_STORE* environment when no name is given."""
    log = logger or logging.getLogger(__name__)
    if backend_name is None:
        env_config = load_store_config()
        backend_name = env_config.backend
        path = path or env_config.path
        table = table or env_config.table
    requested = backend_name.strip().lower()
    table = table or DEFAULT_STORE.table

    if requested == StoreBackend.MEMORY.value:
        return MemoryKeyStore()

    if requested == StoreBackend.SQLITE.value:
        if path is None:
            log.warning("No path configured for sqlite store; using a private in-memory database")
            return SQLiteKeyStore(":memory:", table=table)
        return SQLiteKeyStore(path, table=table)

    if requested == StoreBackend.FILE.value:
        if path is None:
            raise ConfigurationError("file store requires a directory path", field="path")
        return FileKeyStore(path)

    log.warning("Unknown key store '%s'; falling back to memory store", requested)
    return create_key_store(StoreBackend.MEMORY.value, logger=log)


def create_key_store_from_config(config: StoreConfig, *, logger: logging.Logger | None = None) -> AtomicKeyStore:
    return create_key_store(config.backend, path=config.path, table=config.table, logger=logger)


def generate_sleep_duration(min_sleep: float, max_sleep: float, rng: random.Random | None = None) -> float:
    """Uniform draw in [min_sleep, max_sleep], inclusive.

    Draws whole milliseconds inside the window. Windows too narrow to hold a
    whole millisecond fall back to a continuous draw.
    """
    source = rng or random
    low = math.ceil(min_sleep * 1000)
    high = math.floor(max_sleep * 1000)
    if low > high:
        duration = source.uniform(min_sleep, max_sleep)
    else:
        duration = source.randint(low, high) / 1000
    # Float arithmetic can land a hair outside the window.
    return min(max(duration, min_sleep), max_sleep)


class AcquireStatus(Enum):
    """Outcome of a single acquire call."""

    ACQUIRED = "acquired"
    TIMEOUT = "timeout"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass
class AcquireResult:
    """Detailed outcome of an acquire call."""

    status: AcquireStatus
    attempts: int
    elapsed: float
    reclaimed: bool = False

    @property
    def acquired(self) -> bool:
        return self.status == AcquireStatus.ACQUIRED


class LockManager:
    """Polling mutual-exclusion lock for one key in a shared key store.

    The store's insert-if-absent is the only correctness mechanism; the
    manager keeps no authoritative state between calls and may be discarded
    and recreated at any time. Not reentrant and not fair.
    """

    def __init__(
        self,
        lock_key: str,
        store: AtomicKeyStore,
        *,
        execution_budget: float | None = None,
        config: LockConfig | None = None,
        max_attempts: int | None = None,
        acquire_timeout: float | None = None,
        min_sleep: float | None = None,
        max_sleep: float | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ):
        if not isinstance(lock_key, str) or not lock_key:
            raise ConfigurationError("lock_key must be a non-empty string", field="lock_key")

        config = config or load_lock_config()
        config = LockConfig(
            max_attempts=config.max_attempts if max_attempts is None else max_attempts,
            acquire_timeout=config.acquire_timeout if acquire_timeout is None else acquire_timeout,
            min_sleep=config.min_sleep if min_sleep is None else min_sleep,
            max_sleep=config.max_sleep if max_sleep is None else max_sleep,
            stale_timeout_floor=config.stale_timeout_floor,
        )
        config.validate()

        self.lock_key = lock_key
        self.store = store
        self.max_attempts = config.max_attempts
        self.acquire_timeout = config.acquire_timeout
        self.min_sleep = config.min_sleep
        self.max_sleep = config.max_sleep
        self.stale_timeout = derive_stale_timeout(
            resolve_execution_budget(execution_budget), config.stale_timeout_floor
        )

        self._rng = rng
        self._clock = clock
        self.logger = with_log_context(logger or logging.getLogger(__name__), lock_key=lock_key)

    def acquire(self, cancel: threading.Event | None = None) -> bool:
        """Attempt to acquire the lock. Returns True once held, False on timeout, exhaustion or cancel."""
        return self.acquire_result(cancel).acquired

    def acquire_result(self, cancel: threading.Event | None = None) -> AcquireResult:
        """Run the acquisition loop and report how it ended."""
        attempt = 0
        start_time = self._clock()

        while attempt < self.max_attempts:
            if self._is_timeout_exceeded(start_time):
                self.logger.error(
                    "Timeout: unable to acquire lock %s within %s seconds", self.lock_key, self.acquire_timeout
                )
                return self._result(AcquireStatus.TIMEOUT, attempt, start_time)

            if cancel is not None and cancel.is_set():
                self.logger.info("Acquisition of lock %s cancelled after %d attempt(s)", self.lock_key, attempt)
                return self._result(AcquireStatus.CANCELLED, attempt, start_time)

            attempt += 1
            if self.attempt_lock():
                return self._result(AcquireStatus.ACQUIRED, attempt, start_time)

            if self._reclaim_if_stale() and self.attempt_lock():
                return self._result(AcquireStatus.ACQUIRED, attempt, start_time, reclaimed=True)

            # No sleep after the final attempt.
            if attempt >= self.max_attempts:
                break

            if self._sleep_between_attempts(cancel):
                self.logger.info("Acquisition of lock %s cancelled after %d attempt(s)", self.lock_key, attempt)
                return self._result(AcquireStatus.CANCELLED, attempt, start_time)

        self.logger.warning("Unable to acquire lock %s after %d attempts", self.lock_key, attempt)
        return self._result(AcquireStatus.EXHAUSTED, attempt, start_time)

    def attempt_lock(self) -> bool:
        """One atomic insert-if-absent stamped by the store clock."""
        try:
            return self.store.insert_if_absent(self.lock_key)
        except StoreError as e:
            self.logger.warning("Lock attempt for %s failed: %s", self.lock_key, e)
            return False

    def release_lock(self) -> None:
        """Delete the lock record. Idempotent; store failures are logged, never raised."""
        try:
            self.store.delete(self.lock_key)
        except StoreError as e:
            self.logger.error("Failed to release lock %s: %s", self.lock_key, e)

    @contextmanager
    def hold(self, cancel: threading.Event | None = None) -> Iterator[LockManager]:
        """Run a critical section under the lock, releasing it on exit."""
        result = self.acquire_result(cancel)
        if not result.acquired:
            raise LockNotAcquiredError(self.lock_key, reason=result.status.value, attempts=result.attempts)
        try:
            yield self
        finally:
            self.release_lock()

    def read_acquired_at(self) -> int | None:
        """Read the record timestamp for diagnostics."""
        try:
            return self.store.get(self.lock_key)
        except StoreError as e:
            self.logger.warning("Unable to read lock %s: %s", self.lock_key, e)
            return None

    def is_locked(self) -> bool:
        return self.read_acquired_at() is not None

    def generate_sleep_duration(self) -> float:
        return generate_sleep_duration(self.min_sleep, self.max_sleep, self._rng)

    def _is_timeout_exceeded(self, start_time: float) -> bool:
        return self._clock() - start_time >= self.acquire_timeout

    def _is_lock_stale(self, age: float) -> bool:
        return age > self.stale_timeout

    def _reclaim_if_stale(self) -> bool:
        """Force-delete the current record if it is older than the stale timeout.

        The delete is unconditional, so a holder that releases concurrently can
        race with it. The stale timeout exceeds any live holder's runtime, so a
        record that old has no running owner.
        """
        try:
            acquired_at = self.store.get(self.lock_key)
            if acquired_at is None:
                return False
            age = self.store.now() - acquired_at
            if not self._is_lock_stale(age):
                return False
            self.logger.warning(
                "Reclaiming stale lock %s (age %ss > stale timeout %ss)", self.lock_key, age, self.stale_timeout
            )
            self.store.delete(self.lock_key)
        except StoreError as e:
            self.logger.warning("Stale check for lock %s failed: %s", self.lock_key, e)
            return False
        return True

    def _sleep_between_attempts(self, cancel: threading.Event | None) -> bool:
        """Sleep a jittered duration. Returns True if cancelled while waiting."""
        duration = self.generate_sleep_duration()
        if cancel is None:
            time.sleep(duration)
            return False
        return cancel.wait(duration)

    def _result(
        self, status: AcquireStatus, attempts: int, start_time: float, *, reclaimed: bool = False
    ) -> AcquireResult:
        return AcquireResult(
            status=status,
            attempts=attempts,
            elapsed=self._clock() - start_time,
            reclaimed=reclaimed,
        )
