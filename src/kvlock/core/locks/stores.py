"""Atomic key store implementations.

Design principles:
- Ownership is defined solely by the store's insert-if-absent atomicity.
- A record is only ever created, read, or deleted; never updated in place.
- Stores raise StoreError for backend failures and leave retry policy to
  the lock manager.
"""

from __future__ import annotations

import contextlib
import os
import re
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from kvlock.core.exceptions import ConfigurationError, StoreError

_SAFE_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class AtomicKeyStore(Protocol):
    """Shared persistence contract consumed by the lock manager."""

    name: str

    def insert_if_absent(self, key: str, value: int | None = None) -> bool:
        """Atomically create the record only if absent. Returns whether it was created.

        When ``value`` is None the store stamps the record with its own clock.
        """

    def get(self, key: str) -> int | None:
        """Return the stored timestamp, or None if no readable record exists."""

    def delete(self, key: str) -> None:
        """Remove the record if present; no-op otherwise."""

    def now(self) -> int:
        """Current time in Unix seconds according to the store's clock."""


class MemoryKeyStore:
    """In-process store backed by a dict guarded by a mutex.

    Only coordinates threads within one interpreter. The clock is injectable
    so record ages can be simulated in tests.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._records: dict[str, int] = {}
        self._mutex = threading.Lock()

    def insert_if_absent(self, key: str, value: int | None = None) -> bool:
        with self._mutex:
            if key in self._records:
                return False
            self._records[key] = self.now() if value is None else int(value)
            return True

    def get(self, key: str) -> int | None:
        with self._mutex:
            return self._records.get(key)

    def delete(self, key: str) -> None:
        with self._mutex:
            self._records.pop(key, None)

    def now(self) -> int:
        return int(self._clock())

    def __len__(self) -> int:
        with self._mutex:
            return len(self._records)


class SQLiteKeyStore:
    """SQLite-backed store shared by every process that opens the same file.

    Lock records live in a table keyed by a PRIMARY KEY column, so
    ``INSERT OR IGNORE`` is a single uniqueness-constrained insert whose row
    count reports whether this caller created the record. Timestamps come
    from the database clock, not the caller.
    """

    name = "sqlite"
    busy_timeout_seconds = 5.0

    def __init__(self, path: str | Path = ":memory:", *, table: str = "kvlock_records"):
        if not _SAFE_TABLE_NAME.match(table):
            raise ConfigurationError("Unsafe SQLite table name", field="table", details=repr(table))
        self.path = str(path)
        self.table = table
        self._mutex = threading.Lock()

        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(
                self.path,
                timeout=self.busy_timeout_seconds,
                isolation_level=None,
                check_same_thread=False,
            )
            self._conn.execute(
                f"CREATE TABLE IF NOT EXISTS {self.table} (key TEXT PRIMARY KEY NOT NULL, acquired_at INTEGER NOT NULL)"
            )
        except sqlite3.Error as e:
            raise StoreError("Unable to open SQLite key store", operation="open", details=self.path, original_error=e) from e

    def insert_if_absent(self, key: str, value: int | None = None) -> bool:
        sql = (
            f"INSERT OR IGNORE INTO {self.table} (key, acquired_at) "
            "VALUES (?, COALESCE(?, CAST(strftime('%s', 'now') AS INTEGER)))"
        )
        rowcount, _ = self._execute("insert", key, sql, (key, value))
        return rowcount == 1

    def get(self, key: str) -> int | None:
        _, row = self._execute("get", key, f"SELECT acquired_at FROM {self.table} WHERE key = ?", (key,))
        if row is None:
            return None
        try:
            return int(row[0])
        except (TypeError, ValueError):
            return None

    def delete(self, key: str) -> None:
        self._execute("delete", key, f"DELETE FROM {self.table} WHERE key = ?", (key,))

    def now(self) -> int:
        _, row = self._execute("now", None, "SELECT CAST(strftime('%s', 'now') AS INTEGER)", ())
        return int(row[0])

    def close(self) -> None:
        with self._mutex:
            self._conn.close()

    def __enter__(self) -> SQLiteKeyStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _execute(self, operation: str, key: str | None, sql: str, params: tuple) -> tuple[int, tuple | None]:
        try:
            with self._mutex:
                cursor = self._conn.execute(sql, params)
                return cursor.rowcount, cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError("SQLite key store failure", operation=operation, key=key, original_error=e) from e


class FileKeyStore:
    """Directory-backed store: one file per key.

    The stamp is written to a private temp file first and published with
    ``os.link``, which fails with FileExistsError when the key is taken. A
    record therefore appears with its timestamp already in place. Records
    whose content cannot be parsed (left by older writers or damaged on
    disk) are aged by their modification time so they still go stale.
    """

    name = "file"
    suffix = ".lock"
    temp_suffix = ".tmp"

    def __init__(self, directory: str | Path, clock: Callable[[], float] = time.time):
        self.directory = Path(directory)
        self._clock = clock
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(
                "Unable to create file key store directory",
                operation="open",
                details=str(self.directory),
                original_error=e,
            ) from e

    def path_for(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.suffix}"

    def insert_if_absent(self, key: str, value: int | None = None) -> bool:
        path = self.path_for(key)
        stamp = self.now() if value is None else int(value)
        temp_path = self.directory / f".{path.name}.{uuid.uuid4().hex}{self.temp_suffix}"
        try:
            fd = os.open(str(temp_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            try:
                os.write(fd, f"{stamp}\n".encode())
                os.fsync(fd)
            finally:
                os.close(fd)
            os.link(temp_path, path)
        except FileExistsError:
            return False
        except OSError as e:
            raise StoreError("File key store failure", operation="insert", key=key, original_error=e) from e
        finally:
            with contextlib.suppress(OSError):
                temp_path.unlink()
        return True

    def get(self, key: str) -> int | None:
        path = self.path_for(key)
        try:
            text = path.read_bytes().decode("utf-8", errors="replace").strip()
            if text.isdigit():
                return int(text)
            return int(path.stat().st_mtime)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError("File key store failure", operation="get", key=key, original_error=e) from e

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise StoreError("File key store failure", operation="delete", key=key, original_error=e) from e

    def now(self) -> int:
        return int(self._clock())
