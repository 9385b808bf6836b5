"""Custom exceptions for kvlock.

All exception classes carry a short message plus optional details so the
caller can log or surface them without re-formatting.
"""


class KVLockError(Exception):
    """Base exception for all kvlock errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(KVLockError):
    """Exception raised for invalid lock or store configuration.

    Examples:
        - Empty lock key
        - max_attempts below 1
        - min_sleep greater than max_sleep
        - Unsafe SQLite table name
    """

    def __init__(self, message: str, field: str | None = None, details: str | None = None):
        self.field = field
        super().__init__(message, details)


class StoreError(KVLockError):
    """Exception raised when the backing key store fails.

    Wraps database and filesystem errors with the operation and key that
    were being processed. The lock manager treats these as an unsuccessful
    attempt rather than letting them escape ``acquire()``.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        key: str | None = None,
        details: str | None = None,
        original_error: Exception | None = None,
    ):
        self.operation = operation
        self.key = key
        self.original_error = original_error
        super().__init__(message, details)

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"during {self.operation}")
        if self.key:
            parts.append(f"key '{self.key}'")
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)


class LockNotAcquiredError(KVLockError):
    """Exception raised when a lock could not be acquired for a critical section.

    Only raised by the context-manager entry point; ``acquire()`` itself
    reports failure through its return value.

    Attributes:
        lock_key: Key of the lock that could not be obtained
        reason: Why acquisition stopped (timeout, exhausted, cancelled)
        attempts: Number of insert attempts made
    """

    def __init__(self, lock_key: str, reason: str | None = None, attempts: int | None = None):
        self.lock_key = lock_key
        self.reason = reason
        self.attempts = attempts

        message = f"Unable to acquire lock '{lock_key}'"
        details_parts = []
        if reason:
            details_parts.append(reason)
        if attempts is not None:
            details_parts.append(f"after {attempts} attempt(s)")

        details = ", ".join(details_parts) if details_parts else None
        super().__init__(message, details)
