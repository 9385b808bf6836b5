"""Logging helpers for kvlock."""

import atexit
import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from kvlock.core.constants import LOG_FILE_BACKUP_COUNT, LOG_FILE_MAX_BYTES, VALID_LOG_LEVELS

# Attributes every LogRecord carries; anything else on a record came from `extra`.
_STANDARD_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def _record_message(record: logging.LogRecord) -> str:
    try:
        return record.getMessage()
    except (TypeError, ValueError):
        # Bad placeholders must not turn a lock warning into a logging crash.
        return f"{record.msg} [log-message-format-error]"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Carries the fields a lock operator filters on (level, logger, process)
    plus any context attached with ``with_log_context`` or ``extra``, such
    as ``lock_key``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _record_message(record),
            "process": record.process,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                entry.setdefault(key, value)
        return json.dumps(entry, default=str)


_atexit_registered = False


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Adapter whose fixed context is merged under any per-call ``extra``."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_log_context(
    logger: logging.Logger | logging.LoggerAdapter | object, **context: object
) -> logging.Logger | logging.LoggerAdapter | object:
    """Return an adapter adding ``context`` to every record; None values are dropped.

    Wrapping an existing adapter merges both contexts onto the underlying logger.
    """
    if not isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        # Test doubles pass through untouched.
        return logger

    merged: dict[str, object] = {}
    base = logger
    while isinstance(base, logging.LoggerAdapter):
        merged = {**dict(base.extra or {}), **merged}
        base = base.logger

    merged.update({k: v for k, v in context.items() if v is not None})
    return ContextLoggerAdapter(base, merged)


def setup_logging(
    log_level: str | None = None, log_format: str = "text", log_file: str | Path | None = None
) -> logging.Logger:
    """Setup logging to the console and optionally a rotating file.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format - "text" (default) or "json" for structured logging
        log_file: Optional path of a rotating log file

    Returns:
        The ``kvlock`` package logger

    Priority: 1) Passed parameter, 2) Environment variable LOG_LEVEL, 3) Default INFO
    """
    global _atexit_registered

    if not _atexit_registered:
        atexit.register(logging.shutdown)
        _atexit_registered = True

    if log_level is None:
        log_level = os.environ.get("LOG_LEVEL", "INFO")

    if log_level.upper() not in VALID_LOG_LEVELS:
        print(f"Warning: Invalid log level '{log_level}', using INFO", file=sys.stderr)
        log_level = "INFO"

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    for handler in logging.root.handlers[:]:
        handler.close()
        logging.root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            # Use RotatingFileHandler to prevent unbounded log growth
            handlers.append(
                RotatingFileHandler(log_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUP_COUNT)
            )
        except OSError as e:
            print(f"Warning: Cannot open log file {log_path}: {e}. Logging to console only.", file=sys.stderr)

    if log_format.lower() == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(numeric_level)
        logging.root.addHandler(handler)

    logging.root.setLevel(numeric_level)

    logger = logging.getLogger("kvlock")
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    return logger
