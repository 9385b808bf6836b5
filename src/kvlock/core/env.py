"""Environment-driven configuration loading for kvlock.

Settings are read from the process environment, after loading a ``.env``
file with python-dotenv, so a deployment can tune lock behavior without
code changes. Invalid values are ignored with a warning and the default
is kept.
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from kvlock.core.config import LockConfig, StoreBackend, StoreConfig
from kvlock.core.constants import (
    DEFAULT_LOCK,
    DEFAULT_STALE_TIMEOUT_FLOOR,
    DEFAULT_STORE,
    ENV_MAX_EXECUTION_TIME,
    ENV_STORE,
    ENV_STORE_PATH,
    ENV_STORE_TABLE,
    LOCK_ENV_VAR_MAPPING,
)

logger = logging.getLogger(__name__)

# Ranges mirror LockConfig.validate so an override can never make the manager refuse to start.
_OVERRIDE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "max_attempts": lambda v: v >= 1,
    "acquire_timeout": lambda v: v > 0,
    "min_sleep": lambda v: v >= 0,
    "max_sleep": lambda v: v >= 0,
    "stale_timeout_floor": lambda v: v > 0,
}


def _bootstrap_dotenv(env_file: str | Path | None = None) -> None:
    """Load .env variables without overriding ones already set."""
    try:
        loaded = load_dotenv(dotenv_path=env_file)
    except OSError as e:
        logger.debug("Failed to load .env via python-dotenv: %s", e)
        return
    if loaded:
        logger.debug(".env file found and loaded")


def _parse_env_numeric(value: str | None, cast: Callable[[str], Any]) -> Any | None:
    """Parse an environment value, returning None when invalid."""
    if value is None:
        return None
    try:
        parsed = cast(value)
    except (TypeError, ValueError):
        return None
    if isinstance(parsed, float) and not math.isfinite(parsed):
        return None
    return parsed


def load_lock_config(env_file: str | Path | None = None, *, base: LockConfig | None = None) -> LockConfig:
    """Return lock config with environment overrides applied.

    Unparsable values and values outside the ranges LockConfig.validate
    accepts are rejected with a warning. An inverted sleep window (max
    below min) is corrected to ``max = min`` rather than rejected, so a
    single bad variable cannot break acquisition.
    """
    _bootstrap_dotenv(env_file)
    cfg = base or DEFAULT_LOCK
    overrides: dict[str, Any] = {}

    for field_name, (env_var, cast) in LOCK_ENV_VAR_MAPPING.items():
        if env_var not in os.environ:
            continue
        raw = os.environ.get(env_var)
        parsed = _parse_env_numeric(raw, cast)
        if parsed is None or not _OVERRIDE_CHECKS[field_name](parsed):
            logger.warning(
                "Ignoring invalid %s=%r; using default %s", env_var, raw, getattr(cfg, field_name)
            )
            continue
        overrides[field_name] = parsed

    cfg = replace(cfg, **overrides)

    # Guard against invalid windows that would otherwise make random.uniform draw outside the bounds.
    if cfg.max_sleep < cfg.min_sleep:
        logger.warning(
            "Ignoring invalid sleep window (max_sleep=%s < min_sleep=%s); using max_sleep=%s",
            cfg.max_sleep,
            cfg.min_sleep,
            cfg.min_sleep,
        )
        cfg = replace(cfg, max_sleep=cfg.min_sleep)

    return cfg


def load_store_config(env_file: str | Path | None = None) -> StoreConfig:
    """Return store config from KVLOCK_STORE, KVLOCK_STORE_PATH and KVLOCK_STORE_TABLE."""
    _bootstrap_dotenv(env_file)
    backend = os.environ.get(ENV_STORE, DEFAULT_STORE.backend).strip().lower()
    valid = {b.value for b in StoreBackend}
    if backend not in valid:
        logger.warning("Unknown %s=%r; using %s store", ENV_STORE, backend, DEFAULT_STORE.backend)
        backend = DEFAULT_STORE.backend
    return StoreConfig(
        backend=backend,
        path=os.environ.get(ENV_STORE_PATH) or DEFAULT_STORE.path,
        table=os.environ.get(ENV_STORE_TABLE) or DEFAULT_STORE.table,
    )


def resolve_execution_budget(explicit: float | None = None) -> float:
    """Return the hosting process's execution-time budget in seconds.

    Priority: 1) explicit argument, 2) KVLOCK_MAX_EXECUTION_TIME, 3) 0 (unknown).
    """
    if explicit is not None:
        return max(0.0, float(explicit))

    raw = os.environ.get(ENV_MAX_EXECUTION_TIME)
    if raw is None:
        return 0.0
    parsed = _parse_env_numeric(raw, float)
    if parsed is None or parsed < 0:
        logger.warning("Ignoring invalid %s=%r; treating execution budget as unknown", ENV_MAX_EXECUTION_TIME, raw)
        return 0.0
    return parsed


def derive_stale_timeout(execution_budget: float | None, floor: float = DEFAULT_STALE_TIMEOUT_FLOOR) -> float:
    """Staleness threshold: the longer of the execution budget and the floor.

    A live holder cannot outrun its own execution budget, so a record older
    than the budget belongs to a crashed or killed process.
    """
    return max(float(execution_budget or 0.0), float(floor))
