"""Pytest configuration and fixtures for kvlock tests"""
import pytest

from kvlock.core.constants import ENV_MAX_EXECUTION_TIME, ENV_STORE, ENV_STORE_PATH, ENV_STORE_TABLE, LOCK_ENV_VAR_MAPPING
from kvlock.core.locks.stores import MemoryKeyStore


class FakeClock:
    """Manually advanced clock usable as both a monotonic and a wall clock"""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def clean_kvlock_env(monkeypatch):
    """Keep host KVLOCK_* variables from leaking into tests"""
    for env_var, _ in LOCK_ENV_VAR_MAPPING.values():
        monkeypatch.delenv(env_var, raising=False)
    for env_var in (ENV_MAX_EXECUTION_TIME, ENV_STORE, ENV_STORE_PATH, ENV_STORE_TABLE):
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def store_clock():
    """Wall clock driving the store's timestamps"""
    return FakeClock(start=1_700_000_000)


@pytest.fixture
def memory_store(store_clock):
    return MemoryKeyStore(clock=store_clock)


@pytest.fixture
def monotonic_clock():
    """Clock driving the manager's elapsed-time checks"""
    return FakeClock(start=0.0)


@pytest.fixture
def recorded_sleeps(monkeypatch, monotonic_clock):
    """Replace the backoff sleep with one that advances the fake clock and records durations"""
    from kvlock.core.locks import manager as manager_module

    sleeps: list[float] = []

    def _fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        monotonic_clock.advance(seconds)

    monkeypatch.setattr(manager_module.time, "sleep", _fake_sleep)
    return sleeps
