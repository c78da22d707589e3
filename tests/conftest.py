"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any import that might build settings, so
tests never need a running Redis.
"""

import os
import time

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LIMITER_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import MagicMock

import pytest

from ratelimitx.adapters.store.in_memory import InMemoryCounterStore
from ratelimitx.core.rate_limit import reset_coordinator


class FakeClock:
    """Deterministic clock; call it like ``time.time``."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryCounterStore:
    """In-memory store sharing the test clock."""
    return InMemoryCounterStore(clock=clock)


@pytest.fixture(autouse=True)
def _fresh_coordinator():
    """Never leak the process-wide Coordinator between tests."""
    reset_coordinator()
    yield
    reset_coordinator()


@pytest.fixture
def fake_redis(clock: FakeClock) -> MagicMock:
    """MagicMock Redis client emulating the counter store scripts.

    ``eval`` dispatches on the script text and reproduces the Lua logic on a
    dict, with TTLs in milliseconds driven by the test clock.
    """
    from ratelimitx.adapters.store.redis_lua import (
        COMPARE_AND_SWAP_SCRIPT,
        INCREMENT_WITH_EXPIRY_SCRIPT,
    )

    redis = MagicMock()
    redis.data = {}
    redis.expires_at = {}

    def _purge(key):
        deadline = redis.expires_at.get(key)
        if deadline is not None and deadline <= clock():
            redis.data.pop(key, None)
            redis.expires_at.pop(key, None)

    def _pttl(key):
        deadline = redis.expires_at.get(key)
        if deadline is None:
            return -1
        return int((deadline - clock()) * 1000)

    def mock_get(key):
        _purge(key)
        return redis.data.get(key)

    def mock_set(key, value, px=None):
        redis.data[key] = str(value)
        redis.expires_at[key] = clock() + px / 1000 if px is not None else None
        return True

    def mock_eval(script, num_keys, *args):
        key = args[0]
        _purge(key)
        if script == INCREMENT_WITH_EXPIRY_SCRIPT:
            delta, ttl_ms = int(args[1]), int(args[2])
            count = int(redis.data.get(key, "0")) + delta
            redis.data[key] = str(count)
            ttl = _pttl(key)
            if ttl < 0:
                redis.expires_at[key] = clock() + ttl_ms / 1000
                ttl = ttl_ms
            return [count, ttl]
        if script == COMPARE_AND_SWAP_SCRIPT:
            expected, new, ttl_ms = args[1], args[2], int(args[3])
            current = redis.data.get(key)
            if expected == "":
                if current is not None:
                    return 0
            elif current != expected:
                return 0
            mock_set(key, new, px=ttl_ms)
            return 1
        raise AssertionError("unexpected script")

    redis.get.side_effect = mock_get
    redis.set.side_effect = mock_set
    redis.eval.side_effect = mock_eval
    redis.ping.return_value = True

    return redis
