"""Redis-backed counter store.

Shares counters between every process pointed at the same Redis. Atomicity
comes from Lua scripts (see ``redis_lua``); TTLs travel in milliseconds so
sub-second windows keep their precision.
"""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from typing import Any, Iterator

import redis

from ratelimitx.adapters.store.base import AbstractCounterStore, CounterValue
from ratelimitx.adapters.store.redis_lua import (
    COMPARE_AND_SWAP_SCRIPT,
    INCREMENT_WITH_EXPIRY_SCRIPT,
)
from ratelimitx.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def _to_millis(seconds: float) -> int:
    """Convert a TTL to whole milliseconds, never below 1 ms."""
    return max(1, int(math.ceil(seconds * 1000)))


def _decode(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


class RedisCounterStore(AbstractCounterStore):
    """Counter store speaking to Redis through redis-py.

    The client's socket timeouts are the only bound on how long a decision can
    block; they are configured where the client is built (see
    ``ratelimitx.core.factory``).
    """

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        socket_timeout: float = 0.5,
        connect_timeout: float = 0.5,
    ) -> "RedisCounterStore":
        """Build a store with its own connection pool.

        No connection is opened here; the first command connects lazily.
        """
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=connect_timeout,
            decode_responses=True,
        )
        return cls(client)

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        """Report every client-side failure as StoreUnavailableError."""
        try:
            yield
        except redis.TimeoutError as exc:
            logger.warning("store.timeout", extra={"operation": operation, "error": str(exc)})
            raise StoreUnavailableError(
                code="store_timeout",
                message="Counter store did not answer in time",
                details={"operation": operation, "backend": "redis"},
            ) from exc
        except redis.RedisError as exc:
            logger.error(
                "store.error",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Counter store is unavailable",
                details={"operation": operation, "backend": "redis"},
            ) from exc
        except (TypeError, ValueError) as exc:
            # Unexpected reply shapes (e.g. a non-integer counter) are protocol failures.
            logger.error(
                "store.bad_reply",
                extra={"operation": operation, "error": str(exc)},
            )
            raise StoreUnavailableError(
                code="store_bad_reply",
                message="Counter store returned an unexpected reply",
                details={"operation": operation, "backend": "redis"},
            ) from exc

    def increment_with_expiry(self, key: str, delta: int, ttl_seconds: float) -> CounterValue:
        with self._translate_errors("increment_with_expiry"):
            count, ttl_ms = self._redis.eval(
                INCREMENT_WITH_EXPIRY_SCRIPT, 1, key, int(delta), _to_millis(ttl_seconds)
            )
            ttl_ms = int(ttl_ms)
            return CounterValue(
                count=int(count),
                ttl_seconds=ttl_ms / 1000 if ttl_ms >= 0 else None,
            )

    def get(self, key: str) -> str | None:
        with self._translate_errors("get"):
            return _decode(self._redis.get(key))

    def compare_and_swap(
        self, key: str, old: str | None, new: str, ttl_seconds: float
    ) -> bool:
        with self._translate_errors("compare_and_swap"):
            swapped = self._redis.eval(
                COMPARE_AND_SWAP_SCRIPT,
                1,
                key,
                old if old is not None else "",
                new,
                _to_millis(ttl_seconds),
            )
            return int(swapped) == 1

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        with self._translate_errors("set"):
            self._redis.set(key, value, px=_to_millis(ttl_seconds))

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.RedisError as exc:
            logger.warning("store.ping_failed", extra={"error": str(exc)})
            return False

    def close(self) -> None:
        """Release pooled connections."""
        self._redis.close()
