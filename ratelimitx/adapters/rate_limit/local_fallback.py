"""In-memory token-bucket limiter used while the shared store is down.

Notes:
- Per-process only: each worker admits up to the configured rate on its own,
  so the effective global rate during an outage is rate x workers.
- Thread-safe: a lock guards the bucket map and each bucket has its own lock,
  so threads deciding for different identifiers do not contend.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Literal

from ratelimitx.adapters.rate_limit.base import (
    AbstractFallbackLimiter,
    RateLimitResult,
    validate_identifier,
    validate_rate,
)

FallbackScope = Literal["identifier", "global"]

_GLOBAL_BUCKET = ""


@dataclass
class _Bucket:
    capacity: int
    rate: float
    tokens: float
    updated_at: float
    admitted: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)


class LocalFallbackLimiter(AbstractFallbackLimiter):
    """Token buckets keyed by identifier (or one shared bucket).

    Each bucket starts full with ``burst`` tokens, refills at ``rate`` tokens
    per second up to ``burst``, and admits a call when one whole token is
    available.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        *,
        rate: float,
        burst: int = 1,
        scope: FallbackScope = "identifier",
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the fallback limiter.

        Args:
            rate: Default refill rate in tokens per second.
            burst: Default bucket capacity.
            scope: "identifier" for one bucket per identifier, "global" for a
                single bucket shared by every identifier.
            max_entries: Buckets kept before the least recently used are evicted.
            clock: Monotonic time source in seconds.

        Raises:
            ValueError: If rate, burst, scope or max_entries are invalid.
        """
        validate_rate(rate, burst)
        if scope not in ("identifier", "global"):
            raise ValueError("scope must be 'identifier' or 'global'")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._rate = rate
        self._burst = burst
        self._scope = scope
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: OrderedDict[tuple[str, float, int], _Bucket] = OrderedDict()

    @property
    def scope(self) -> FallbackScope:
        return self._scope

    def __len__(self) -> int:
        return len(self._buckets)

    def _bucket_for(self, identifier: str, rate: float, burst: int) -> _Bucket:
        """Return the bucket for the key, creating it on first use.

        Every hit marks the bucket most recently used, so eviction only drops
        identifiers that have gone quiet. Lookup and creation share the map lock,
        so two threads racing on a new identifier end up with one bucket.
        """
        owner = identifier if self._scope == "identifier" else _GLOBAL_BUCKET
        key = (owner, rate, burst)

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is not None:
                self._buckets.move_to_end(key)
            else:
                self._evict_if_over_capacity_locked()
                bucket = _Bucket(
                    capacity=burst,
                    rate=rate,
                    tokens=float(burst),
                    updated_at=self._clock(),
                )
                self._buckets[key] = bucket
            return bucket

    def _evict_if_over_capacity_locked(self) -> None:
        # least recently used first
        while len(self._buckets) >= self._max_entries:
            self._buckets.popitem(last=False)

    def allow(
        self,
        identifier: str,
        *,
        rate: float | None = None,
        burst: int | None = None,
    ) -> RateLimitResult:
        """Take one token for ``identifier`` if available.

        Args:
            identifier: Subject being limited.
            rate: Rate to mirror; None uses the configured rate.
            burst: Capacity to mirror; None uses the configured burst.

        Returns:
            RateLimitResult whose count is this bucket's admitted events,
            unchanged by denied calls.

        Raises:
            ValueError: On an empty identifier or invalid rate/burst.
        """
        validate_identifier(identifier)
        rate = self._rate if rate is None else rate
        burst = self._burst if burst is None else burst
        validate_rate(rate, burst)

        bucket = self._bucket_for(identifier, rate, burst)
        with bucket.lock:
            now = self._clock()
            elapsed = max(0.0, now - bucket.updated_at)
            bucket.tokens = min(float(bucket.capacity), bucket.tokens + elapsed * bucket.rate)
            bucket.updated_at = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                bucket.admitted += 1
                return RateLimitResult(
                    allowed=True,
                    count=bucket.admitted,
                    delay_seconds=0.0,
                    source="fallback",
                )

            return RateLimitResult(
                allowed=False,
                count=bucket.admitted,
                delay_seconds=(1.0 - bucket.tokens) / bucket.rate,
                source="fallback",
            )

    def clear(self) -> None:
        """Drop every bucket."""
        with self._lock:
            self._buckets.clear()
