"""Fixed-window rate limiter backed by a shared counter store.

One counter per (identifier, window). The first increment arms the counter's
expiry; when it expires the next call starts a fresh window at 1.
"""

from __future__ import annotations

import math

from ratelimitx.adapters.rate_limit.base import (
    HOUR,
    MINUTE,
    RateLimitResult,
    Window,
    to_seconds,
    validate_identifier,
)
from ratelimitx.adapters.store.base import AbstractCounterStore


class FixedWindowLimiter:
    """Count-threshold-over-duration decisions on a shared counter."""

    def __init__(self, store: AbstractCounterStore, *, key_prefix: str = "ratelimitx") -> None:
        self._store = store
        self._key_prefix = key_prefix

    def key_for(self, identifier: str, window_seconds: float) -> str:
        """Build the counter key.

        ``repr`` of the float window is lossless and the identifier goes last,
        so different windows for one identifier never share a counter.
        """
        return f"{self._key_prefix}:fw:{float(window_seconds)!r}:{identifier}"

    @staticmethod
    def _validate(identifier: str, window_seconds: float) -> None:
        validate_identifier(identifier)
        if not math.isfinite(window_seconds) or window_seconds <= 0:
            raise ValueError("window must be a positive, finite number of seconds")

    def allow(
        self,
        identifier: str,
        limit: int,
        window: Window,
        *,
        cost: int = 1,
    ) -> RateLimitResult:
        """Count ``cost`` events for ``identifier`` and compare with ``limit``.

        The call that pushes the counter past ``limit`` is denied, and so is
        every later call in the same window. Denied calls still count.

        Args:
            identifier: Subject being limited.
            limit: Maximum events admitted per window.
            window: Window length (seconds or timedelta).
            cost: Events this call represents.

        Returns:
            RateLimitResult with the post-increment count and the time left
            until the window resets.

        Raises:
            ValueError: On an empty identifier or non-positive limit/cost/window.
            StoreUnavailableError: If the store cannot be reached.
        """
        window_seconds = to_seconds(window)
        self._validate(identifier, window_seconds)
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if cost < 1:
            raise ValueError("cost must be >= 1")

        counter = self._store.increment_with_expiry(
            self.key_for(identifier, window_seconds), cost, window_seconds
        )

        delay = window_seconds
        if counter.ttl_seconds is not None:
            delay = min(max(counter.ttl_seconds, 0.0), window_seconds)

        return RateLimitResult(
            allowed=counter.count <= limit,
            count=counter.count,
            delay_seconds=delay,
            limit=limit,
        )

    def allow_minute(self, identifier: str, limit: int, *, cost: int = 1) -> RateLimitResult:
        """``allow`` with a one-minute window."""
        return self.allow(identifier, limit, MINUTE, cost=cost)

    def allow_hour(self, identifier: str, limit: int, *, cost: int = 1) -> RateLimitResult:
        """``allow`` with a one-hour window."""
        return self.allow(identifier, limit, HOUR, cost=cost)

    def reset(self, identifier: str, window: Window) -> None:
        """Zero the counter and re-arm its expiry to a full ``window``.

        Raises:
            ValueError: On an empty identifier or non-positive window.
            StoreUnavailableError: If the store cannot be reached.
        """
        window_seconds = to_seconds(window)
        self._validate(identifier, window_seconds)
        self._store.set(self.key_for(identifier, window_seconds), "0", window_seconds)
