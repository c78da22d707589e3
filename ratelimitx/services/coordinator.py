"""Admission decisions across processes, with a policy for store outages.

The Coordinator routes each call to the fixed-window or continuous-rate
limiter. When the shared store fails it either denies outright (fail closed,
the default) or asks a process-local fallback limiter (fail open), so a store
outage never turns into an exception on the caller's request path.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from ratelimitx.adapters.rate_limit.base import (
    HOUR,
    MINUTE,
    AbstractFallbackLimiter,
    RateDecision,
    RateLimitResult,
    Window,
    to_seconds,
)
from ratelimitx.adapters.rate_limit.distributed_rate import (
    DEFAULT_MAX_CAS_RETRIES,
    DistributedRateLimiter,
)
from ratelimitx.adapters.rate_limit.fixed_window import FixedWindowLimiter
from ratelimitx.adapters.store.base import AbstractCounterStore
from ratelimitx.core.errors import StoreUnavailableError
from ratelimitx.core.logging import hash_identifier

logger = logging.getLogger(__name__)


class Coordinator:
    """Facade over the shared-store limiters and the outage policy.

    Attributes:
        fallback: Optional local limiter used while the store is unavailable.
            May be attached after construction; None means fail closed.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        fallback: AbstractFallbackLimiter | None = None,
        key_prefix: str = "ratelimitx",
        max_cas_retries: int = DEFAULT_MAX_CAS_RETRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.fallback = fallback
        self._store = store
        self._windows = FixedWindowLimiter(store, key_prefix=key_prefix)
        self._rates = DistributedRateLimiter(
            store,
            key_prefix=key_prefix,
            max_cas_retries=max_cas_retries,
            clock=clock,
        )

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    def _log_degraded(self, identifier: str, operation: str, exc: StoreUnavailableError) -> None:
        logger.warning(
            "rate_limit.store_unavailable",
            extra={
                "identifier_hash": hash_identifier(identifier),
                "operation": operation,
                "error_code": exc.code,
                "policy": "fallback" if self.fallback is not None else "fail_closed",
            },
        )

    def allow(
        self,
        identifier: str,
        limit: int,
        window: Window,
        *,
        cost: int = 1,
    ) -> RateLimitResult:
        """Decide whether ``identifier`` may spend ``cost`` events of ``limit``
        per ``window``.

        Exactly one store round trip. On store failure the result comes from
        the fallback limiter (``source="fallback"``) or is a deny with
        ``count=0`` and ``delay_seconds=window`` (``source="fail_closed"``).

        Raises:
            ValueError: On invalid arguments, before any store call.
        """
        try:
            return self._windows.allow(identifier, limit, window, cost=cost)
        except StoreUnavailableError as exc:
            self._log_degraded(identifier, "allow", exc)
            if self.fallback is not None:
                return self.fallback.allow(identifier)
            return RateLimitResult(
                allowed=False,
                count=0,
                delay_seconds=to_seconds(window),
                limit=limit,
                source="fail_closed",
            )

    def allow_minute(self, identifier: str, limit: int, *, cost: int = 1) -> RateLimitResult:
        """``allow`` with a one-minute window."""
        return self.allow(identifier, limit, MINUTE, cost=cost)

    def allow_hour(self, identifier: str, limit: int, *, cost: int = 1) -> RateLimitResult:
        """``allow`` with a one-hour window."""
        return self.allow(identifier, limit, HOUR, cost=cost)

    def allow_rate(self, identifier: str, rate: float, *, burst: int = 1) -> RateDecision:
        """Decide whether one more event for ``identifier`` conforms to ``rate``.

        Lost compare-and-swap races are retried inside the rate limiter; when
        they run out the call degrades exactly like a store outage. The
        fallback, if any, mirrors the requested rate and burst.

        Raises:
            ValueError: On invalid arguments, before any store call.
        """
        try:
            return self._rates.allow_rate(identifier, rate, burst=burst)
        except StoreUnavailableError as exc:
            self._log_degraded(identifier, "allow_rate", exc)
            if self.fallback is not None:
                local = self.fallback.allow(identifier, rate=rate, burst=burst)
                return RateDecision(
                    allowed=local.allowed,
                    delay_seconds=local.delay_seconds,
                    source="fallback",
                )
            return RateDecision(allowed=False, delay_seconds=1.0 / rate, source="fail_closed")

    def reset(self, identifier: str, window: Window) -> None:
        """Clear the window counter for ``identifier``.

        Raises:
            StoreUnavailableError: If the store cannot be reached; the reset
                did not happen.
        """
        self._windows.reset(identifier, window)
        logger.info(
            "rate_limit.reset",
            extra={
                "identifier_hash": hash_identifier(identifier),
                "window_s": to_seconds(window),
            },
        )

    def reset_rate(self, identifier: str, rate: float, *, burst: int = 1) -> None:
        """Make the rate bucket for ``identifier`` fully available.

        Raises:
            StoreUnavailableError: If the store cannot be reached; the reset
                did not happen.
        """
        self._rates.reset_rate(identifier, rate, burst=burst)
        logger.info(
            "rate_limit.reset_rate",
            extra={
                "identifier_hash": hash_identifier(identifier),
                "rate_per_s": rate,
                "burst": burst,
            },
        )
