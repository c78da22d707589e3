"""Continuous-rate limiter (GCRA) shared through a counter store.

State per (identifier, rate, burst) is a single float: the theoretical arrival
time (TAT), the instant from which the next event conforms. Each admitted
event pushes TAT forward by one emission interval (``1 / rate``). Updates go
through compare-and-swap on the value read, so concurrent processes never
lose an admission; a lost race re-reads and tries again, a bounded number of
times.

Timestamps come from the caller's wall clock, so processes sharing a store
are expected to run with synchronized clocks.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from ratelimitx.adapters.rate_limit.base import (
    RateDecision,
    validate_identifier,
    validate_rate,
)
from ratelimitx.adapters.store.base import AbstractCounterStore
from ratelimitx.core.errors import CASConflictError, StoreUnavailableError
from ratelimitx.core.logging import hash_identifier

logger = logging.getLogger(__name__)

DEFAULT_MAX_CAS_RETRIES = 5


class DistributedRateLimiter:
    """Events-per-second decisions with a shared TAT."""

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        key_prefix: str = "ratelimitx",
        max_cas_retries: int = DEFAULT_MAX_CAS_RETRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared counter store holding the TAT values.
            key_prefix: Namespace prepended to every key.
            max_cas_retries: Extra attempts after a lost compare-and-swap.
            clock: Wall-clock time source (UNIX seconds).

        Raises:
            ValueError: If max_cas_retries is negative.
        """
        if max_cas_retries < 0:
            raise ValueError("max_cas_retries must be >= 0")

        self._store = store
        self._key_prefix = key_prefix
        self._max_cas_retries = max_cas_retries
        self._clock = clock

    def key_for(self, identifier: str, rate: float, burst: int) -> str:
        """Build the state key; ``repr`` keeps distinct rates distinct."""
        return f"{self._key_prefix}:gcra:{rate!r}:{burst}:{identifier}"

    @staticmethod
    def _parse_tat(raw: str) -> float:
        try:
            return float(raw)
        except ValueError as exc:
            raise StoreUnavailableError(
                code="store_bad_reply",
                message="Rate state holds a non-numeric value",
                details={"operation": "get", "key_kind": "gcra"},
            ) from exc

    def allow_rate(self, identifier: str, rate: float, *, burst: int = 1) -> RateDecision:
        """Admit one event for ``identifier`` if it conforms to ``rate``.

        Args:
            identifier: Subject being limited.
            rate: Sustained events per second.
            burst: Events admissible back-to-back from an idle state.

        Returns:
            RateDecision; denied decisions carry the wait until the next
            conforming instant.

        Raises:
            ValueError: On an empty identifier, non-positive rate or burst < 1.
            StoreUnavailableError: If the store cannot be reached.
            CASConflictError: If every compare-and-swap attempt lost its race.
        """
        validate_identifier(identifier)
        validate_rate(rate, burst)

        interval = 1.0 / rate
        tolerance = interval * (burst - 1)
        key = self.key_for(identifier, rate, burst)
        key_hash = hash_identifier(identifier)

        attempts = self._max_cas_retries + 1
        for attempt in range(attempts):
            raw = self._store.get(key)
            now = self._clock()
            tat = self._parse_tat(raw) if raw is not None else now

            allow_at = tat - tolerance
            if now < allow_at:
                return RateDecision(allowed=False, delay_seconds=allow_at - now)

            new_tat = max(tat, now) + interval
            # Once TAT is in the past the bucket is full; an absent key means the same.
            ttl = new_tat - now + tolerance
            if self._store.compare_and_swap(key, raw, repr(new_tat), ttl):
                return RateDecision(allowed=True, delay_seconds=0.0)

            logger.debug(
                "rate_limit.cas_retry",
                extra={"identifier_hash": key_hash, "attempt": attempt + 1},
            )

        logger.warning(
            "rate_limit.cas_exhausted",
            extra={"identifier_hash": key_hash, "attempts": attempts},
        )
        raise CASConflictError(
            code="cas_retries_exhausted",
            message="Rate state kept changing under concurrent updates",
            details={"operation": "compare_and_swap", "attempts": attempts},
        )

    def reset_rate(self, identifier: str, rate: float, *, burst: int = 1) -> None:
        """Make the bucket fully available again (TAT = now).

        Raises:
            ValueError: On an empty identifier, non-positive rate or burst < 1.
            StoreUnavailableError: If the store cannot be reached.
        """
        validate_identifier(identifier)
        validate_rate(rate, burst)
        now = self._clock()
        self._store.set(self.key_for(identifier, rate, burst), repr(now), 1.0 / rate * burst)
