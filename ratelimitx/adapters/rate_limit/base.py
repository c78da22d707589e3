"""Rate limiter results and shared helpers.

Durations are float seconds (``timedelta`` is accepted wherever a window is
taken) and rates are events per second.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

MINUTE = 60.0
HOUR = 3600.0

Source = Literal["store", "fallback", "fail_closed"]
Window = float | int | timedelta


def every(seconds: float | timedelta) -> float:
    """Rate allowing one event per ``seconds`` (``every(1) == 1.0`` per second)."""
    interval = to_seconds(seconds)
    if interval <= 0:
        raise ValueError("interval must be > 0")
    return 1.0 / interval


def to_seconds(window: Window) -> float:
    """Normalize a window given as seconds or timedelta to float seconds."""
    if isinstance(window, timedelta):
        return window.total_seconds()
    return float(window)


def validate_identifier(identifier: str) -> None:
    if not identifier:
        raise ValueError("identifier must be a non-empty string")


def validate_rate(rate: float, burst: int) -> None:
    if not math.isfinite(rate) or rate <= 0:
        raise ValueError("rate must be a positive, finite number of events per second")
    if burst < 1:
        raise ValueError("burst must be >= 1")


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a counted admission decision.

    Attributes:
        allowed: Whether the request may proceed.
        count: Attempted volume seen by the deciding counter, including this
            call even when it was denied. Fallback decisions report the local
            tally of admitted events; fail-closed decisions report 0.
        delay_seconds: How long to wait before retrying (time until the window
            resets, or until the next local token).
        limit: Threshold the count was compared against (0 when unknown).
        source: Which component decided: the shared store, the local
            fallback, or the fail-closed policy.
    """

    allowed: bool
    count: int
    delay_seconds: float
    limit: int = 0
    source: Source = "store"

    @property
    def remaining(self) -> int:
        """Events still admissible in the current window (0 when blocked)."""
        if not self.allowed:
            return 0
        return max(0, self.limit - self.count)


@dataclass(frozen=True)
class RateDecision:
    """Result of a continuous-rate admission decision.

    Attributes:
        allowed: Whether the request may proceed.
        delay_seconds: 0 when allowed; otherwise time until the next event
            would be admitted.
        source: Which component decided.
    """

    allowed: bool
    delay_seconds: float
    source: Source = "store"


class AbstractFallbackLimiter(ABC):
    """Process-local limiter consulted when the shared store is unreachable."""

    @abstractmethod
    def allow(
        self,
        identifier: str,
        *,
        rate: float | None = None,
        burst: int | None = None,
    ) -> RateLimitResult:
        """Decide locally for ``identifier``.

        Args:
            identifier: Subject being limited.
            rate: Rate to mirror (events per second); None uses the limiter's own.
            burst: Bucket capacity to mirror; None uses the limiter's own.

        Returns:
            RateLimitResult with ``source="fallback"``.
        """
        raise NotImplementedError
