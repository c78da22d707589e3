"""Rate limiting adapters.

Fixed-window and continuous-rate limiters run against a shared counter store;
the local token-bucket limiter stands in for them while the store is down.
"""

from ratelimitx.adapters.rate_limit.base import (
    HOUR,
    MINUTE,
    AbstractFallbackLimiter,
    RateDecision,
    RateLimitResult,
    every,
)
from ratelimitx.adapters.rate_limit.distributed_rate import DistributedRateLimiter
from ratelimitx.adapters.rate_limit.fixed_window import FixedWindowLimiter
from ratelimitx.adapters.rate_limit.local_fallback import LocalFallbackLimiter

__all__ = [
    "HOUR",
    "MINUTE",
    "AbstractFallbackLimiter",
    "DistributedRateLimiter",
    "FixedWindowLimiter",
    "LocalFallbackLimiter",
    "RateDecision",
    "RateLimitResult",
    "every",
]
