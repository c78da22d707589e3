"""Counter store adapters.

The limiters only see ``AbstractCounterStore``; Redis is the shared backend
and the in-memory store covers single-process use.
"""

from ratelimitx.adapters.store.base import AbstractCounterStore, CounterValue
from ratelimitx.adapters.store.in_memory import InMemoryCounterStore
from ratelimitx.adapters.store.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "CounterValue",
    "InMemoryCounterStore",
    "RedisCounterStore",
]
