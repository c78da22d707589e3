"""In-memory counter store.

Notes:
- Per-process only: every process gets its own counters, so limits are not
  shared. Use it for local development and tests, not for deployments with
  several workers.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from ratelimitx.adapters.store.base import AbstractCounterStore, CounterValue


@dataclass
class _Entry:
    value: str
    expires_at: float | None


class InMemoryCounterStore(AbstractCounterStore):
    """Dictionary-backed store with the same atomicity as the Redis scripts.

    Expired entries are dropped lazily, on the next access to their key.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Time source used for expiry, in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def _live_entry(self, key: str, now: float) -> _Entry | None:
        """Return the entry for key, dropping it first if it has expired."""
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at is not None and entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def increment_with_expiry(self, key: str, delta: int, ttl_seconds: float) -> CounterValue:
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                entry = _Entry(value="0", expires_at=None)
                self._entries[key] = entry

            count = int(entry.value) + delta
            entry.value = str(count)
            if entry.expires_at is None:
                entry.expires_at = now + ttl_seconds

            return CounterValue(count=count, ttl_seconds=entry.expires_at - now)

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry(key, self._clock())
            return entry.value if entry is not None else None

    def compare_and_swap(
        self, key: str, old: str | None, new: str, ttl_seconds: float
    ) -> bool:
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            current = entry.value if entry is not None else None
            if current != old:
                return False
            self._entries[key] = _Entry(value=new, expires_at=now + ttl_seconds)
            return True

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    def clear(self) -> None:
        """Drop every counter."""
        with self._lock:
            self._entries.clear()
