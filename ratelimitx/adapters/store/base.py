"""Counter store interface.

The limiters depend on this abstraction (not on a concrete client) so any
key-value store offering atomic increment-with-expiry and compare-and-swap
can back them.

Every implementation must report connection, timeout, protocol and decoding
failures as ``StoreUnavailableError`` and nothing else.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CounterValue:
    """Counter state observed right after an increment.

    Attributes:
        count: Counter value after the increment.
        ttl_seconds: Remaining life of the counter in seconds, or None when the
            store could not report one.
    """

    count: int
    ttl_seconds: float | None


class AbstractCounterStore(ABC):
    """Interface for shared counter stores."""

    @abstractmethod
    def increment_with_expiry(self, key: str, delta: int, ttl_seconds: float) -> CounterValue:
        """Atomically add ``delta`` to the counter at ``key``.

        A missing key starts at 0. The expiry is set to ``ttl_seconds`` only
        when the key has none yet, so increments never extend a live window.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored at ``key`` or None when absent.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def compare_and_swap(
        self, key: str, old: str | None, new: str, ttl_seconds: float
    ) -> bool:
        """Atomically replace ``old`` by ``new`` at ``key``.

        Args:
            key: Key to update.
            old: Value the caller last observed; None means "key is absent".
            new: Replacement value.
            ttl_seconds: Expiry applied to the new value.

        Returns:
            True if the swap happened, False if another writer changed the key
            first.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        """Unconditionally write ``value`` with a fresh expiry.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError

    def ping(self) -> bool:
        """Return True when the store answers; never raises."""
        return True
