"""Tests for the Coordinator and its store-outage policy."""

import logging
from unittest.mock import Mock

import pytest

from ratelimitx.adapters.rate_limit.base import MINUTE, every
from ratelimitx.adapters.rate_limit.local_fallback import LocalFallbackLimiter
from ratelimitx.core.errors import CASConflictError, StoreUnavailableError
from ratelimitx.services.coordinator import Coordinator


def _down_store() -> Mock:
    """Store whose every operation fails like an unreachable Redis."""
    store = Mock()
    outage = StoreUnavailableError(
        code="store_unavailable",
        message="Counter store is unavailable",
        details={"operation": "test", "backend": "redis"},
    )
    store.increment_with_expiry.side_effect = outage
    store.get.side_effect = outage
    store.compare_and_swap.side_effect = outage
    store.set.side_effect = outage
    return store


@pytest.fixture
def coordinator(store, clock) -> Coordinator:
    return Coordinator(store, clock=clock)


def test_allow_counts_through_store(coordinator: Coordinator) -> None:
    coordinator.reset("test_id", MINUTE)

    first = coordinator.allow("test_id", 1, MINUTE)
    assert first.allowed is True
    assert first.count == 1
    assert first.source == "store"
    assert first.limit == 1

    second = coordinator.allow("test_id", 1, MINUTE)
    assert second.allowed is False
    assert second.count == 2


def test_allow_minute_and_hour_delegate(coordinator: Coordinator) -> None:
    assert coordinator.allow_minute("k", 1).allowed is True
    assert coordinator.allow_minute("k", 1).allowed is False
    assert coordinator.allow_hour("k", 1).allowed is True


def test_allow_rate_through_store(coordinator: Coordinator) -> None:
    assert coordinator.allow_rate("k", every(1)).allowed is True

    denied = coordinator.allow_rate("k", every(1))
    assert denied.allowed is False
    assert denied.source == "store"


def test_store_outage_fails_closed_without_fallback(clock) -> None:
    coordinator = Coordinator(_down_store(), clock=clock)

    result = coordinator.allow("test_id", 1, MINUTE)

    assert result.allowed is False
    assert result.count == 0
    assert result.delay_seconds == MINUTE
    assert result.source == "fail_closed"
    assert result.remaining == 0


def test_store_outage_fails_closed_for_rate(clock) -> None:
    coordinator = Coordinator(_down_store(), clock=clock)

    decision = coordinator.allow_rate("test_id", 4.0)

    assert decision.allowed is False
    assert decision.delay_seconds == pytest.approx(0.25)
    assert decision.source == "fail_closed"


def test_store_outage_uses_fallback(clock) -> None:
    coordinator = Coordinator(_down_store(), clock=clock)
    coordinator.fallback = LocalFallbackLimiter(rate=every(1), burst=1, clock=clock)

    first = coordinator.allow("test_id", 1, MINUTE)
    assert first.allowed is True
    assert first.count == 1
    assert first.delay_seconds <= MINUTE
    assert first.source == "fallback"

    second = coordinator.allow("test_id", 1, MINUTE)
    assert second.allowed is False
    assert second.count == 1


def test_rate_fallback_mirrors_requested_rate(clock) -> None:
    fallback = LocalFallbackLimiter(rate=1.0, burst=1, clock=clock)
    coordinator = Coordinator(_down_store(), fallback=fallback, clock=clock)

    decisions = [coordinator.allow_rate("k", 10.0, burst=2) for _ in range(3)]

    assert [d.allowed for d in decisions] == [True, True, False]
    assert decisions[2].delay_seconds == pytest.approx(0.1)
    assert all(d.source == "fallback" for d in decisions)


def test_cas_exhaustion_degrades_like_outage(clock) -> None:
    store = Mock()
    store.get.return_value = None
    store.compare_and_swap.return_value = False
    coordinator = Coordinator(store, max_cas_retries=1, clock=clock)

    decision = coordinator.allow_rate("k", 1.0)

    assert decision.allowed is False
    assert decision.source == "fail_closed"
    assert store.compare_and_swap.call_count == 2


def test_outage_is_logged_without_raw_identifier(clock, caplog) -> None:
    coordinator = Coordinator(_down_store(), clock=clock)

    with caplog.at_level(logging.WARNING, logger="ratelimitx.services.coordinator"):
        coordinator.allow("user-42@example.com", 1, MINUTE)

    records = [r for r in caplog.records if r.getMessage() == "rate_limit.store_unavailable"]
    assert len(records) == 1
    assert records[0].policy == "fail_closed"
    assert records[0].error_code == "store_unavailable"
    assert "user-42@example.com" not in records[0].identifier_hash


def test_reset_propagates_store_failure(clock) -> None:
    coordinator = Coordinator(_down_store(), clock=clock)
    coordinator.fallback = LocalFallbackLimiter(rate=1.0, clock=clock)

    with pytest.raises(StoreUnavailableError):
        coordinator.reset("k", MINUTE)

    with pytest.raises(StoreUnavailableError):
        coordinator.reset_rate("k", 1.0)


def test_reset_rate_restores_availability(coordinator: Coordinator) -> None:
    coordinator.allow_rate("k", 0.5)
    assert coordinator.allow_rate("k", 0.5).allowed is False

    coordinator.reset_rate("k", 0.5)

    assert coordinator.allow_rate("k", 0.5).allowed is True


def test_invalid_arguments_raise_instead_of_degrading(clock) -> None:
    store = _down_store()
    coordinator = Coordinator(store, fallback=LocalFallbackLimiter(rate=1.0, clock=clock))

    with pytest.raises(ValueError):
        coordinator.allow("", 1, MINUTE)
    with pytest.raises(ValueError):
        coordinator.allow("k", 0, MINUTE)
    with pytest.raises(ValueError):
        coordinator.allow_rate("k", 0.0)

    store.increment_with_expiry.assert_not_called()
    store.get.assert_not_called()


def test_cas_conflict_is_a_store_failure() -> None:
    assert issubclass(CASConflictError, StoreUnavailableError)
