"""Tests for the Redis counter store against a mocked client."""

from unittest.mock import MagicMock, patch

import pytest
import redis

from ratelimitx.adapters.store.redis_lua import (
    COMPARE_AND_SWAP_SCRIPT,
    INCREMENT_WITH_EXPIRY_SCRIPT,
)
from ratelimitx.adapters.store.redis_store import RedisCounterStore
from ratelimitx.core.errors import StoreUnavailableError


@pytest.fixture
def store(fake_redis: MagicMock) -> RedisCounterStore:
    return RedisCounterStore(fake_redis)


class TestIncrementWithExpiry:
    def test_first_increment_sets_expiry(self, store: RedisCounterStore, fake_redis) -> None:
        value = store.increment_with_expiry("k", 1, 60)

        assert value.count == 1
        assert value.ttl_seconds == pytest.approx(60)
        fake_redis.eval.assert_called_once_with(INCREMENT_WITH_EXPIRY_SCRIPT, 1, "k", 1, 60000)

    def test_later_increments_keep_original_expiry(self, store, clock) -> None:
        store.increment_with_expiry("k", 1, 60)
        clock.advance(15)

        value = store.increment_with_expiry("k", 2, 60)

        assert value.count == 3
        assert value.ttl_seconds == pytest.approx(45)

    def test_sub_millisecond_ttl_rounds_up(self, store: RedisCounterStore, fake_redis) -> None:
        store.increment_with_expiry("k", 1, 0.0001)

        assert fake_redis.eval.call_args.args[-1] == 1

    def test_key_without_ttl_reports_none(self, fake_redis) -> None:
        fake_redis.eval.side_effect = None
        fake_redis.eval.return_value = [7, -1]

        value = RedisCounterStore(fake_redis).increment_with_expiry("k", 1, 60)

        assert value.count == 7
        assert value.ttl_seconds is None


class TestCompareAndSwap:
    def test_swap_on_absent_key(self, store: RedisCounterStore, fake_redis) -> None:
        assert store.compare_and_swap("k", None, "1.5", 2) is True
        assert store.get("k") == "1.5"

        args = fake_redis.eval.call_args.args
        assert args[0] == COMPARE_AND_SWAP_SCRIPT
        assert args[3] == ""

    def test_absent_expectation_fails_when_key_exists(self, store) -> None:
        store.set("k", "1.0", 10)

        assert store.compare_and_swap("k", None, "2.0", 10) is False
        assert store.get("k") == "1.0"

    def test_swap_requires_matching_value(self, store) -> None:
        store.set("k", "1.0", 10)

        assert store.compare_and_swap("k", "0.5", "2.0", 10) is False
        assert store.compare_and_swap("k", "1.0", "2.0", 10) is True
        assert store.get("k") == "2.0"

    def test_swapped_value_expires(self, store, clock) -> None:
        store.compare_and_swap("k", None, "1.0", 2)
        clock.advance(2)

        assert store.get("k") is None


class TestGetAndSet:
    def test_set_uses_millisecond_expiry(self, store: RedisCounterStore, fake_redis) -> None:
        store.set("k", "0", 1.5)

        fake_redis.set.assert_called_once_with("k", "0", px=1500)

    def test_get_missing_key(self, store: RedisCounterStore) -> None:
        assert store.get("missing") is None

    def test_get_decodes_bytes(self) -> None:
        client = MagicMock()
        client.get.return_value = b"42"

        assert RedisCounterStore(client).get("k") == "42"


class TestErrorTranslation:
    @pytest.mark.parametrize(
        "error, code",
        [
            (redis.ConnectionError("refused"), "store_unavailable"),
            (redis.TimeoutError("timed out"), "store_timeout"),
            (redis.ResponseError("NOSCRIPT"), "store_unavailable"),
        ],
    )
    def test_client_errors_become_store_unavailable(self, error, code) -> None:
        client = MagicMock()
        client.eval.side_effect = error

        with pytest.raises(StoreUnavailableError) as excinfo:
            RedisCounterStore(client).increment_with_expiry("k", 1, 60)

        assert excinfo.value.code == code
        assert excinfo.value.details["operation"] == "increment_with_expiry"
        assert excinfo.value.__cause__ is error

    def test_malformed_reply_becomes_store_unavailable(self) -> None:
        client = MagicMock()
        client.eval.return_value = ["not-a-number", 100]

        with pytest.raises(StoreUnavailableError) as excinfo:
            RedisCounterStore(client).increment_with_expiry("k", 1, 60)

        assert excinfo.value.code == "store_bad_reply"

    def test_get_and_set_errors_are_translated(self) -> None:
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        client.set.side_effect = redis.ConnectionError("down")
        store = RedisCounterStore(client)

        with pytest.raises(StoreUnavailableError):
            store.get("k")
        with pytest.raises(StoreUnavailableError):
            store.set("k", "0", 1)


class TestPing:
    def test_ping_up(self, store: RedisCounterStore) -> None:
        assert store.ping() is True

    def test_ping_down(self) -> None:
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("down")

        assert RedisCounterStore(client).ping() is False


def test_from_url_configures_timeouts() -> None:
    with patch.object(redis.Redis, "from_url") as from_url:
        store = RedisCounterStore.from_url(
            "redis://cache:6379/1", socket_timeout=0.2, connect_timeout=0.3
        )

    from_url.assert_called_once_with(
        "redis://cache:6379/1",
        socket_timeout=0.2,
        socket_connect_timeout=0.3,
        decode_responses=True,
    )
    assert isinstance(store, RedisCounterStore)
