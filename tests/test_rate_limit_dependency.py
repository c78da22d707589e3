"""Tests for the fixed-window guard applied to the HTTP API."""

from unittest.mock import MagicMock, Mock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ratelimitx.core.app_factory import create_app
from ratelimitx.core.errors import StoreUnavailableError
from ratelimitx.core.rate_limit import (
    _build_rate_limit_key,
    get_coordinator,
    reset_coordinator,
)
from ratelimitx.services.coordinator import Coordinator


def _guard_settings(*, enabled: bool = True, requests: int = 2, include_headers: bool = True):
    mock_settings = MagicMock()
    mock_settings.limiter.enabled = enabled
    mock_settings.limiter.requests = requests
    mock_settings.limiter.window_seconds = 60
    mock_settings.limiter.include_headers = include_headers
    return mock_settings


@pytest.fixture
def app(store, clock) -> FastAPI:
    app = create_app()
    coordinator = Coordinator(store, clock=clock)
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    return app


def _check(client: TestClient, **kwargs):
    return client.post(
        "/v1/limits/window/job-42",
        json={"limit": 1000, "window_seconds": 60},
        **kwargs,
    )


def test_guard_returns_429_with_headers(app: FastAPI) -> None:
    client = TestClient(app)

    with patch("ratelimitx.core.rate_limit.settings", _guard_settings()):
        headers = {"X-API-Key": "client-key"}
        assert _check(client, headers=headers).status_code == 200
        assert _check(client, headers=headers).status_code == 200
        denied = _check(client, headers=headers)

    assert denied.status_code == 429
    assert denied.json()["detail"] == "Rate limit exceeded. Try again later."
    assert denied.headers["Retry-After"] == "60"
    assert denied.headers["X-RateLimit-Limit"] == "2"
    assert denied.headers["X-RateLimit-Remaining"] == "0"
    assert denied.headers["X-RateLimit-Reset"] == "60"


def test_guard_tracks_api_keys_separately(app: FastAPI) -> None:
    client = TestClient(app)

    with patch("ratelimitx.core.rate_limit.settings", _guard_settings(requests=1)):
        assert _check(client, headers={"X-API-Key": "a"}).status_code == 200
        assert _check(client, headers={"X-API-Key": "b"}).status_code == 200
        assert _check(client, headers={"X-API-Key": "a"}).status_code == 429


def test_guard_headers_can_be_disabled(app: FastAPI) -> None:
    client = TestClient(app)

    with patch(
        "ratelimitx.core.rate_limit.settings",
        _guard_settings(requests=1, include_headers=False),
    ):
        _check(client)
        denied = _check(client)

    assert denied.status_code == 429
    assert "Retry-After" not in denied.headers


def test_guard_disabled_never_throttles(app: FastAPI) -> None:
    client = TestClient(app)

    with patch("ratelimitx.core.rate_limit.settings", _guard_settings(enabled=False, requests=1)):
        responses = [_check(client) for _ in range(3)]

    assert all(r.status_code == 200 for r in responses)


def test_guard_fails_closed_during_store_outage(clock) -> None:
    store = Mock()
    store.increment_with_expiry.side_effect = StoreUnavailableError(
        code="store_unavailable", message="Counter store is unavailable"
    )
    app = create_app()
    app.dependency_overrides[get_coordinator] = lambda: Coordinator(store, clock=clock)
    client = TestClient(app)

    with patch("ratelimitx.core.rate_limit.settings", _guard_settings()):
        resp = _check(client)

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "60"


def test_rate_limit_key_prefers_api_key() -> None:
    request = MagicMock()
    request.client.host = "10.0.0.1"

    assert _build_rate_limit_key(request, "abc") == "api_key:abc"
    assert _build_rate_limit_key(request, None) == "ip:10.0.0.1"

    request.client = None
    assert _build_rate_limit_key(request, None) == "ip:unknown"


def test_get_coordinator_is_cached_until_reset() -> None:
    first = get_coordinator()

    assert get_coordinator() is first

    reset_coordinator()
    assert get_coordinator() is not first
