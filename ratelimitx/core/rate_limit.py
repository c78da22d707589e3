"""Rate limiting dependencies for FastAPI routes.

This module wires the Coordinator into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on dependency functions only.
- One Coordinator per process, shared by every request.
- Safe defaults: store outages deny (fail closed) unless a local fallback is
  configured.

Guard strategy:
- Fixed-window limit per API key.
- If the API key is missing, fall back to client IP.
"""

from __future__ import annotations

import logging
import math
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from ratelimitx.core.config import settings
from ratelimitx.core.factory import create_coordinator
from ratelimitx.core.logging import hash_identifier
from ratelimitx.services.coordinator import Coordinator

logger = logging.getLogger(__name__)


_coordinator: Coordinator | None = None
_coordinator_config: tuple | None = None


def _current_config() -> tuple:
    store = settings.store
    limiter = settings.limiter
    return (
        store.backend,
        store.url,
        store.key_prefix,
        limiter.max_cas_retries,
        limiter.fallback_enabled,
        limiter.fallback_rate_per_second,
        limiter.fallback_burst,
        limiter.fallback_scope,
    )


def get_coordinator() -> Coordinator:
    """Return the process-wide Coordinator instance.

    The instance is cached in-module so the fallback buckets and the store
    connection pool survive across requests. If configuration changes
    (primarily in tests), the Coordinator is rebuilt.
    """

    global _coordinator, _coordinator_config

    config = _current_config()
    if _coordinator is None or _coordinator_config != config:
        _coordinator = create_coordinator()
        _coordinator_config = config

    return _coordinator


def reset_coordinator() -> None:
    """Forget the cached Coordinator (tests and shutdown)."""

    global _coordinator, _coordinator_config
    _coordinator = None
    _coordinator_config = None


def _build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    """Build the limiter identifier for the current request."""

    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def enforce_rate_limit(
    request: Request,
    coordinator: Annotated[Coordinator, Depends(get_coordinator)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing the fixed-window API guard.

    Counts one event against the requester's window. Denied requests, including
    fail-closed denials during a store outage, get HTTP 429.

    Raises:
        HTTPException: 429 Too Many Requests when the request is not admitted.
    """

    if not settings.limiter.enabled:
        return

    cfg = settings.limiter
    key = _build_rate_limit_key(request, x_api_key)
    key_type = "api_key" if x_api_key else "ip"

    result = coordinator.allow(key, cfg.requests, cfg.window_seconds)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "identifier_hash": hash_identifier(key),
                "count": result.count,
                "source": result.source,
            },
        )
        return

    retry_after = max(1, int(math.ceil(result.delay_seconds)))
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "identifier_hash": hash_identifier(key),
            "limit": cfg.requests,
            "count": result.count,
            "window_s": cfg.window_seconds,
            "retry_after_s": retry_after,
            "source": result.source,
        },
    )

    headers: dict[str, str] = {}
    if cfg.include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(cfg.requests)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(retry_after)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
