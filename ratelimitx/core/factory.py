"""Factory functions building the store, fallback and Coordinator from settings."""

from __future__ import annotations

from ratelimitx.adapters.rate_limit.local_fallback import LocalFallbackLimiter
from ratelimitx.adapters.store.base import AbstractCounterStore
from ratelimitx.adapters.store.in_memory import InMemoryCounterStore
from ratelimitx.adapters.store.redis_store import RedisCounterStore
from ratelimitx.core.config import LimiterSettings, StoreSettings, settings
from ratelimitx.core.errors import ValidationAppError
from ratelimitx.services.coordinator import Coordinator


def create_counter_store(store_settings: StoreSettings | None = None) -> AbstractCounterStore:
    """Instantiate the counter store selected by ``STORE_BACKEND``.

    Returns:
        AbstractCounterStore: Redis-backed store, or the in-memory store for
        single-process use.

    Raises:
        ValidationAppError: If the backend is unknown.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisCounterStore.from_url(
            cfg.url,
            socket_timeout=cfg.socket_timeout_seconds,
            connect_timeout=cfg.connect_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryCounterStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown counter store backend: '{backend}'. Supported backends: redis, memory",
        details={"backend": backend},
    )


def create_fallback_limiter(
    limiter_settings: LimiterSettings | None = None,
) -> LocalFallbackLimiter | None:
    """Build the local fallback limiter, or None when fail-closed is configured."""
    cfg = limiter_settings or settings.limiter
    if not cfg.fallback_enabled:
        return None

    try:
        return LocalFallbackLimiter(
            rate=cfg.fallback_rate_per_second,
            burst=cfg.fallback_burst,
            scope=cfg.fallback_scope,
            max_entries=cfg.fallback_max_entries,
        )
    except ValueError as exc:
        raise ValidationAppError(
            code="fallback_invalid_config",
            message=str(exc),
            details={"hint": "Check the LIMITER_FALLBACK_* environment variables"},
        ) from exc


def create_coordinator(
    store: AbstractCounterStore | None = None,
    *,
    store_settings: StoreSettings | None = None,
    limiter_settings: LimiterSettings | None = None,
) -> Coordinator:
    """Wire a Coordinator from configuration.

    Args:
        store: Pre-built store to use instead of the configured backend.
        store_settings: Overrides ``settings.store``.
        limiter_settings: Overrides ``settings.limiter``.

    Returns:
        Coordinator ready to serve decisions.
    """
    store_cfg = store_settings or settings.store
    limiter_cfg = limiter_settings or settings.limiter

    return Coordinator(
        store if store is not None else create_counter_store(store_cfg),
        fallback=create_fallback_limiter(limiter_cfg),
        key_prefix=store_cfg.key_prefix,
        max_cas_retries=limiter_cfg.max_cas_retries,
    )
