"""Admin key authentication for the reset endpoints.

Resets wipe shared counters for every process, so they are restricted to the
keys listed in ``LIMITER_ADMIN_API_KEYS``. When no keys are configured the
endpoints are open (local development).
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header

from ratelimitx.core.config import settings
from ratelimitx.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ")
        {'key1', 'key2', 'key3'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_admin_key(provided_key: str | None) -> None:
    """Validate an admin key against the configured set.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If keys are configured and the provided one
            is missing or does not match.
    """
    valid_keys = parse_api_keys(settings.limiter.admin_api_keys)
    if not valid_keys:
        return

    if not provided_key:
        logger.warning("admin_auth.missing_key")
        raise AuthenticationAppError(
            code="admin_key_missing",
            message="Missing admin key. Provide X-Admin-Key header.",
        )

    if not any(hmac.compare_digest(provided_key, key) for key in valid_keys):
        logger.warning(
            "admin_auth.invalid_key",
            extra={"admin_key_hash": hashlib.sha256(provided_key.encode()).hexdigest()[:16]},
        )
        raise AuthenticationAppError(
            code="admin_key_invalid",
            message="Invalid admin key",
        )


async def verify_admin_key(
    x_admin_key: Annotated[str | None, Header(alias="X-Admin-Key")] = None,
) -> None:
    """FastAPI dependency guarding administrative routes.

    Usage:
        @router.delete("/...", dependencies=[Depends(verify_admin_key)])

    Raises:
        AuthenticationAppError: Rendered as HTTP 403 by the exception handlers.
    """
    validate_admin_key(x_admin_key)
