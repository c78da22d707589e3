"""Application-level exception types.

This module defines the errors shared by the store adapters, the limiters and
the HTTP layer, enabling consistent handling, logging and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; only the ones relevant to a failure are populated.
    """

    code: str
    message: str
    hint: str
    operation: str
    key_kind: str
    attempts: int
    backend: str
    retry_after: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class StoreUnavailableError(AppError):
    """Raised when the shared counter store cannot serve a request.

    Covers connection failures, timeouts, protocol and decoding errors alike:
    callers cannot tell "down" from "slow beyond timeout" and should not try.
    """


class CASConflictError(StoreUnavailableError):
    """Raised when a compare-and-swap loop runs out of retries.

    A subclass of StoreUnavailableError so that every caller prepared for an
    unreachable store degrades the same way under heavy contention.
    """
