"""Exception handlers turning domain errors into JSON error responses.

Every error body has the same shape::

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}

``details`` is present only when the error carries some. Denied admission
decisions are not errors and never reach these handlers.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ratelimitx.core.errors import (
    AppError,
    AuthenticationAppError,
    StoreUnavailableError,
    ValidationAppError,
)
from ratelimitx.core.logging import get_request_id

logger = logging.getLogger(__name__)

# First match wins; CASConflictError is covered by StoreUnavailableError.
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (AuthenticationAppError, 403),
    (StoreUnavailableError, 503),
    (ValidationAppError, 400),
)


def _status_for(exc: AppError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    error = {"code": code, "message": message, "request_id": get_request_id()}
    if details:
        error["details"] = details
    return {"error": error}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError with the status from ``_STATUS_BY_ERROR``.

    A 503 means the shared counter store could not complete an
    administrative operation (reset); admission checks never raise it.
    """
    status_code = _status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "request_path": request.url.path,
            "has_details": bool(exc.details),
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the failure, return a generic 500."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
