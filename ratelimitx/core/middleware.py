"""HTTP middleware for request ID propagation and correlation.

The middleware:
- Accepts the incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars so limiter logs carry it
- Echoes request_id and the request duration in response headers
- Clears context after the request completes

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from ratelimitx.core.config import settings
from ratelimitx.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client sends the configured header (``LOG_REQUEST_ID_HEADER``,
    default X-Request-ID) its value is reused; otherwise a UUID4 is generated.
    While the request is handled the id lives in contextvars, so admission
    decision logs and error bodies can be correlated with the caller.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with request id and duration
            headers added.

    Side Effects:
        - Sets request_id in contextvars (readable via get_request_id())
        - Clears request_id from contextvars once the handler returns
        - Adds the request id header and X-Request-Duration-ms to the response

    Example:
        >>> # Request arrives with header X-Request-ID: req-abc-123
        >>> # Response carries X-Request-ID: req-abc-123 and
        >>> # X-Request-Duration-ms: 1.73
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
