"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build fresh instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from ratelimitx.api.routes import health_router, limits_router
from ratelimitx.core.config import settings
from ratelimitx.core.exception_handlers import setup_exception_handlers
from ratelimitx.core.logging import configure_logging
from ratelimitx.core.middleware import request_id_middleware


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="ratelimitx",
        description=(
            "Distributed admission control: fixed-window and continuous-rate "
            "decisions shared through Redis, with a fail-closed or local "
            "fallback policy when the store is unreachable."
        ),
        version="0.1.0",
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    return app
