from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from ratelimitx.core.auth import verify_admin_key
from ratelimitx.core.rate_limit import enforce_rate_limit, get_coordinator
from ratelimitx.schemas.limits import (
    RateCheckRequest,
    RateCheckResponse,
    WindowCheckRequest,
    WindowCheckResponse,
)
from ratelimitx.services.coordinator import Coordinator

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/limits",
    tags=["Limits"],
    dependencies=[Depends(enforce_rate_limit)],
)

CoordinatorDep = Annotated[Coordinator, Depends(get_coordinator)]


@router.post("/window/{identifier}", response_model=WindowCheckResponse)
def check_window(
    identifier: str,
    body: WindowCheckRequest,
    coordinator: CoordinatorDep,
) -> WindowCheckResponse:
    """Count one request against a fixed window and return the decision.

    A denied decision is a normal 200 response with ``allowed=false``; the
    caller decides what to do with it.
    """

    result = coordinator.allow(identifier, body.limit, body.window_seconds, cost=body.cost)
    return WindowCheckResponse(
        allowed=result.allowed,
        count=result.count,
        remaining=result.remaining,
        delay_seconds=result.delay_seconds,
        source=result.source,
    )


@router.post("/rate/{identifier}", response_model=RateCheckResponse)
def check_rate(
    identifier: str,
    body: RateCheckRequest,
    coordinator: CoordinatorDep,
) -> RateCheckResponse:
    """Decide one event against a continuous rate."""

    decision = coordinator.allow_rate(identifier, body.rate_per_second, burst=body.burst)
    return RateCheckResponse(
        allowed=decision.allowed,
        delay_seconds=decision.delay_seconds,
        source=decision.source,
    )


@router.delete(
    "/window/{identifier}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(verify_admin_key)],
)
def reset_window(
    identifier: str,
    coordinator: CoordinatorDep,
    window_seconds: Annotated[float, Query(gt=0, allow_inf_nan=False)],
) -> Response:
    """Administrative reset of a fixed-window counter."""

    coordinator.reset(identifier, window_seconds)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/rate/{identifier}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(verify_admin_key)],
)
def reset_rate(
    identifier: str,
    coordinator: CoordinatorDep,
    rate_per_second: Annotated[float, Query(gt=0, allow_inf_nan=False)],
    burst: Annotated[int, Query(ge=1)] = 1,
) -> Response:
    """Administrative reset of a rate bucket."""

    coordinator.reset_rate(identifier, rate_per_second, burst=burst)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
