from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ratelimitx.core.rate_limit import get_coordinator
from ratelimitx.services.coordinator import Coordinator

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(coordinator: Annotated[Coordinator, Depends(get_coordinator)]) -> dict:
    """Health check endpoint.

    The service stays "ok" while the store is down: decisions keep flowing
    through the fail-closed or fallback policy. ``store`` reports reachability.

    Returns:
        dict: ``{"status": "ok", "store": "up" | "down"}``.
    """

    return {"status": "ok", "store": "up" if coordinator.store.ping() else "down"}
