"""Pydantic schemas for the admission decision endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class WindowCheckRequest(BaseModel):
    """Fixed-window admission request."""

    limit: int = Field(..., ge=1, description="Maximum events admitted per window.")
    window_seconds: float = Field(
        ..., gt=0, allow_inf_nan=False, description="Window length in seconds."
    )
    cost: int = Field(1, ge=1, description="Events this request represents.")


class WindowCheckResponse(BaseModel):
    """Fixed-window admission decision."""

    allowed: bool
    count: int = Field(
        ...,
        description=(
            "Attempted volume in the current window, including this request even "
            "when denied. 0 when the store was unreachable and no fallback is set."
        ),
    )
    remaining: int = Field(..., description="Events still admissible in this window.")
    delay_seconds: float = Field(..., description="Seconds until the window resets.")
    source: Literal["store", "fallback", "fail_closed"]


class RateCheckRequest(BaseModel):
    """Continuous-rate admission request."""

    rate_per_second: float = Field(
        ..., gt=0, allow_inf_nan=False, description="Sustained events per second."
    )
    burst: int = Field(1, ge=1, description="Events admissible back-to-back when idle.")


class RateCheckResponse(BaseModel):
    """Continuous-rate admission decision."""

    allowed: bool
    delay_seconds: float = Field(
        ..., description="0 when allowed; otherwise seconds until the next admissible event."
    )
    source: Literal["store", "fallback", "fail_closed"]
