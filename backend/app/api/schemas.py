"""
Pydantic schemas for the safety control API.

Separated from the route handlers so they are reusable across
the codebase (sensor bridges, tests).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import Request
from pydantic import BaseModel, Field

from backend.app.core.config import settings
from backend.app.safety.monitor import SafetyMonitor


def get_monitor(request: Request) -> SafetyMonitor:
    """FastAPI dependency: the monitor built in the app lifespan."""
    return request.app.state.monitor


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SampleInput(BaseModel):
    """One accelerometer reading pushed by the host sensor bridge."""
    x: float = Field(..., allow_inf_nan=False, examples=[0.0])
    y: float = Field(..., allow_inf_nan=False, examples=[0.0])
    z: float = Field(..., allow_inf_nan=False, examples=[7.0])


class SampleBatchInput(BaseModel):
    samples: List[SampleInput] = Field(..., min_length=1)


class ContactInput(BaseModel):
    contact: str = Field(..., examples=["friend@example.com"])


class ThresholdInput(BaseModel):
    threshold: float = Field(
        ...,
        ge=settings.SHAKE_THRESHOLD_MIN,
        le=settings.SHAKE_THRESHOLD_MAX,
        examples=[6.0],
        description="Lower values make detection more sensitive",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class TrackingResponse(BaseModel):
    tracking: bool
    changed: bool


class SampleResponse(BaseModel):
    accepted: int
    tracking: bool
    shake_detected: bool
    countdown_phase: str
    ticks_remaining: Optional[int]


class CancelResponse(BaseModel):
    cancelled: bool
    phase: str


class ContactListResponse(BaseModel):
    contacts: List[str]
    count: int


class ThresholdResponse(BaseModel):
    threshold: float
    minimum: float = settings.SHAKE_THRESHOLD_MIN
    maximum: float = settings.SHAKE_THRESHOLD_MAX
    step: float = settings.SHAKE_THRESHOLD_STEP


class NoticeListResponse(BaseModel):
    notices: List[Dict[str, Any]]
