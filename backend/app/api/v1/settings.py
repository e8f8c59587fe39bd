"""
FastAPI route: live detection settings.

    GET /api/v1/settings/threshold  — current value and allowed range
    PUT /api/v1/settings/threshold  — takes effect on the next sample
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.app.api.schemas import ThresholdInput, ThresholdResponse, get_monitor
from backend.app.safety.monitor import SafetyMonitor

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


@router.get("/threshold", response_model=ThresholdResponse)
async def get_threshold(monitor: SafetyMonitor = Depends(get_monitor)):
    return ThresholdResponse(threshold=monitor.detector.threshold)


@router.put("/threshold", response_model=ThresholdResponse)
async def set_threshold(request: ThresholdInput, monitor: SafetyMonitor = Depends(get_monitor)):
    value = monitor.detector.set_threshold(request.threshold)
    return ThresholdResponse(threshold=value)
