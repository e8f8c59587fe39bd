"""
FastAPI route: shake tracking, countdown and dispatch control.

Provides endpoints to:
    POST /api/v1/tracking/start     — subscribe to the motion sampler
    POST /api/v1/tracking/stop      — unsubscribe, clear any countdown
    POST /api/v1/tracking/toggle    — flip tracking
    POST /api/v1/samples            — push accelerometer readings
    POST /api/v1/countdown/cancel   — cancel an armed countdown
    POST /api/v1/dispatch           — send the SOS now
    GET  /api/v1/status             — pipeline snapshot
    GET  /api/v1/notices            — user-facing notices
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.app.api.schemas import (
    CancelResponse,
    NoticeListResponse,
    SampleBatchInput,
    SampleResponse,
    TrackingResponse,
    get_monitor,
)
from backend.app.safety.channels.device import NoticeBoard, PushMotionSampler
from backend.app.safety.models import AccelerationSample
from backend.app.safety.monitor import SafetyMonitor

router = APIRouter(prefix="/api/v1", tags=["safety"])


@router.post("/tracking/start", response_model=TrackingResponse)
async def start_tracking(monitor: SafetyMonitor = Depends(get_monitor)):
    changed = monitor.start_tracking()
    return TrackingResponse(tracking=monitor.is_tracking, changed=changed)


@router.post("/tracking/stop", response_model=TrackingResponse)
async def stop_tracking(monitor: SafetyMonitor = Depends(get_monitor)):
    changed = monitor.stop_tracking()
    return TrackingResponse(tracking=monitor.is_tracking, changed=changed)


@router.post("/tracking/toggle", response_model=TrackingResponse)
async def toggle_tracking(monitor: SafetyMonitor = Depends(get_monitor)):
    return TrackingResponse(tracking=monitor.toggle_tracking(), changed=True)


@router.post(
    "/samples",
    response_model=SampleResponse,
    summary="Push accelerometer samples",
    description=(
        "Samples are delivered to subscribers in order. While tracking is "
        "off they are counted but not observed."
    ),
)
async def push_samples(
    request: SampleBatchInput,
    monitor: SafetyMonitor = Depends(get_monitor),
):
    sampler = monitor.sampler
    for s in request.samples:
        sample = AccelerationSample(s.x, s.y, s.z)
        if isinstance(sampler, PushMotionSampler):
            sampler.push(sample)
        elif monitor.is_tracking:
            monitor.handle_sample(sample)

    cd = monitor.context.countdown
    return SampleResponse(
        accepted=len(request.samples),
        tracking=monitor.is_tracking,
        shake_detected=monitor.context.shake.shake_detected,
        countdown_phase=cd.phase.value,
        ticks_remaining=cd.ticks_remaining,
    )


@router.post("/countdown/cancel", response_model=CancelResponse)
async def cancel_countdown(monitor: SafetyMonitor = Depends(get_monitor)):
    cancelled = await monitor.cancel()
    return CancelResponse(cancelled=cancelled, phase=monitor.countdown.phase.value)


@router.post(
    "/dispatch",
    summary="Send the emergency alert now",
    description="Same idempotency guard as countdown expiry: sends at most once.",
)
async def send_now(monitor: SafetyMonitor = Depends(get_monitor)):
    result = await monitor.send_now()
    return result.to_dict()


@router.get("/status")
async def get_status(monitor: SafetyMonitor = Depends(get_monitor)):
    return monitor.status()


@router.get("/notices", response_model=NoticeListResponse)
async def list_notices(monitor: SafetyMonitor = Depends(get_monitor)):
    notices = monitor.notices
    if isinstance(notices, NoticeBoard):
        return NoticeListResponse(notices=[n.to_dict() for n in notices.list()])
    return NoticeListResponse(notices=[])
