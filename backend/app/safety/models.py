"""
models.py — Shared data structures for the shake-to-alert pipeline.

Defines:
    • AccelerationSample — one 3-axis sampler tick
    • ShakeEvent         — a confirmed shake
    • CountdownPhase     — Idle / Armed / Cancelled / Fired
    • DispatchOutcome    — top-level result of one dispatch call
    • DeliveryAttempt    — single per-contact send record
    • DispatchResult     — full dispatch summary
    • SafetyContext      — explicit owner of all mutable pipeline state

═══════════════════════════════════════════════════════════════════════════
COUNTDOWN STATE MACHINE
═══════════════════════════════════════════════════════════════════════════

    Idle ──start()──▶ Armed(10) ──tick──▶ Armed(9) … ──tick──▶ Armed(0) ─▶ Fired
                         │                   │
                         └──── cancel() ─────┴──▶ Cancelled

    Fired / Cancelled ──reset() or next start()──▶ Idle

Only Armed counts as "active": a shake while Armed is ignored.

═══════════════════════════════════════════════════════════════════════════
DISPATCH STEP POLICY
═══════════════════════════════════════════════════════════════════════════

    Step            Policy          On failure
    ────────────    ────────────    ──────────────────────────────────
    contacts        FATAL           NO_CONTACTS, nothing else runs
    notification    BEST_EFFORT     logged, dispatch continues
    speech          BEST_EFFORT     logged, dispatch continues
    location        FATAL           PERMISSION_DENIED / LOCATION_UNAVAILABLE
    delivery        ISOLATED        per-contact FAILED, batch continues
"""

from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class CountdownPhase(str, Enum):
    IDLE      = "idle"
    ARMED     = "armed"
    CANCELLED = "cancelled"
    FIRED     = "fired"


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED  = "denied"


class DispatchOutcome(str, Enum):
    """Top-level result of a dispatch() call."""
    SENT                 = "sent"                  # batch attempted (may be partial)
    ALREADY_SENT         = "already_sent"          # idempotency flag was set
    NO_CONTACTS          = "no_contacts"
    PERMISSION_DENIED    = "permission_denied"
    LOCATION_UNAVAILABLE = "location_unavailable"


class DeliveryStatus(str, Enum):
    """Per-contact send state."""
    PENDING   = "pending"
    SENDING   = "sending"
    DELIVERED = "delivered"   # transport answered 2xx
    FAILED    = "failed"
    SKIPPED   = "skipped"     # not email-shaped


class DispatchStep(str, Enum):
    CONTACTS     = "contacts"
    NOTIFICATION = "notification"
    SPEECH       = "speech"
    LOCATION     = "location"
    DELIVERY     = "delivery"


class StepPolicy(str, Enum):
    FATAL       = "fatal"        # abort the dispatch
    BEST_EFFORT = "best_effort"  # log and continue
    ISOLATED    = "isolated"     # failure confined to one unit of work


STEP_POLICIES: Dict[DispatchStep, StepPolicy] = {
    DispatchStep.CONTACTS:     StepPolicy.FATAL,
    DispatchStep.NOTIFICATION: StepPolicy.BEST_EFFORT,
    DispatchStep.SPEECH:       StepPolicy.BEST_EFFORT,
    DispatchStep.LOCATION:     StepPolicy.FATAL,
    DispatchStep.DELIVERY:     StepPolicy.ISOLATED,
}


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AccelerationSample:
    """One sampler tick. Axis values are device-reported, unbounded."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def delta(self, other: "AccelerationSample") -> float:
        """Sum of per-axis absolute differences (L1 distance)."""
        return abs(self.x - other.x) + abs(self.y - other.y) + abs(self.z - other.z)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(frozen=True)
class ShakeEvent:
    sample: AccelerationSample
    delta: float
    threshold: float
    detected_at: datetime = field(default_factory=_now)


@dataclass
class ShakeState:
    """
    Detector state.

    last_shake is the baseline for the delta and only moves when a shake
    is confirmed; last_sample is the latest raw reading, kept for display.
    """
    threshold: float = 6.0
    last_shake: AccelerationSample = field(default_factory=AccelerationSample)
    last_sample: AccelerationSample = field(default_factory=AccelerationSample)
    shake_detected: bool = False


@dataclass
class CountdownState:
    phase: CountdownPhase = CountdownPhase.IDLE
    ticks_remaining: Optional[int] = None
    cancel_requested: bool = False
    cycle_id: Optional[str] = None
    history: Deque[Tuple[CountdownPhase, Optional[int]]] = field(
        default_factory=lambda: deque(maxlen=64)
    )

    @property
    def is_active(self) -> bool:
        return self.phase == CountdownPhase.ARMED

    def transition(self, phase: CountdownPhase, ticks_remaining: Optional[int]) -> None:
        self.phase = phase
        self.ticks_remaining = ticks_remaining
        self.history.append((phase, ticks_remaining))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "ticks_remaining": self.ticks_remaining,
            "cancel_requested": self.cancel_requested,
            "cycle_id": self.cycle_id,
        }


@dataclass
class DispatchRecord:
    """Process-lifetime idempotency guard. There is no reset operation."""
    email_sent: bool = False
    sent_at: Optional[datetime] = None


@dataclass(frozen=True)
class GeoPosition:
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class OutboundMessage:
    sender: str
    to: str
    text: str


@dataclass
class DeliveryAttempt:
    """Record of one send attempt to one contact."""
    contact: str
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    status: DeliveryStatus = DeliveryStatus.PENDING
    attempted_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None
    status_code: Optional[int] = None
    error_message: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "contact": self.contact,
            "status": self.status.value,
            "attempted_at": self.attempted_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "status_code": self.status_code,
            "error_message": self.error_message,
        }


@dataclass
class DispatchResult:
    """Summary of one dispatch() call."""
    outcome: DispatchOutcome
    trigger: str = "countdown"
    position: Optional[GeoPosition] = None
    attempts: List[DeliveryAttempt] = field(default_factory=list)
    skipped_contacts: List[str] = field(default_factory=list)
    step_failures: Dict[str, str] = field(default_factory=dict)
    started_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    @property
    def delivered_count(self) -> int:
        return sum(1 for a in self.attempts if a.succeeded)

    @property
    def failed_count(self) -> int:
        return sum(1 for a in self.attempts if a.status == DeliveryStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "trigger": self.trigger,
            "position": self.position.to_dict() if self.position else None,
            "delivered": self.delivered_count,
            "failed": self.failed_count,
            "attempts": [a.to_dict() for a in self.attempts],
            "skipped_contacts": list(self.skipped_contacts),
            "step_failures": dict(self.step_failures),
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }


@dataclass
class SafetyContext:
    """
    All mutable pipeline state, owned by the monitor and injected into
    the detector, controller and dispatcher.
    """
    shake: ShakeState = field(default_factory=ShakeState)
    countdown: CountdownState = field(default_factory=CountdownState)
    dispatch: DispatchRecord = field(default_factory=DispatchRecord)
    tracking: bool = False
    last_result: Optional[DispatchResult] = None
