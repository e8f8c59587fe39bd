"""
device.py — In-process device backends.

The host application bridges real hardware to these:

    PushMotionSampler          host pushes accelerometer readings in
    StaticGeolocationProvider  fixed position + permission answer
    LoggingNotificationSink    local notifications → log
    LoggingSpeechAnnouncer     speech → log
    LoggingHapticDriver        vibration → log
    NoticeBoard                visible notices kept for the UI to poll

All of them are single-threaded and expect to be driven from the
asyncio loop that owns the monitor.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from backend.app.core.errors import LocationUnavailableError
from backend.app.safety.interfaces import SampleCallback
from backend.app.safety.models import (
    AccelerationSample,
    GeoPosition,
    PermissionStatus,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Motion sampler
# ═══════════════════════════════════════════════════════════════════════════

class _Subscription:
    def __init__(self, sampler: "PushMotionSampler", callback: SampleCallback):
        self._sampler = sampler
        self.callback = callback

    def remove(self) -> None:
        self._sampler._remove(self)


class PushMotionSampler:
    """Fan-out of pushed samples to subscribers, in arrival order."""

    def __init__(self) -> None:
        self._subscriptions: List[_Subscription] = []
        self.samples_received = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: SampleCallback) -> _Subscription:
        sub = _Subscription(self, callback)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe_all(self) -> None:
        self._subscriptions.clear()

    def _remove(self, sub: _Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def push(self, sample: AccelerationSample) -> int:
        """Deliver a sample to every subscriber. Returns the subscriber count."""
        self.samples_received += 1
        subs = list(self._subscriptions)
        for sub in subs:
            try:
                sub.callback(sample)
            except Exception:
                logger.exception("Sample subscriber failed")
        return len(subs)


# ═══════════════════════════════════════════════════════════════════════════
# Geolocation
# ═══════════════════════════════════════════════════════════════════════════

class StaticGeolocationProvider:
    def __init__(
        self,
        position: Optional[GeoPosition],
        *,
        permission: PermissionStatus = PermissionStatus.GRANTED,
    ):
        self.position = position
        self.permission = permission

    async def request_permission(self) -> PermissionStatus:
        return self.permission

    async def get_current_position(self) -> GeoPosition:
        if self.position is None:
            raise LocationUnavailableError()
        return self.position


# ═══════════════════════════════════════════════════════════════════════════
# Notification, speech, haptics
# ═══════════════════════════════════════════════════════════════════════════

class LoggingNotificationSink:
    def __init__(self) -> None:
        self.delivered: List[Tuple[str, str]] = []

    async def schedule_immediate(self, title: str, body: str) -> None:
        self.delivered.append((title, body))
        logger.info("[NOTIFY] %s: %s", title, body)


class LoggingSpeechAnnouncer:
    def __init__(self) -> None:
        self.spoken: List[str] = []

    def speak(self, text: str) -> None:
        self.spoken.append(text)
        logger.info("[SPEECH] %s", text)


class LoggingHapticDriver:
    def __init__(self) -> None:
        self.vibrating = False

    def vibrate(self, pattern: Sequence[int]) -> None:
        self.vibrating = True
        logger.info("[HAPTIC] vibrate %s", list(pattern))

    def cancel(self) -> None:
        self.vibrating = False
        logger.info("[HAPTIC] cancel")


# ═══════════════════════════════════════════════════════════════════════════
# Notices
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Notice:
    title: str
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, str]:
        return {
            "title": self.title,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


class NoticeBoard:
    """Bounded history of user-facing notices, newest last."""

    def __init__(self, maxlen: int = 100):
        self._notices: Deque[Notice] = deque(maxlen=maxlen)

    def show(self, title: str, message: str) -> None:
        self._notices.append(Notice(title, message))
        logger.info("[NOTICE] %s", title)

    def list(self) -> List[Notice]:
        return list(self._notices)

    def clear(self) -> None:
        self._notices.clear()
