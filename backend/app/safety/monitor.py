"""
monitor.py — Wires the pipeline together and owns its lifetime.

    Sampler ──▶ ShakeDetector ──▶ CountdownController ──▶ AlertDispatcher ──▶ Transport
                                        ▲
                      cancel() ─────────┘

The monitor owns the SafetyContext and injects it into every component.
Starting tracking acquires the sampler subscription; stopping releases
it and resets the countdown so no timer outlives the feature.

Dispatches started by countdown expiry run as tracked tasks so they can
be awaited on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from backend.app.core.config import Settings
from backend.app.core.logging_config import set_cycle_context, new_cycle_id
from backend.app.safety.channels.device import (
    LoggingHapticDriver,
    LoggingNotificationSink,
    LoggingSpeechAnnouncer,
    NoticeBoard,
    PushMotionSampler,
    StaticGeolocationProvider,
)
from backend.app.safety.channels.mailgun import build_transport
from backend.app.safety.contacts import ContactStore
from backend.app.safety.countdown import CountdownController
from backend.app.safety.detector import ShakeDetector
from backend.app.safety.dispatcher import AlertDispatcher
from backend.app.safety.interfaces import (
    GeolocationProvider,
    HapticDriver,
    MessageTransport,
    MotionSampler,
    NoticeSink,
    NotificationSink,
    SpeechAnnouncer,
    SubscriptionHandle,
)
from backend.app.safety.models import (
    AccelerationSample,
    DispatchResult,
    GeoPosition,
    PermissionStatus,
    SafetyContext,
)
from backend.app.safety.timer import RepeatingTimer

logger = logging.getLogger(__name__)


class SafetyMonitor:
    def __init__(
        self,
        *,
        sampler: MotionSampler,
        geolocation: GeolocationProvider,
        notifications: NotificationSink,
        speech: SpeechAnnouncer,
        haptics: HapticDriver,
        transport: MessageTransport,
        notices: NoticeSink,
        settings: Settings,
        contacts: Optional[ContactStore] = None,
        timer: Optional[RepeatingTimer] = None,
    ):
        self.context = SafetyContext()
        self.context.shake.threshold = settings.SHAKE_THRESHOLD_DEFAULT
        self.sampler = sampler
        self.geolocation = geolocation
        self.transport = transport
        self.notices = notices
        self.contacts = contacts if contacts is not None else ContactStore()
        self._subscription: Optional[SubscriptionHandle] = None
        self._dispatch_tasks: Set[asyncio.Task] = set()

        self.detector = ShakeDetector(
            self.context,
            min_threshold=settings.SHAKE_THRESHOLD_MIN,
            max_threshold=settings.SHAKE_THRESHOLD_MAX,
        )
        self.dispatcher = AlertDispatcher(
            self.context,
            contacts=self.contacts.list,
            geolocation=geolocation,
            notifications=notifications,
            speech=speech,
            transport=transport,
            notices=notices,
            sender=settings.mail_sender,
            notification_title=settings.NOTIFICATION_TITLE,
            notification_body=settings.NOTIFICATION_BODY,
            speech_text=settings.SPEECH_TEXT,
            map_link_base=settings.MAP_LINK_BASE,
            concurrent_sends=settings.DISPATCH_CONCURRENT_SENDS,
        )
        self.countdown = CountdownController(
            self.context,
            haptics=haptics,
            notifications=notifications,
            on_fire=self._schedule_dispatch,
            timer=timer or RepeatingTimer(settings.COUNTDOWN_TICK_SECONDS, name="countdown"),
            ticks=settings.COUNTDOWN_TICKS,
            haptic_pattern=settings.HAPTIC_PATTERN_MS,
            cancel_title=settings.CANCEL_NOTIFICATION_TITLE,
            cancel_body=settings.CANCEL_NOTIFICATION_BODY,
        )

    # ── Tracking lifetime ──

    @property
    def is_tracking(self) -> bool:
        return self.context.tracking

    def start_tracking(self) -> bool:
        if self.context.tracking:
            return False
        self._subscription = self.sampler.subscribe(self.handle_sample)
        self.context.tracking = True
        logger.info("Shake tracking started")
        return True

    def stop_tracking(self) -> bool:
        if not self.context.tracking:
            return False
        self.sampler.unsubscribe_all()
        self._subscription = None
        self.countdown.reset()
        self.detector.reset()
        self.context.tracking = False
        logger.info("Shake tracking stopped")
        return True

    def toggle_tracking(self) -> bool:
        """Flip tracking; returns the new state."""
        if self.context.tracking:
            self.stop_tracking()
        else:
            self.start_tracking()
        return self.context.tracking

    # ── Event handlers ──

    def handle_sample(self, sample: AccelerationSample) -> None:
        event = self.detector.observe(sample)
        if event is not None:
            try:
                self.countdown.start(trigger="shake")
            except Exception:
                self.context.shake.shake_detected = False
                raise

    async def cancel(self) -> bool:
        return await self.countdown.cancel()

    async def send_now(self) -> DispatchResult:
        """Manual escape hatch; shares the idempotency record with expiry."""
        set_cycle_context(cycle_id=self.context.countdown.cycle_id or new_cycle_id(), trigger="manual")
        return await self.dispatcher.dispatch(trigger="manual")

    def _schedule_dispatch(self) -> None:
        task = asyncio.get_running_loop().create_task(
            self.dispatcher.dispatch(trigger="countdown"), name="dispatch",
        )
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._on_dispatch_done)

    def _on_dispatch_done(self, task: asyncio.Task) -> None:
        self._dispatch_tasks.discard(task)
        if task.cancelled():
            logger.warning("Dispatch task cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Dispatch task failed: %s", exc, exc_info=exc)

    async def wait_for_dispatches(self) -> None:
        if self._dispatch_tasks:
            await asyncio.gather(*list(self._dispatch_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self.stop_tracking()
        await self.wait_for_dispatches()
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()

    # ── Status ──

    def status(self) -> Dict[str, Any]:
        ctx = self.context
        return {
            "tracking": ctx.tracking,
            "shake_detected": ctx.shake.shake_detected,
            "last_sample": ctx.shake.last_sample.to_dict(),
            "threshold": ctx.shake.threshold,
            "countdown": ctx.countdown.to_dict(),
            "email_sent": ctx.dispatch.email_sent,
            "contact_count": len(self.contacts),
            "last_result": ctx.last_result.to_dict() if ctx.last_result else None,
        }


def build_monitor(settings: Settings) -> SafetyMonitor:
    """Construct a monitor with the built-in backends named by settings."""
    permission = PermissionStatus(settings.SIM_LOCATION_PERMISSION.lower())
    return SafetyMonitor(
        sampler=PushMotionSampler(),
        geolocation=StaticGeolocationProvider(
            GeoPosition(settings.SIM_LATITUDE, settings.SIM_LONGITUDE),
            permission=permission,
        ),
        notifications=LoggingNotificationSink(),
        speech=LoggingSpeechAnnouncer(),
        haptics=LoggingHapticDriver(),
        transport=build_transport(settings),
        notices=NoticeBoard(settings.NOTICE_HISTORY_SIZE),
        settings=settings,
    )
