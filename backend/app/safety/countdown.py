"""
countdown.py — Cancellable countdown between a shake and dispatch.

    start()   Idle/Cancelled/Fired → Armed(N), vibrate, start 1 s timer
    tick()    Armed(n) → Armed(n-1); at 0 → Fired and on_fire() once
    cancel()  Armed(n>0) → Cancelled, stop vibration, notify (best-effort)
    reset()   any → Idle, timer cleared (tracking switched off)

═══════════════════════════════════════════════════════════════════════════
ORDERING
═══════════════════════════════════════════════════════════════════════════

Everything runs on one asyncio loop. tick() is synchronous and cancel()
performs all of its state changes before its first await, so the two
are linearizable: whichever callback the loop runs first wins.

    cancel() runs first → phase is Cancelled, the timer is stopped and
                          cancel_requested is set; a tick already queued
                          sees a non-Armed phase and does nothing.
    tick() runs first   → it may reach 0 and fire; a later cancel()
                          finds phase Fired and is rejected.

No double fire and no fire after cancel.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from backend.app.core.logging_config import (
    clear_cycle_context,
    new_cycle_id,
    set_cycle_context,
)
from backend.app.safety.interfaces import HapticDriver, NotificationSink
from backend.app.safety.models import CountdownPhase, SafetyContext
from backend.app.safety.timer import RepeatingTimer

logger = logging.getLogger(__name__)

DEFAULT_TICKS = 10
DEFAULT_HAPTIC_PATTERN = (500, 500, 500)


class CountdownController:
    def __init__(
        self,
        context: SafetyContext,
        *,
        haptics: HapticDriver,
        notifications: NotificationSink,
        on_fire: Callable[[], None],
        timer: Optional[RepeatingTimer] = None,
        ticks: int = DEFAULT_TICKS,
        haptic_pattern: Sequence[int] = DEFAULT_HAPTIC_PATTERN,
        cancel_title: str = "Emergency Canceled",
        cancel_body: str = "The emergency alert has been canceled.",
    ):
        self._ctx = context
        self._haptics = haptics
        self._notifications = notifications
        self._on_fire = on_fire
        self._timer = timer or RepeatingTimer(1.0, name="countdown")
        self.ticks = ticks
        self.haptic_pattern = tuple(haptic_pattern)
        self.cancel_title = cancel_title
        self.cancel_body = cancel_body

    @property
    def phase(self) -> CountdownPhase:
        return self._ctx.countdown.phase

    @property
    def ticks_remaining(self) -> Optional[int]:
        return self._ctx.countdown.ticks_remaining

    def start(self, trigger: str = "shake") -> bool:
        """Arm the countdown. Returns False (no-op) if already armed."""
        cd = self._ctx.countdown
        if cd.is_active:
            logger.debug("start() ignored: countdown already armed")
            return False

        # Timer first: if it cannot be scheduled the phase stays unchanged
        self._timer.start(self.tick)

        cd.cycle_id = new_cycle_id()
        set_cycle_context(cycle_id=cd.cycle_id, trigger=trigger)
        cd.cancel_requested = False
        cd.transition(CountdownPhase.ARMED, self.ticks)

        try:
            self._haptics.vibrate(self.haptic_pattern)
        except Exception as exc:
            logger.warning("Haptic pattern failed: %s", exc, extra={"operation": "vibrate"})

        logger.info(
            "Countdown armed at %d", self.ticks,
            extra={"ticks_remaining": self.ticks},
        )
        return True

    def tick(self) -> None:
        cd = self._ctx.countdown
        if cd.phase != CountdownPhase.ARMED:
            self._timer.stop()
            return

        # cancel() also moves the phase, so this only catches a flag set directly
        if cd.cancel_requested:
            cd.transition(CountdownPhase.CANCELLED, cd.ticks_remaining)
            self._timer.stop()
            logger.info("Cancellation observed at tick")
            return

        remaining = cd.ticks_remaining - 1
        cd.transition(CountdownPhase.ARMED, remaining)
        logger.debug("Countdown %d", remaining, extra={"ticks_remaining": remaining})
        if remaining > 0:
            return

        cd.transition(CountdownPhase.FIRED, 0)
        self._timer.stop()
        logger.warning("Countdown expired, dispatching alert", extra={"ticks_remaining": 0})
        self._on_fire()

    async def cancel(self) -> bool:
        """Cancel an armed countdown. Returns False if nothing was armed."""
        cd = self._ctx.countdown
        if cd.phase != CountdownPhase.ARMED or not cd.ticks_remaining:
            logger.info("cancel() ignored in phase %s", cd.phase.value)
            return False

        cd.cancel_requested = True
        cd.transition(CountdownPhase.CANCELLED, cd.ticks_remaining)
        self._timer.stop()
        try:
            self._haptics.cancel()
        except Exception as exc:
            logger.warning("Haptic cancel failed: %s", exc, extra={"operation": "vibrate_cancel"})
        logger.info(
            "Countdown cancelled with %d remaining", cd.ticks_remaining,
            extra={"ticks_remaining": cd.ticks_remaining},
        )

        # No state changes past this point
        try:
            await self._notifications.schedule_immediate(self.cancel_title, self.cancel_body)
        except Exception as exc:
            logger.warning(
                "Cancel notification failed: %s", exc,
                extra={"operation": "notification"},
            )
        return True

    def reset(self) -> None:
        """Return to Idle from any phase and clear the timer."""
        self._timer.stop()
        cd = self._ctx.countdown
        if cd.is_active:
            try:
                self._haptics.cancel()
            except Exception as exc:
                logger.warning("Haptic cancel failed: %s", exc, extra={"operation": "vibrate_cancel"})
        cd.cancel_requested = False
        cd.cycle_id = None
        if cd.phase != CountdownPhase.IDLE:
            cd.transition(CountdownPhase.IDLE, None)
        clear_cycle_context()
