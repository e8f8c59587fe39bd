"""
dispatcher.py — Emergency alert dispatch orchestration.

Called when the countdown expires or when the user presses "send now".
Both paths share one DispatchRecord, so at most one batch is ever sent
per process.

═══════════════════════════════════════════════════════════════════════════
DISPATCH FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  1. Idempotency     │  email_sent → ALREADY_SENT, nothing else runs
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  2. Contacts        │  empty → NO_CONTACTS (fatal, no side effects)
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  3. Notification    │  best-effort
    │  4. Speech          │  best-effort
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  5. Location        │  denied / failed → abort, zero messages sent
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  6-7. Delivery      │  one message per email-shaped contact,
    │                     │  issued concurrently, failures isolated
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  8. Mark sent       │  after every send settles, even if some failed
    └─────────────────────┘

A partially failed batch still sets email_sent and is not retried.

Concurrent dispatch() calls are serialised on a lock. A caller that
waited sees the first caller's email_sent flag and returns ALREADY_SENT;
if the first call aborted (no contacts, no location) the waiting caller
makes a fresh attempt.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, List, Optional

from backend.app.core.errors import (
    LocationUnavailableError,
    NoContactsError,
    NotificationFailureError,
    PermissionDeniedError,
    SpeechFailureError,
    TransportFailureError,
)
from backend.app.safety.interfaces import (
    GeolocationProvider,
    MessageTransport,
    NoticeSink,
    NotificationSink,
    SpeechAnnouncer,
)
from backend.app.safety.models import (
    STEP_POLICIES,
    DeliveryAttempt,
    DeliveryStatus,
    DispatchOutcome,
    DispatchResult,
    DispatchStep,
    GeoPosition,
    OutboundMessage,
    PermissionStatus,
    SafetyContext,
    StepPolicy,
)

logger = logging.getLogger(__name__)

DEFAULT_MAP_LINK_BASE = "https://www.google.com/maps?q="


def is_email_shaped(contact: str) -> bool:
    return "@" in contact


def format_alert_text(position: GeoPosition, map_link_base: str = DEFAULT_MAP_LINK_BASE) -> str:
    lat, lon = position.latitude, position.longitude
    return (
        f"Help! My current location is: Latitude {lat}, Longitude {lon}\n\n"
        f"View on Google Maps: {map_link_base}{lat},{lon}"
    )


class AlertDispatcher:
    def __init__(
        self,
        context: SafetyContext,
        *,
        contacts: Callable[[], Iterable[str]],
        geolocation: GeolocationProvider,
        notifications: NotificationSink,
        speech: SpeechAnnouncer,
        transport: MessageTransport,
        notices: NoticeSink,
        sender: str,
        notification_title: str = "Emergency Alert",
        notification_body: str = "Sending emergency notifications!",
        speech_text: str = "Emergency detected. Sending help messages.",
        map_link_base: str = DEFAULT_MAP_LINK_BASE,
        concurrent_sends: bool = True,
    ):
        self._ctx = context
        self._contacts = contacts
        self._geolocation = geolocation
        self._notifications = notifications
        self._speech = speech
        self._transport = transport
        self._notices = notices
        self.sender = sender
        self.notification_title = notification_title
        self.notification_body = notification_body
        self.speech_text = speech_text
        self.map_link_base = map_link_base
        self.concurrent_sends = concurrent_sends
        self._lock = asyncio.Lock()

    @property
    def email_sent(self) -> bool:
        return self._ctx.dispatch.email_sent

    async def dispatch(self, trigger: str = "countdown") -> DispatchResult:
        async with self._lock:
            result = await self._dispatch(trigger)
        result.completed_at = datetime.now(timezone.utc)
        # Keep the record of the batch that actually ran
        if result.outcome is not DispatchOutcome.ALREADY_SENT:
            self._ctx.last_result = result
        logger.info(
            "Dispatch finished: %s (%d delivered, %d failed, %d skipped)",
            result.outcome.value, result.delivered_count,
            result.failed_count, len(result.skipped_contacts),
            extra={"outcome": result.outcome.value},
        )
        return result

    async def _dispatch(self, trigger: str) -> DispatchResult:
        if self._ctx.dispatch.email_sent:
            logger.info("Dispatch skipped: alert already sent")
            return DispatchResult(DispatchOutcome.ALREADY_SENT, trigger=trigger)

        contacts: List[str] = list(self._contacts())
        if not contacts:
            exc = NoContactsError()
            logger.error("Dispatch aborted: %s", exc.message, extra={"operation": "contacts"})
            self._notices.show("Missing Contact", exc.message)
            result = DispatchResult(DispatchOutcome.NO_CONTACTS, trigger=trigger)
            result.step_failures[DispatchStep.CONTACTS.value] = exc.error_code
            return result

        result = DispatchResult(DispatchOutcome.SENT, trigger=trigger)

        await self._run_step(DispatchStep.NOTIFICATION, result, self._notify)
        await self._run_step(DispatchStep.SPEECH, result, self._speak)

        try:
            position = await self._locate()
        except PermissionDeniedError as exc:
            self._notices.show("Permission Denied", exc.message)
            result.outcome = DispatchOutcome.PERMISSION_DENIED
            result.step_failures[DispatchStep.LOCATION.value] = exc.error_code
            return result
        except LocationUnavailableError as exc:
            self._notices.show("Error", exc.message)
            result.outcome = DispatchOutcome.LOCATION_UNAVAILABLE
            result.step_failures[DispatchStep.LOCATION.value] = exc.error_code
            return result
        result.position = position

        messages: List[OutboundMessage] = []
        text = format_alert_text(position, self.map_link_base)
        for contact in contacts:
            if is_email_shaped(contact):
                messages.append(OutboundMessage(sender=self.sender, to=contact, text=text))
            else:
                result.skipped_contacts.append(contact)

        result.attempts = await self._deliver_all(messages)
        for attempt in result.attempts:
            if attempt.succeeded:
                self._notices.show("Success", f"Email sent successfully to {attempt.contact}")
            else:
                self._notices.show("Error", f"Failed to send email to {attempt.contact}")

        # Marks the attempt as complete, not that every send succeeded
        self._ctx.dispatch.email_sent = True
        self._ctx.dispatch.sent_at = datetime.now(timezone.utc)
        return result

    # ── Steps ──

    async def _run_step(
        self,
        step: DispatchStep,
        result: DispatchResult,
        action: Callable[[], Awaitable[None]],
    ) -> None:
        """Run a best-effort step. Fatal steps are handled inline."""
        if STEP_POLICIES[step] is not StepPolicy.BEST_EFFORT:
            raise ValueError(f"{step.value} is not a best-effort step")
        try:
            await action()
        except Exception as exc:
            result.step_failures[step.value] = str(exc)
            logger.warning(
                "Best-effort step %s failed: %s", step.value, exc,
                extra={"operation": step.value},
            )

    async def _notify(self) -> None:
        try:
            await self._notifications.schedule_immediate(
                self.notification_title, self.notification_body,
            )
        except NotificationFailureError:
            raise
        except Exception as exc:
            raise NotificationFailureError(str(exc)) from exc

    async def _speak(self) -> None:
        try:
            self._speech.speak(self.speech_text)
        except Exception as exc:
            raise SpeechFailureError(str(exc)) from exc

    async def _locate(self) -> GeoPosition:
        try:
            permission = await self._geolocation.request_permission()
        except Exception as exc:
            logger.error("Location permission request failed: %s", exc, extra={"operation": "location"})
            raise LocationUnavailableError() from exc
        if permission != PermissionStatus.GRANTED:
            logger.error("Location permission denied", extra={"operation": "location"})
            raise PermissionDeniedError()

        try:
            position = await self._geolocation.get_current_position()
        except LocationUnavailableError:
            logger.error("Location fetch failed", extra={"operation": "location"})
            raise
        except Exception as exc:
            logger.error("Location fetch failed: %s", exc, extra={"operation": "location"})
            raise LocationUnavailableError() from exc

        logger.debug(
            "Location fix (%.3f, %.3f)", position.latitude, position.longitude,
            extra={"operation": "location"},
        )
        return position

    async def _deliver_all(self, messages: List[OutboundMessage]) -> List[DeliveryAttempt]:
        if self.concurrent_sends:
            return list(await asyncio.gather(*(self._deliver(m) for m in messages)))
        return [await self._deliver(m) for m in messages]

    async def _deliver(self, message: OutboundMessage) -> DeliveryAttempt:
        try:
            attempt = await self._transport.send(message)
        except Exception as exc:
            failure = TransportFailureError(message.to, f"{type(exc).__name__}: {exc}")
            attempt = DeliveryAttempt(
                contact=message.to,
                status=DeliveryStatus.FAILED,
                completed_at=datetime.now(timezone.utc),
                error_message=failure.message,
            )
        if not attempt.succeeded:
            logger.error(
                "Delivery to %s failed: %s", message.to, attempt.error_message,
                extra={"operation": "delivery", "contact": message.to,
                       "status_code": attempt.status_code},
            )
        return attempt
