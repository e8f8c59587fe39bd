"""
Protocols for the collaborators the pipeline consumes.

Concrete backends live in safety.channels; tests substitute mocks.
"""

from __future__ import annotations

from typing import Callable, Protocol, Sequence

from backend.app.safety.models import (
    AccelerationSample,
    DeliveryAttempt,
    GeoPosition,
    OutboundMessage,
    PermissionStatus,
)

SampleCallback = Callable[[AccelerationSample], None]


class SubscriptionHandle(Protocol):
    def remove(self) -> None: ...


class MotionSampler(Protocol):
    def subscribe(self, callback: SampleCallback) -> SubscriptionHandle: ...

    def unsubscribe_all(self) -> None: ...


class GeolocationProvider(Protocol):
    async def request_permission(self) -> PermissionStatus: ...

    async def get_current_position(self) -> GeoPosition:
        """Raises LocationUnavailableError when no fix can be obtained."""
        ...


class NotificationSink(Protocol):
    async def schedule_immediate(self, title: str, body: str) -> None:
        """Raises NotificationFailureError."""
        ...


class SpeechAnnouncer(Protocol):
    def speak(self, text: str) -> None: ...


class HapticDriver(Protocol):
    def vibrate(self, pattern: Sequence[int]) -> None: ...

    def cancel(self) -> None: ...


class MessageTransport(Protocol):
    async def send(self, message: OutboundMessage) -> DeliveryAttempt:
        """Never raises for upstream errors; reports them on the attempt."""
        ...


class NoticeSink(Protocol):
    """Visible, human-readable notices for the user."""

    def show(self, title: str, message: str) -> None: ...
