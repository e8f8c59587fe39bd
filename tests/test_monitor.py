"""
test_monitor.py — End-to-end tests of the wired pipeline.

Sampler → Detector → Countdown → Dispatcher → Transport, on a real
event loop with a millisecond tick.

Covers:
    • Shake arms the countdown; expiry dispatches once
    • Cancel during countdown: nothing sent
    • Stopping tracking unsubscribes and clears the timer
    • Manual send shares the idempotency flag with expiry
    • Status snapshot

Run with:
    pytest tests/test_monitor.py -v
"""

from __future__ import annotations

import asyncio

from backend.app.core.config import Settings
from backend.app.safety.channels.device import (
    LoggingHapticDriver,
    LoggingNotificationSink,
    LoggingSpeechAnnouncer,
    NoticeBoard,
    PushMotionSampler,
    StaticGeolocationProvider,
)
from backend.app.safety.channels.mailgun import SimulatedTransport
from backend.app.safety.models import (
    AccelerationSample,
    CountdownPhase,
    DispatchOutcome,
    GeoPosition,
    PermissionStatus,
)
from backend.app.safety.monitor import SafetyMonitor, build_monitor

TICK = 0.002
SHAKE = AccelerationSample(0, 0, 7)


def _monitor(permission=PermissionStatus.GRANTED, contacts=("a@b.com",), notifications=None):
    settings = Settings(COUNTDOWN_TICK_SECONDS=TICK, MAIL_PROVIDER="simulation")
    monitor = SafetyMonitor(
        sampler=PushMotionSampler(),
        geolocation=StaticGeolocationProvider(GeoPosition(1.5, 2.5), permission=permission),
        notifications=notifications or LoggingNotificationSink(),
        speech=LoggingSpeechAnnouncer(),
        haptics=LoggingHapticDriver(),
        transport=SimulatedTransport(),
        notices=NoticeBoard(),
        settings=settings,
    )
    for c in contacts:
        monitor.contacts.add(c)
    return monitor


async def _wait_for_phase(monitor, phase, timeout=2.0):
    async def poll():
        while monitor.context.countdown.phase != phase:
            await asyncio.sleep(TICK)
    await asyncio.wait_for(poll(), timeout)


def test_shake_to_dispatch():
    monitor = _monitor()

    async def scenario():
        monitor.start_tracking()
        monitor.sampler.push(AccelerationSample(0, 0, 0))
        monitor.sampler.push(SHAKE)
        assert monitor.context.countdown.phase == CountdownPhase.ARMED
        assert monitor.context.countdown.ticks_remaining == 10
        await _wait_for_phase(monitor, CountdownPhase.FIRED)
        await monitor.wait_for_dispatches()

    asyncio.run(scenario())
    assert [m.to for m in monitor.transport.sent] == ["a@b.com"]
    assert "Latitude 1.5, Longitude 2.5" in monitor.transport.sent[0].text
    assert monitor.context.dispatch.email_sent is True
    assert monitor.context.last_result.outcome == DispatchOutcome.SENT
    assert monitor.context.last_result.trigger == "countdown"


def test_second_shake_while_armed_is_ignored():
    monitor = _monitor()

    async def scenario():
        monitor.start_tracking()
        monitor.sampler.push(SHAKE)
        cycle = monitor.context.countdown.cycle_id
        monitor.sampler.push(AccelerationSample(0, 0, -7))
        assert monitor.context.countdown.cycle_id == cycle
        assert monitor.context.shake.last_sample == AccelerationSample(0, 0, -7)
        await _wait_for_phase(monitor, CountdownPhase.FIRED)
        await monitor.wait_for_dispatches()

    asyncio.run(scenario())
    assert len(monitor.transport.sent) == 1


def test_cancel_prevents_dispatch():
    sink = LoggingNotificationSink()
    monitor = _monitor(notifications=sink)

    async def scenario():
        monitor.start_tracking()
        monitor.sampler.push(SHAKE)
        assert await monitor.cancel() is True
        await asyncio.sleep(TICK * 20)

    asyncio.run(scenario())
    assert monitor.context.countdown.phase == CountdownPhase.CANCELLED
    assert monitor.transport.sent == []
    assert monitor.context.dispatch.email_sent is False
    assert ("Emergency Canceled", "The emergency alert has been canceled.") in sink.delivered


def test_stop_tracking_releases_sampler_and_timer():
    monitor = _monitor()

    async def scenario():
        monitor.start_tracking()
        assert monitor.sampler.subscriber_count == 1
        monitor.sampler.push(SHAKE)
        assert monitor.stop_tracking() is True
        await asyncio.sleep(TICK * 20)

    asyncio.run(scenario())
    assert monitor.sampler.subscriber_count == 0
    assert monitor.context.countdown.phase == CountdownPhase.IDLE
    assert monitor.context.shake.shake_detected is False
    assert monitor.transport.sent == []
    # samples after stop are not observed
    monitor.sampler.push(AccelerationSample(0, 0, -9))
    assert monitor.context.shake.last_sample == AccelerationSample()


def test_shake_without_running_loop_does_not_wedge_countdown():
    monitor = _monitor()
    monitor.start_tracking()
    # the sampler logs the subscriber failure
    monitor.sampler.push(SHAKE)
    assert monitor.context.countdown.phase == CountdownPhase.IDLE
    assert monitor.context.shake.shake_detected is False
    assert not monitor.countdown._timer.is_running

    async def scenario():
        monitor.sampler.push(AccelerationSample(0, 0, 0))
        assert monitor.context.countdown.phase == CountdownPhase.ARMED
        await _wait_for_phase(monitor, CountdownPhase.FIRED)
        await monitor.wait_for_dispatches()

    asyncio.run(scenario())
    assert [m.to for m in monitor.transport.sent] == ["a@b.com"]


def test_toggle_tracking():
    monitor = _monitor()
    assert monitor.toggle_tracking() is True
    assert monitor.toggle_tracking() is False
    assert monitor.start_tracking() is True
    assert monitor.start_tracking() is False
    assert monitor.sampler.subscriber_count == 1


def test_manual_send_then_expiry_sends_once():
    monitor = _monitor()

    async def scenario():
        first = await monitor.send_now()
        assert first.outcome == DispatchOutcome.SENT
        assert first.trigger == "manual"
        monitor.start_tracking()
        monitor.sampler.push(SHAKE)
        await _wait_for_phase(monitor, CountdownPhase.FIRED)
        await monitor.wait_for_dispatches()

    asyncio.run(scenario())
    assert len(monitor.transport.sent) == 1
    assert monitor.context.last_result.outcome == DispatchOutcome.SENT
    assert monitor.context.last_result.trigger == "manual"


def test_expiry_with_denied_location_sends_nothing():
    monitor = _monitor(permission=PermissionStatus.DENIED)

    async def scenario():
        monitor.start_tracking()
        monitor.sampler.push(SHAKE)
        await _wait_for_phase(monitor, CountdownPhase.FIRED)
        await monitor.wait_for_dispatches()

    asyncio.run(scenario())
    assert monitor.transport.sent == []
    assert monitor.context.last_result.outcome == DispatchOutcome.PERMISSION_DENIED
    assert [n.title for n in monitor.notices.list()] == ["Permission Denied"]


def test_status_snapshot():
    monitor = _monitor()
    monitor.start_tracking()
    monitor.sampler.push(AccelerationSample(0.1, 0.2, 0.3))
    status = monitor.status()
    assert status["tracking"] is True
    assert status["shake_detected"] is False
    assert status["last_sample"] == {"x": 0.1, "y": 0.2, "z": 0.3}
    assert status["threshold"] == 6.0
    assert status["countdown"]["phase"] == "idle"
    assert status["email_sent"] is False
    assert status["contact_count"] == 1
    assert status["last_result"] is None


def test_aclose_stops_everything():
    monitor = _monitor()

    async def scenario():
        monitor.start_tracking()
        monitor.sampler.push(SHAKE)
        await monitor.aclose()

    asyncio.run(scenario())
    assert not monitor.is_tracking
    assert monitor.context.countdown.phase == CountdownPhase.IDLE


def test_build_monitor_from_settings():
    settings = Settings(
        SIM_LOCATION_PERMISSION="denied",
        SHAKE_THRESHOLD_DEFAULT=4.5,
        MAIL_PROVIDER="simulation",
    )
    monitor = build_monitor(settings)
    assert monitor.detector.threshold == 4.5
    assert isinstance(monitor.transport, SimulatedTransport)
    perm = asyncio.run(monitor.geolocation.request_permission())
    assert perm == PermissionStatus.DENIED
