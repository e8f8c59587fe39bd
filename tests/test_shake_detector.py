"""
test_shake_detector.py — Tests for debounced threshold shake detection.

Covers:
    • Delta computation (L1 over the three axes)
    • Threshold comparison (strictly greater)
    • Baseline only moves on a confirmed shake
    • Reentrancy guard while a countdown is armed
    • Live threshold changes and range validation

Run with:
    pytest tests/test_shake_detector.py -v
"""

from __future__ import annotations

import pytest

from backend.app.core.errors import ValidationError
from backend.app.safety.detector import ShakeDetector
from backend.app.safety.models import (
    AccelerationSample,
    CountdownPhase,
    SafetyContext,
)


def _detector(threshold: float = 6.0):
    ctx = SafetyContext()
    ctx.shake.threshold = threshold
    return ctx, ShakeDetector(ctx)


class TestDelta:

    def test_l1_distance(self):
        a = AccelerationSample(1.0, -2.0, 3.0)
        b = AccelerationSample(0.0, 0.0, 0.0)
        assert a.delta(b) == pytest.approx(6.0)

    def test_symmetric(self):
        a = AccelerationSample(0.5, 0.5, 9.8)
        b = AccelerationSample(-0.5, 1.5, 0.0)
        assert a.delta(b) == pytest.approx(b.delta(a))


class TestObserve:

    def test_example_from_rest(self):
        """{0,0,0} then {0,0,7} with threshold 6 → one shake."""
        ctx, det = _detector(6.0)
        assert det.observe(AccelerationSample(0, 0, 0)) is None
        event = det.observe(AccelerationSample(0, 0, 7))
        assert event is not None
        assert event.delta == pytest.approx(7.0)
        assert event.threshold == 6.0
        assert ctx.shake.shake_detected is True

    def test_equal_to_threshold_is_not_a_shake(self):
        _, det = _detector(6.0)
        assert det.observe(AccelerationSample(0, 0, 6.0)) is None

    def test_baseline_moves_only_on_confirmed_shake(self):
        ctx, det = _detector(6.0)
        det.observe(AccelerationSample(1, 1, 1))
        assert ctx.shake.last_shake == AccelerationSample(0, 0, 0)
        assert ctx.shake.last_sample == AccelerationSample(1, 1, 1)

        det.observe(AccelerationSample(0, 0, 7))
        assert ctx.shake.last_shake == AccelerationSample(0, 0, 7)

    def test_jitter_does_not_compound(self):
        """Small steps never accumulate into a shake: baseline is fixed."""
        _, det = _detector(6.0)
        for z in (1.0, 2.0, 3.0, 2.0, 1.0, 2.5):
            assert det.observe(AccelerationSample(0, 0, z)) is None

    def test_stale_baseline_can_trigger_on_small_move(self):
        """Baseline stays at the last confirmed shake, not the resting orientation."""
        ctx, det = _detector(6.0)
        # Device comes to rest at z=5.9 (below threshold from origin)
        for _ in range(50):
            assert det.observe(AccelerationSample(0, 0, 5.9)) is None
        # A tiny further move crosses the threshold relative to the stale origin
        assert det.observe(AccelerationSample(0, 0, 6.1)) is not None
        assert ctx.shake.last_shake == AccelerationSample(0, 0, 6.1)

    def test_ignored_while_countdown_armed(self):
        ctx, det = _detector(6.0)
        ctx.countdown.transition(CountdownPhase.ARMED, 7)
        assert det.observe(AccelerationSample(0, 0, 9)) is None
        # still recorded for display, baseline untouched
        assert ctx.shake.last_sample == AccelerationSample(0, 0, 9)
        assert ctx.shake.last_shake == AccelerationSample(0, 0, 0)

    @pytest.mark.parametrize("phase", [
        CountdownPhase.IDLE, CountdownPhase.CANCELLED, CountdownPhase.FIRED,
    ])
    def test_emits_when_not_armed(self, phase):
        ctx, det = _detector(6.0)
        ctx.countdown.transition(phase, None)
        assert det.observe(AccelerationSample(0, 0, 9)) is not None

    def test_one_event_per_crossing(self):
        _, det = _detector(6.0)
        events = [
            det.observe(AccelerationSample(0, 0, z))
            for z in (0, 7, 7, 7.5, 0.5)
        ]
        # 0→7 crosses; 7,7.5 are within threshold of new baseline 7; 0.5 is 6.5 away
        assert [e is not None for e in events] == [False, True, False, False, True]

    @pytest.mark.parametrize("bad", [
        AccelerationSample(float("nan"), 0, 0),
        AccelerationSample(0, float("inf"), 0),
        AccelerationSample(0, 0, float("-inf")),
    ])
    def test_non_finite_sample_is_dropped(self, bad):
        ctx, det = _detector(6.0)
        assert det.observe(bad) is None
        assert ctx.shake.shake_detected is False
        assert ctx.shake.last_shake == AccelerationSample()
        assert ctx.shake.last_sample == AccelerationSample()
        # baseline intact: small moves stay quiet, a real shake still fires
        assert det.observe(AccelerationSample(0, 0, 1)) is None
        assert det.observe(AccelerationSample(0, 0, 7)) is not None


class TestThreshold:

    def test_change_applies_to_next_sample(self):
        _, det = _detector(6.0)
        assert det.observe(AccelerationSample(0, 0, 4)) is None
        det.set_threshold(3.0)
        assert det.observe(AccelerationSample(0, 0, 4)) is not None

    @pytest.mark.parametrize("value", [2.0, 6.35, 10.0])
    def test_accepts_continuous_range(self, value):
        _, det = _detector()
        assert det.set_threshold(value) == value
        assert det.threshold == value

    @pytest.mark.parametrize("value", [1.99, 10.01, -1.0])
    def test_rejects_out_of_range(self, value):
        _, det = _detector()
        with pytest.raises(ValidationError):
            det.set_threshold(value)
        assert det.threshold == 6.0

    def test_reset_keeps_baseline(self):
        ctx, det = _detector(6.0)
        det.observe(AccelerationSample(0, 0, 7))
        det.reset()
        assert ctx.shake.shake_detected is False
        assert ctx.shake.last_sample == AccelerationSample()
        assert ctx.shake.last_shake == AccelerationSample(0, 0, 7)
