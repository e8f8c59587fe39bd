"""
detector.py — Debounced threshold shake detection.

Rule:
    delta = |x - last_shake.x| + |y - last_shake.y| + |z - last_shake.z|
    shake  ⇔  delta > threshold  AND  no countdown is Armed

The baseline (last_shake) only moves when a shake is confirmed, not on
every sample. Continuous jitter therefore does not compound, but the
baseline goes stale: a device that rests in a new orientation for a long
time is still compared against the orientation at the last confirmed
shake, so a small later movement can trigger. This coarse debounce is
the intended trigger semantics.

Samples arriving while a countdown is Armed are still recorded as
last_sample (for display) but never emit an event.
Non-finite samples (NaN, inf) are dropped without touching any state.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from backend.app.core.errors import ValidationError
from backend.app.safety.models import (
    AccelerationSample,
    SafetyContext,
    ShakeEvent,
)

logger = logging.getLogger(__name__)


class ShakeDetector:
    def __init__(
        self,
        context: SafetyContext,
        *,
        min_threshold: float = 2.0,
        max_threshold: float = 10.0,
    ):
        self._ctx = context
        self.min_threshold = min_threshold
        self.max_threshold = max_threshold

    @property
    def threshold(self) -> float:
        return self._ctx.shake.threshold

    def set_threshold(self, value: float) -> float:
        """Change the threshold; takes effect on the next sample."""
        value = float(value)
        if not (self.min_threshold <= value <= self.max_threshold):
            raise ValidationError(
                f"Threshold must be between {self.min_threshold} and {self.max_threshold}",
                field="threshold",
                value=value,
            )
        self._ctx.shake.threshold = value
        logger.info("Shake threshold set to %.2f", value, extra={"threshold": value})
        return value

    def observe(self, sample: AccelerationSample) -> Optional[ShakeEvent]:
        state = self._ctx.shake
        if not all(math.isfinite(v) for v in (sample.x, sample.y, sample.z)):
            logger.warning("Non-finite sample dropped: %s", sample.to_dict())
            return None
        state.last_sample = sample

        delta = sample.delta(state.last_shake)
        if not delta > state.threshold:
            return None

        # Reentrancy guard: one countdown at a time
        if self._ctx.countdown.is_active:
            logger.debug(
                "Shake ignored (countdown armed): delta=%.2f", delta,
                extra={"delta": delta},
            )
            return None

        state.last_shake = sample
        state.shake_detected = True
        logger.info(
            "Shake detected: delta=%.2f > threshold=%.2f",
            delta, state.threshold,
            extra={"delta": delta, "threshold": state.threshold},
        )
        return ShakeEvent(sample=sample, delta=delta, threshold=state.threshold)

    def reset(self) -> None:
        """Clear display state. The confirmed-shake baseline is kept."""
        self._ctx.shake.shake_detected = False
        self._ctx.shake.last_sample = AccelerationSample()
