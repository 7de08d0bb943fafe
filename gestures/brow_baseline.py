"""
Adaptive brow baseline.

Absolute brow intensity depends on the person; only the deviation from their
resting brow is meaningful. The baseline is seeded from the first sample,
pulled in quickly during the calibration window, and afterwards allowed to
drift slowly while the brow is idle and close to rest.
"""

from typing import Optional

import config


class BrowBaselineTracker:
    """Exponentially smoothed estimate of the neutral brow level."""

    def __init__(
        self,
        calibration_ms: float = config.CALIBRATION_MS,
        calibration_alpha: float = config.BASELINE_CALIBRATION_ALPHA,
        drift_alpha: float = config.BASELINE_DRIFT_ALPHA,
        drift_guard: float = config.BASELINE_DRIFT_GUARD,
    ):
        self.calibration_ms = float(calibration_ms)
        self.calibration_alpha = float(calibration_alpha)
        self.drift_alpha = float(drift_alpha)
        self.drift_guard = float(drift_guard)
        self.baseline: Optional[float] = None
        self.calibrating_until: float = 0.0

    def start(self, now: float) -> None:
        """Forget the baseline and open a new calibration window."""
        self.baseline = None
        self.calibrating_until = now + self.calibration_ms

    def is_calibrating(self, now: float) -> bool:
        return now < self.calibrating_until

    def update(self, brow: float, now: float, brow_idle: bool, low_threshold: float) -> float:
        """
        Fold one brow sample into the baseline and return its deviation.

        The returned delta is measured against the baseline as it stood before
        this sample was folded in (after seeding on the very first sample).
        """
        if self.baseline is None:
            self.baseline = brow

        delta = brow - self.baseline

        if self.is_calibrating(now):
            a = self.calibration_alpha
            self.baseline = self.baseline * (1 - a) + brow * a
        elif brow_idle and abs(delta) < low_threshold * self.drift_guard:
            a = self.drift_alpha
            self.baseline = self.baseline * (1 - a) + brow * a

        return delta
