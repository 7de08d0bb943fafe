"""
Gesture Session

Owns all per-subject state (brow baseline, blink/mouth edge flags, brow state
machine, counters, calibration and pause windows) and runs the fixed per-frame
evaluation order:

  1. extract blink / mouth / brow from the frame's blendshapes
  2. update the brow baseline (calibration or idle drift)
  3. update blink / mouth edge state (always)
  4. count blink / mouth edges and run the brow state machine, unless the
     post-reset pause window is still open
  5. publish a snapshot to the display callback

The session never reads a clock: every call takes ``now`` in milliseconds from
the caller's monotonic clock, which keeps it deterministic under test.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import config
from gestures.brow_baseline import BrowBaselineTracker
from gestures.brow_state_machine import BrowEventStateMachine
from gestures.edge_debouncer import EdgeDebouncer
from gestures.signal_extractor import FrameSignals, as_blendshape_scores, extract_frame_signals

logger = logging.getLogger(__name__)

GESTURE_BLINK = "blink"
GESTURE_MOUTH = "mouth"
GESTURE_BROW = "brow"
ALL_GESTURES = [GESTURE_BLINK, GESTURE_MOUTH, GESTURE_BROW]


@dataclass
class GestureThresholds:
    """Live trigger levels, each in [0, 1]."""
    blink: float = config.BLINK_THRESHOLD
    mouth: float = config.MOUTH_THRESHOLD
    brow_high: float = config.BROW_HIGH_THRESHOLD

    def __post_init__(self):
        for name in ("blink", "mouth", "brow_high"):
            value = float(getattr(self, name))
            if value != value or value < 0.0 or value > 1.0:
                raise ValueError(f"{name} threshold must be between 0 and 1, got {value}")
            setattr(self, name, value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GestureThresholds":
        brow = data.get("brow_high", data.get("browHigh", config.BROW_HIGH_THRESHOLD))
        return cls(
            blink=data.get("blink", config.BLINK_THRESHOLD),
            mouth=data.get("mouth", config.MOUTH_THRESHOLD),
            brow_high=brow,
        )

    def to_dict(self) -> Dict[str, float]:
        return {"blink": self.blink, "mouth": self.mouth, "browHigh": self.brow_high}


def thresholds_from_config() -> GestureThresholds:
    """Default provider: the live thresholds from config (hot-reloadable)."""
    return GestureThresholds.from_dict(config.get_thresholds())


@dataclass
class GestureCounts:
    blink: int = 0
    mouth: int = 0
    brow: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"blink": self.blink, "mouth": self.mouth, "brow": self.brow}


@dataclass
class FrameSnapshot:
    """What one frame produced: readings, brow baseline/delta and counts."""
    timestamp: float
    signals: FrameSignals
    baseline: float
    delta: float
    brow_low_threshold: float
    brow_state: str
    counts: GestureCounts
    events: List[str] = field(default_factory=list)
    calibrating: bool = False
    paused: bool = False
    face_detected: bool = False

    def hud_text(self) -> str:
        """One-line diagnostic readout of the current signals."""
        return (
            f"blink: {self.signals.blink:.2f} | mouth: {self.signals.mouth:.2f} | "
            f"brow: {self.signals.brow:.2f} base: {self.baseline:.2f} Δ:{self.delta:.2f}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "signals": self.signals.to_dict(),
            "baseline": self.baseline,
            "delta": self.delta,
            "browLowThreshold": self.brow_low_threshold,
            "browState": self.brow_state,
            "counts": self.counts.to_dict(),
            "events": list(self.events),
            "calibrating": self.calibrating,
            "paused": self.paused,
            "faceDetected": self.face_detected,
            "hud": self.hud_text(),
        }


class GestureSession:
    """
    Per-frame gesture counting for one tracked subject.

    Usage:
        session = GestureSession()
        session.start(now_ms)
        for blendshapes, now_ms in frames:
            snapshot = session.process_frame(blendshapes, now_ms)
            print(snapshot.counts)
    """

    def __init__(
        self,
        thresholds_provider: Optional[Callable[[], GestureThresholds]] = None,
        display_callback: Optional[Callable[[FrameSnapshot], None]] = None,
        calibration_ms: float = config.CALIBRATION_MS,
        reset_pause_ms: float = config.RESET_PAUSE_MS,
        baseline: Optional[BrowBaselineTracker] = None,
        brow_machine: Optional[BrowEventStateMachine] = None,
    ):
        self._thresholds_provider = thresholds_provider or thresholds_from_config
        self.display_callback = display_callback
        self.calibration_ms = float(calibration_ms)
        self.reset_pause_ms = float(reset_pause_ms)

        self.baseline = baseline or BrowBaselineTracker(calibration_ms=self.calibration_ms)
        self.brow = brow_machine or BrowEventStateMachine()
        self.blink = EdgeDebouncer(GESTURE_BLINK)
        self.mouth = EdgeDebouncer(GESTURE_MOUTH)

        self.pause_until: float = 0.0
        self.frames_processed: int = 0
        self.last_snapshot: Optional[FrameSnapshot] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, now: float) -> None:
        """Begin a session: recalibrate the brow, clear the pause window."""
        self.baseline.calibration_ms = self.calibration_ms
        self.baseline.start(now)
        self.brow.reset_state()
        self.pause_until = 0.0
        logger.debug("Gesture session started at %.1f ms (calibrating until %.1f)", now, self.baseline.calibrating_until)

    def reset(self, now: float) -> None:
        """Zero the counters and hold off counting for the reset pause."""
        self.blink.reset()
        self.mouth.reset()
        self.brow.reset()
        self.baseline.calibration_ms = self.calibration_ms
        self.baseline.start(now)
        self.pause_until = now + self.reset_pause_ms
        logger.debug("Gesture counters reset at %.1f ms (paused until %.1f)", now, self.pause_until)

    # ------------------------------------------------------------------
    # Per-frame evaluation
    # ------------------------------------------------------------------

    @property
    def counts(self) -> GestureCounts:
        return GestureCounts(blink=self.blink.count, mouth=self.mouth.count, brow=self.brow.count)

    def is_paused(self, now: float) -> bool:
        return now < self.pause_until

    def process_frame(
        self,
        blendshapes: Any,
        now: float,
        thresholds: Optional[GestureThresholds] = None,
    ) -> FrameSnapshot:
        """
        Evaluate one frame.

        ``blendshapes`` is whatever the inference engine returned for the
        frame (None when no face was found); missing data reads as zeros and
        can never fire an event.
        """
        categories = as_blendshape_scores(blendshapes)
        signals = extract_frame_signals(categories)
        thr = thresholds if thresholds is not None else self._thresholds_provider()

        thr_low = self.brow.low_threshold(thr.brow_high)
        delta = self.baseline.update(signals.brow, now, self.brow.is_idle, thr_low)

        counting = not self.is_paused(now)
        events: List[str] = []
        if self.blink.update(signals.blink, thr.blink, counting):
            events.append(GESTURE_BLINK)
        if self.mouth.update(signals.mouth, thr.mouth, counting):
            events.append(GESTURE_MOUTH)
        if counting and self.brow.update(delta, now, thr.brow_high):
            events.append(GESTURE_BROW)

        self.frames_processed += 1
        snapshot = FrameSnapshot(
            timestamp=now,
            signals=signals,
            baseline=self.baseline.baseline if self.baseline.baseline is not None else 0.0,
            delta=delta,
            brow_low_threshold=thr_low,
            brow_state=self.brow.state.value,
            counts=self.counts,
            events=events,
            calibrating=self.baseline.is_calibrating(now),
            paused=not counting,
            face_detected=bool(categories),
        )
        if events:
            logger.debug("Gesture events at %.1f ms: %s (counts=%s)", now, ", ".join(events), snapshot.counts.to_dict())
        self.last_snapshot = snapshot
        self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot: FrameSnapshot) -> None:
        if self.display_callback is None:
            return
        try:
            self.display_callback(snapshot)
        except Exception as e:
            logger.warning("Error in display callback: %s", e)
