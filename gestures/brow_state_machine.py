"""
Brow raise state machine.

A single threshold double-counts on a noisy brow signal, so the brow uses two
thresholds (raise at ``thr_high``, release at ``thr_low``) and a release
confirmation delay:

    IDLE (armed) --delta >= thr_high--> RAISED (disarmed)   [count]
    RAISED --delta <= thr_low held for release_confirm_ms--> IDLE (armed)

While RAISED, any frame with ``delta > thr_low`` restarts the release timer.
"""

from enum import Enum
from typing import Optional

import config


class BrowState(Enum):
    IDLE = "idle"
    RAISED = "raised"


class BrowEventStateMachine:
    """Latched hysteresis detector for eyebrow raises."""

    def __init__(
        self,
        release_confirm_ms: float = config.BROW_RELEASE_CONFIRM_MS,
        low_ratio: float = config.BROW_LOW_RATIO,
        low_floor: float = config.BROW_LOW_FLOOR,
    ):
        self.release_confirm_ms = float(release_confirm_ms)
        self.low_ratio = float(low_ratio)
        self.low_floor = float(low_floor)
        self.state: BrowState = BrowState.IDLE
        self.armed: bool = True
        self.release_started_at: Optional[float] = None
        self.count: int = 0

    def low_threshold(self, thr_high: float) -> float:
        return max(self.low_floor, thr_high * self.low_ratio)

    @property
    def is_idle(self) -> bool:
        return self.state is BrowState.IDLE

    def update(self, delta: float, now: float, thr_high: float) -> bool:
        """Advance one frame; returns True when a brow raise is counted."""
        thr_low = self.low_threshold(thr_high)

        if self.armed and self.state is BrowState.IDLE and delta >= thr_high:
            self.count += 1
            self.state = BrowState.RAISED
            self.armed = False
            self.release_started_at = None
            return True

        if not self.armed:
            if delta <= thr_low:
                if self.release_started_at is None:
                    self.release_started_at = now
                elif now - self.release_started_at >= self.release_confirm_ms:
                    self.state = BrowState.IDLE
                    self.armed = True
                    self.release_started_at = None
            else:
                self.release_started_at = None
        return False

    def reset_state(self) -> None:
        """Back to IDLE/armed with no pending release; the count is kept."""
        self.state = BrowState.IDLE
        self.armed = True
        self.release_started_at = None

    def reset(self) -> None:
        self.reset_state()
        self.count = 0
