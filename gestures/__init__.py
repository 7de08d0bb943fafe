"""
Gesture detection package for Facial Gesture Counter.

This package turns per-frame blendshape scores into debounced gesture counts:
signal extraction, the adaptive brow baseline, blink/mouth edge counting, the
brow hysteresis state machine, and the session that ties them together.
"""

from .signal_extractor import BlendshapeScore, FrameSignals, extract_frame_signals, get_blend
from .brow_baseline import BrowBaselineTracker
from .edge_debouncer import EdgeDebouncer
from .brow_state_machine import BrowEventStateMachine, BrowState
from .session import FrameSnapshot, GestureCounts, GestureSession, GestureThresholds

__all__ = [
    'BlendshapeScore',
    'FrameSignals',
    'extract_frame_signals',
    'get_blend',
    'BrowBaselineTracker',
    'EdgeDebouncer',
    'BrowEventStateMachine',
    'BrowState',
    'FrameSnapshot',
    'GestureCounts',
    'GestureSession',
    'GestureThresholds',
]
