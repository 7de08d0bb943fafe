"""
=============================================================================
CONFIGURATION FOR FACIAL GESTURE COUNTER (config.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This file holds ALL configurable settings for the project in one place. Other
files read from it. Values come from the environment (e.g. your .env file or
system variables) so you can tune thresholds without changing code.

MAIN GROUPS OF SETTINGS:
------------------------
  1. Gesture thresholds: Blink, mouth and brow-raise trigger levels (0-1).
                          These can also be changed live via PUT /config/thresholds.
  2. Timing            : Calibration window, post-reset pause, brow release delay.
  3. Brow baseline     : Smoothing factors for the adaptive brow reference.
  4. Face landmarker   : MediaPipe model file and where to download it from.
  5. Video / loop      : Camera index and target frame rate.
  6. Server / logging  : Host, port, debug mode and log level.

HOW VALUES ARE CHOSEN:
---------------------
  - Environment variables (e.g. BLINK_THRESHOLD) override everything.
  - If an env var is not set, we use the tuned default.
=============================================================================
"""

import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _validate_threshold(name: str, value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number between 0 and 1")
    if v != v or v < 0.0 or v > 1.0:
        raise ValueError(f"{name} must be between 0 and 1")
    return v


def _env_threshold(name: str, default: float) -> float:
    """Threshold from the environment; out-of-range or malformed values fall back to the default."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return _validate_threshold(name, raw)
    except ValueError as e:
        logger.warning("Ignoring %s=%r (%s); using %s", name, raw, e, default)
        return default


# ============================================================================
# GESTURE THRESHOLDS (defaults; live values via get_thresholds/set_thresholds)
# ============================================================================
# Blink fires when mean(eyeBlinkLeft, eyeBlinkRight) rises to this level.
BLINK_THRESHOLD: float = _env_threshold("BLINK_THRESHOLD", 0.5)
# Mouth fires when max(mouthOpen, jawOpen) rises to this level.
MOUTH_THRESHOLD: float = _env_threshold("MOUTH_THRESHOLD", 0.5)
# Brow fires when brow intensity rises this far ABOVE the subject's baseline.
BROW_HIGH_THRESHOLD: float = _env_threshold("BROW_HIGH_THRESHOLD", 0.3)

# ============================================================================
# TIMING (milliseconds, compared against the caller's monotonic clock)
# ============================================================================
# Brow baseline warm-up after start / reset.
CALIBRATION_MS: float = _env_float("CALIBRATION_MS", 800.0)
# Quiet period after reset: nothing is counted, edge state is still tracked.
RESET_PAUSE_MS: float = _env_float("RESET_PAUSE_MS", 400.0)
# Brow must stay at/below the low threshold this long before it can fire again.
BROW_RELEASE_CONFIRM_MS: float = _env_float("BROW_RELEASE_CONFIRM_MS", 150.0)

# ============================================================================
# BROW HYSTERESIS & BASELINE
# ============================================================================
# Release threshold = max(BROW_LOW_FLOOR, browHigh * BROW_LOW_RATIO).
BROW_LOW_RATIO: float = _env_float("BROW_LOW_RATIO", 0.4)
BROW_LOW_FLOOR: float = _env_float("BROW_LOW_FLOOR", 0.05)
# Fast EMA during calibration, slow EMA while idle and close to baseline.
BASELINE_CALIBRATION_ALPHA: float = _env_float("BASELINE_CALIBRATION_ALPHA", 0.35)
BASELINE_DRIFT_ALPHA: float = _env_float("BASELINE_DRIFT_ALPHA", 0.03)
# Idle drift only when |delta| < release threshold * this multiplier.
BASELINE_DRIFT_GUARD: float = _env_float("BASELINE_DRIFT_GUARD", 0.8)

# ============================================================================
# MEDIAPIPE FACE LANDMARKER (blendshape source)
# ============================================================================
FACE_LANDMARKER_MODEL_PATH: str = os.getenv("FACE_LANDMARKER_MODEL_PATH", "models/face_landmarker.task")
FACE_LANDMARKER_MODEL_URL: str = os.getenv(
    "FACE_LANDMARKER_MODEL_URL",
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/1/face_landmarker.task",
)
MIN_FACE_CONFIDENCE: float = _env_float("MIN_FACE_CONFIDENCE", 0.5)

# ============================================================================
# VIDEO / DETECTION LOOP
# ============================================================================
CAMERA_INDEX: int = int(_env_float("CAMERA_INDEX", 0))
TARGET_FPS: float = max(1.0, _env_float("TARGET_FPS", 30.0))
# Log a gesture_diagnostic line every N frames (0 = off).
DIAGNOSTIC_LOG_INTERVAL: int = max(0, int(_env_float("DIAGNOSTIC_LOG_INTERVAL", 0)))

# ============================================================================
# Application Configuration
# ============================================================================
FLASK_PORT: int = int(os.getenv("FLASK_PORT", "5000"))
FLASK_DEBUG: bool = os.getenv("FLASK_DEBUG", "false").lower() == "true"
FLASK_HOST: str = os.getenv("FLASK_HOST", "127.0.0.1")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


# -----------------------------------------------------------------------------
# Threshold preference (runtime override; used by GET/PUT /config/thresholds)
# -----------------------------------------------------------------------------
_threshold_preference: Dict[str, float] = {}
THRESHOLD_KEYS = ("blink", "mouth", "brow_high")


def get_thresholds() -> Dict[str, float]:
    """Return the live thresholds (runtime preference over env defaults)."""
    return {
        "blink": _threshold_preference.get("blink", BLINK_THRESHOLD),
        "mouth": _threshold_preference.get("mouth", MOUTH_THRESHOLD),
        "brow_high": _threshold_preference.get("brow_high", BROW_HIGH_THRESHOLD),
    }


def set_thresholds(
    blink: Optional[float] = None,
    mouth: Optional[float] = None,
    brow_high: Optional[float] = None,
) -> Dict[str, float]:
    """
    Set one or more thresholds. Values must be in [0, 1]; nothing is changed
    if any value is invalid. Returns the thresholds now in effect.
    """
    updates = {}
    for name, value in (("blink", blink), ("mouth", mouth), ("brow_high", brow_high)):
        if value is not None:
            updates[name] = _validate_threshold(name, value)
    _threshold_preference.update(updates)
    return get_thresholds()


def reset_thresholds() -> Dict[str, float]:
    """Drop runtime overrides and go back to the env defaults."""
    _threshold_preference.clear()
    return get_thresholds()


def brow_low_threshold(brow_high: float) -> float:
    """Release threshold derived from the brow raise threshold."""
    return max(BROW_LOW_FLOOR, brow_high * BROW_LOW_RATIO)


def build_config_response() -> dict:
    """
    Build the complete configuration response for GET /config/all.
    Aggregates all settings into a single dictionary.
    """
    thresholds = get_thresholds()
    return {
        "thresholds": {
            "blink": thresholds["blink"],
            "mouth": thresholds["mouth"],
            "browHigh": thresholds["brow_high"],
            "browLow": brow_low_threshold(thresholds["brow_high"]),
        },
        "timing": {
            "calibrationMs": CALIBRATION_MS,
            "resetPauseMs": RESET_PAUSE_MS,
            "browReleaseConfirmMs": BROW_RELEASE_CONFIRM_MS,
        },
        "browBaseline": {
            "calibrationAlpha": BASELINE_CALIBRATION_ALPHA,
            "driftAlpha": BASELINE_DRIFT_ALPHA,
            "driftGuard": BASELINE_DRIFT_GUARD,
            "lowRatio": BROW_LOW_RATIO,
            "lowFloor": BROW_LOW_FLOOR,
        },
        "faceLandmarker": {
            "modelPath": FACE_LANDMARKER_MODEL_PATH,
            "minFaceConfidence": MIN_FACE_CONFIDENCE,
        },
        "video": {
            "cameraIndex": CAMERA_INDEX,
            "targetFps": TARGET_FPS,
        },
    }
