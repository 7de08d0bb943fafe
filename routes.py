"""
Flask routes for Facial Gesture Counter.

Handles the index page, config (including live thresholds), and gesture
detection start/stop/reset/frame/state/counts/debug.
"""

import logging
from typing import Optional

from flask import Blueprint, Flask, request, jsonify, send_from_directory

import config
from vision.video_source_handler import VideoSourceType

logger = logging.getLogger(__name__)

# Create a blueprint for better organization
api = Blueprint('api', __name__)

# Global gesture detector instance (singleton).
# GestureCounterDetector is imported lazily in start to defer loading cv2/numpy/mediapipe.
gesture_detector = None  # type: Optional["GestureCounterDetector"]

SOURCE_TYPE_MAP = {
    "webcam": VideoSourceType.WEBCAM,
    "file": VideoSourceType.FILE,
    "stream": VideoSourceType.STREAM,
    "push": VideoSourceType.PUSH,
}


def register_routes(app: Flask) -> None:
    """Attach every route in this module to the Flask app."""
    app.register_blueprint(api)


def _not_started():
    return jsonify({
        "error": "Gesture detection not started",
        "detector_running": False
    }), 404


# ============================================================================
# Static File Routes
# ============================================================================

@api.route("/")
def index():
    """
    Serve the main index.html page.

    Returns:
        Response: HTML file or error response
    """
    try:
        return send_from_directory(".", "index.html")
    except FileNotFoundError:
        return jsonify({"error": "index.html not found"}), 404


@api.route("/favicon.ico")
def favicon():
    """Handle favicon requests with an empty 204 response."""
    return "", 204


# ============================================================================
# Configuration Routes
# ============================================================================

@api.route("/config/all", methods=["GET"])
def get_all_config():
    """
    Get all configuration in one endpoint.

    Returns:
        JSON: thresholds, timing, brow baseline, face landmarker and video settings
    """
    return jsonify(config.build_config_response())


@api.route("/config/thresholds", methods=["GET", "PUT"])
def thresholds_config():
    """
    GET: Current live thresholds.
    PUT: Set one or more thresholds. Body: {"blink": 0.5, "mouth": 0.5, "browHigh": 0.3}.
    The running detector picks the new values up on its next frame.
    """
    if request.method == "PUT":
        if not request.is_json:
            return jsonify({"error": "Request must be JSON"}), 400
        data = request.get_json(silent=True) or {}
        brow_high = data.get("browHigh", data.get("brow_high"))
        if data.get("blink") is None and data.get("mouth") is None and brow_high is None:
            return jsonify({"error": "Provide at least one of 'blink', 'mouth', 'browHigh'"}), 400
        try:
            config.set_thresholds(blink=data.get("blink"), mouth=data.get("mouth"), brow_high=brow_high)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
    t = config.get_thresholds()
    return jsonify({
        "blink": t["blink"],
        "mouth": t["mouth"],
        "browHigh": t["brow_high"],
        "browLow": config.brow_low_threshold(t["brow_high"]),
    })


# ============================================================================
# Gesture Detection Routes
# ============================================================================

@api.route("/gestures/start", methods=["POST"])
def start_gesture_detection():
    """
    Start gesture counting.

    Request Body:
        {
            "sourceType": "webcam" | "file" | "stream" | "push",
            "sourcePath": "optional path for file/stream sources"
        }

    Returns:
        JSON: {"success": true, "message": "...", "sourceType": "..."}
    """
    global gesture_detector
    # Lazy import: defer loading gesture_detector (cv2, numpy) until first start
    from gesture_detector import GestureCounterDetector

    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400

    data = request.get_json(silent=True) or {}
    source_type_str = str(data.get("sourceType", "webcam")).lower()
    source_path = data.get("sourcePath")

    source_type = SOURCE_TYPE_MAP.get(source_type_str)
    if not source_type:
        return jsonify({
            "error": f"Invalid sourceType: {source_type_str}. Must be 'webcam', 'file', 'stream', or 'push'"
        }), 400
    if source_type == VideoSourceType.PUSH:
        source_path = None

    try:
        if gesture_detector:
            gesture_detector.stop_detection()

        gesture_detector = GestureCounterDetector()
        if not gesture_detector.start_detection(source_type, source_path):
            gesture_detector = None
            return jsonify({
                "error": "Failed to start detection. Check the camera/video source and the face landmarker model."
            }), 500

        return jsonify({
            "success": True,
            "message": f"Gesture detection started from {source_type_str}",
            "sourceType": source_type_str,
        })

    except Exception as e:
        logger.exception("Failed to start gesture detection")
        gesture_detector = None
        return jsonify({
            "error": "Failed to start gesture detection",
            "details": str(e)
        }), 500


@api.route("/gestures/stop", methods=["POST"])
def stop_gesture_detection():
    """Stop gesture counting and release the video source."""
    global gesture_detector

    try:
        if gesture_detector:
            gesture_detector.stop_detection()
            gesture_detector = None
        return jsonify({
            "success": True,
            "message": "Gesture detection stopped"
        })

    except Exception as e:
        logger.exception("Failed to stop gesture detection")
        return jsonify({
            "error": "Failed to stop gesture detection",
            "details": str(e)
        }), 500


@api.route("/gestures/reset", methods=["POST"])
def reset_gesture_counts():
    """
    Zero all counters. Counting resumes after the reset pause
    (config.RESET_PAUSE_MS); the brow baseline recalibrates.
    """
    if not gesture_detector:
        return _not_started()
    counts = gesture_detector.reset_counts()
    return jsonify({
        "success": True,
        "counts": counts.to_dict(),
        "pauseMs": config.RESET_PAUSE_MS,
    })


@api.route("/gestures/frame", methods=["POST"])
def push_gesture_frame():
    """
    Evaluate one frame of client-side blendshape scores (PUSH source only).

    Request Body:
        {
            "blendshapes": [{"categoryName": "eyeBlinkLeft", "score": 0.8}, ...]
                           or {"eyeBlinkLeft": 0.8, ...} or null (no face),
            "timestamp": optional monotonic milliseconds
        }

    Returns:
        JSON: the frame snapshot (signals, baseline, delta, counts, events)
    """
    if not gesture_detector:
        return _not_started()
    if gesture_detector.source_type != VideoSourceType.PUSH:
        return jsonify({"error": "Frames can only be pushed when started with sourceType 'push'"}), 409
    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400

    data = request.get_json(silent=True) or {}
    timestamp = data.get("timestamp")
    if timestamp is not None:
        try:
            timestamp = float(timestamp)
        except (TypeError, ValueError):
            return jsonify({"error": "'timestamp' must be a number"}), 400

    try:
        snapshot = gesture_detector.push_blendshapes(data.get("blendshapes"), timestamp)
    except RuntimeError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify(snapshot.to_dict())


@api.route("/gestures/state", methods=["GET"])
def get_gesture_state():
    """
    Get the latest frame snapshot and counts.

    Returns:
        JSON: {
            "counts": {"blink": 2, "mouth": 0, "brow": 1},
            "snapshot": {...} or null before the first frame,
            "running": true
        }
    """
    if not gesture_detector:
        return _not_started()
    snapshot = gesture_detector.get_current_snapshot()
    return jsonify({
        "running": gesture_detector.is_running,
        "counts": gesture_detector.get_counts().to_dict(),
        "snapshot": snapshot.to_dict() if snapshot else None,
    })


@api.route("/gestures/counts", methods=["GET"])
def get_gesture_counts():
    """Current cumulative counts for blink, mouth and brow."""
    if not gesture_detector:
        return _not_started()
    return jsonify(gesture_detector.get_counts().to_dict())


@api.route("/gestures/debug", methods=["GET"])
def get_gesture_debug():
    """
    Get debug information about gesture detection.

    Returns:
        JSON: running flag, source type, FPS, frames processed, brow state
    """
    if not gesture_detector:
        return _not_started()

    session = gesture_detector.session
    source_type = gesture_detector.source_type
    return jsonify({
        "detector_running": gesture_detector.is_running,
        "source_type": source_type.value if source_type else None,
        "fps": gesture_detector.get_fps(),
        "frames_processed": session.frames_processed,
        "brow_state": session.brow.state.value,
        "brow_armed": session.brow.armed,
        "baseline": session.baseline.baseline,
        "pause_until": session.pause_until,
        "calibrating_until": session.baseline.calibrating_until,
    })
