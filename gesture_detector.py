"""
Gesture Counter Detector.

Runtime driver around GestureSession: acquires frames (webcam / file / stream),
runs the MediaPipe face landmarker to get blendshapes, and feeds exactly one
synchronous session.process_frame() call per frame with a monotonic timestamp.
For PUSH sources there is no capture thread; the client runs the landmarker
itself and pushes blendshape scores via push_blendshapes().

Pipeline: read frame → detect blendshapes → session.process_frame(now)
→ update current snapshot and callbacks.
"""

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Optional

import numpy as np

import config
from gestures.session import FrameSnapshot, GestureCounts, GestureSession
from vision.face_detection_interface import FaceDetectorInterface, first_face_blendshapes
from vision.video_source_handler import VideoSourceHandler, VideoSourceType

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    """Default frame clock: monotonic milliseconds."""
    return time.monotonic() * 1000.0


class GestureCounterDetector:
    """
    Main gesture counting detector.

    Usage:
        detector = GestureCounterDetector()
        detector.start_detection(source_type=VideoSourceType.WEBCAM)

        # In a loop or callback:
        counts = detector.get_counts()
        print(f"blinks={counts.blink} mouth={counts.mouth} brow={counts.brow}")
    """

    def __init__(
        self,
        update_callback: Optional[Callable[[FrameSnapshot], None]] = None,
        face_detector: Optional[FaceDetectorInterface] = None,
        clock: Optional[Callable[[], float]] = None,
        session: Optional[GestureSession] = None,
    ):
        """
        Args:
            update_callback: Called with each frame's snapshot (display collaborator)
            face_detector: Blendshape source; MediaPipe is created on start if None
            clock: Monotonic clock in milliseconds (injectable for tests)
            session: Preconfigured GestureSession (default: config thresholds)
        """
        self.face_detector = face_detector
        self._owns_face_detector = face_detector is None
        self.clock = clock or monotonic_ms
        self.session = session or GestureSession()
        self.session.display_callback = update_callback

        self.video_handler = VideoSourceHandler()
        self.source_type: Optional[VideoSourceType] = None

        self.detection_thread: Optional[threading.Thread] = None
        self.is_running = False
        self.lock = threading.Lock()

        self.fps_counter: deque = deque(maxlen=30)
        self.last_frame_time: Optional[float] = None
        self.consecutive_read_failures = 0
        self._frame_interval_s = 1.0 / config.TARGET_FPS

        # PUSH sources run on the client's clock: the session starts on the
        # first pushed frame, and client_offset maps the server clock onto the
        # client timeline for resets between frames.
        self._start_pending = False
        self.client_offset: Optional[float] = None

    def session_now(self) -> float:
        """Current time on the timeline the session's frames are evaluated on."""
        if self.client_offset is None:
            return self.clock()
        return self.clock() + self.client_offset

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_detection(
        self,
        source_type: VideoSourceType = VideoSourceType.WEBCAM,
        source_path: Optional[str] = None,
    ) -> bool:
        """
        Start counting from a video source (or from pushed scores for PUSH).

        Returns:
            bool: True if detection started successfully, False otherwise
        """
        if self.is_running:
            self.stop_detection()

        if not self.video_handler.initialize_source(source_type, source_path):
            logger.error("Failed to initialize video source type %s (path=%s)", source_type.value, source_path)
            return False

        if source_type != VideoSourceType.PUSH:
            if self.face_detector is None:
                try:
                    from vision.mediapipe_detector import MediaPipeBlendshapeDetector
                    self.face_detector = MediaPipeBlendshapeDetector()
                    self._owns_face_detector = True
                except Exception as e:
                    logger.error("Could not load the face landmarker model: %s", e)
                    self.video_handler.release()
                    return False
            if not self.face_detector.is_available():
                logger.error("Face detector %s is not available", self.face_detector.get_name())
                self.video_handler.release()
                return False
            logger.info("Using %s face detector", self.face_detector.get_name())

        self.source_type = source_type
        self.fps_counter.clear()
        self.last_frame_time = None
        self.consecutive_read_failures = 0
        self.client_offset = None
        with self.lock:
            if source_type == VideoSourceType.PUSH:
                self._start_pending = True
            else:
                self._start_pending = False
                self.session.start(self.clock())
        self.is_running = True

        if source_type != VideoSourceType.PUSH:
            self.detection_thread = threading.Thread(target=self._detection_loop, daemon=True)
            self.detection_thread.start()

        logger.info("Gesture detection started: source_type=%s, source_path=%s", source_type.value, source_path)
        return True

    def stop_detection(self) -> None:
        """Stop counting and release the video source and detector."""
        self.is_running = False
        if self.detection_thread and self.detection_thread.is_alive() \
                and self.detection_thread is not threading.current_thread():
            self.detection_thread.join(timeout=2.0)
        self.detection_thread = None
        self.video_handler.release()
        if self.face_detector and self._owns_face_detector:
            self.face_detector.close()
            self.face_detector = None
        logger.info("Gesture detection stopped")

    def reset_counts(self) -> GestureCounts:
        """Zero the counters, recalibrate, and pause counting briefly."""
        with self.lock:
            self.session.reset(self.session_now())
            return self.session.counts

    # ------------------------------------------------------------------
    # Frame input
    # ------------------------------------------------------------------

    def push_blendshapes(self, blendshapes: Any, timestamp_ms: Optional[float] = None) -> FrameSnapshot:
        """
        Evaluate one client-supplied frame of blendshape scores.

        ``timestamp_ms`` is the client's monotonic clock. When given, the
        calibration and pause windows are kept on that clock too.

        Raises:
            RuntimeError: if detection is not running
        """
        if not self.is_running:
            raise RuntimeError("Gesture detection is not running")
        with self.lock:
            if timestamp_ms is not None:
                now = float(timestamp_ms)
                self.client_offset = now - self.clock()
            else:
                now = self.session_now()
            if self._start_pending:
                self.session.start(now)
                self._start_pending = False
        return self._evaluate(blendshapes, now)

    def _evaluate(self, blendshapes: Any, now: float) -> FrameSnapshot:
        with self.lock:
            snapshot = self.session.process_frame(blendshapes, now)
        self._track_fps()
        interval = config.DIAGNOSTIC_LOG_INTERVAL
        if interval and self.session.frames_processed % interval == 0:
            logger.info("gesture_diagnostic %s counts=%s", snapshot.hud_text(), snapshot.counts.to_dict())
        return snapshot

    def _track_fps(self) -> None:
        current_time = time.monotonic()
        if self.last_frame_time is not None:
            frame_time = current_time - self.last_frame_time
            if frame_time > 0:
                self.fps_counter.append(1.0 / frame_time)
        self.last_frame_time = current_time

    def _detection_loop(self) -> None:
        """One process_frame call per captured frame until stopped."""
        while self.is_running:
            started = time.monotonic()
            ret, frame = self.video_handler.read_frame()
            if not ret:
                self.consecutive_read_failures += 1
                if self.video_handler.source_type == VideoSourceType.FILE:
                    logger.info("Video file finished after %d frames", self.session.frames_processed)
                    self.is_running = False
                    break
                if self.consecutive_read_failures == int(config.TARGET_FPS * 2):
                    logger.warning("Video source not providing frames")
                time.sleep(self._frame_interval_s)
                continue
            self.consecutive_read_failures = 0

            now = self.clock()
            try:
                results = self.face_detector.detect_faces(frame, now) if self.face_detector else []
            except Exception as e:
                logger.warning("Face detection failed on frame: %s", e)
                results = []
            try:
                self._evaluate(first_face_blendshapes(results), now)
            except Exception as e:
                logger.warning("Gesture evaluation failed on frame: %s", e)

            elapsed = time.monotonic() - started
            if elapsed < self._frame_interval_s:
                time.sleep(self._frame_interval_s - elapsed)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def get_current_snapshot(self) -> Optional[FrameSnapshot]:
        """Latest frame snapshot (thread-safe), or None before the first frame."""
        with self.lock:
            return self.session.last_snapshot

    def get_counts(self) -> GestureCounts:
        with self.lock:
            return self.session.counts

    def get_fps(self) -> float:
        """Average processing FPS over the last 30 frames."""
        if not self.fps_counter:
            return 0.0
        return float(np.mean(self.fps_counter))
