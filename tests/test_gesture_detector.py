"""
Gesture detector runtime tests.

Runs the detector with a pushed-score source and with a fake file source
plus a fake face detector, so neither a camera nor the MediaPipe model is
needed.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import unittest

import numpy as np

from tests.fixtures.synthetic_blendshapes import FakeClock, make_blendshapes


class FakeVideoHandler:
    """Serves a fixed list of frames, then reports end of file."""

    def __init__(self, n_frames):
        self.frames = [np.zeros((4, 4, 3), dtype=np.uint8) for _ in range(n_frames)]
        self.source_type = None
        self.released = False

    def initialize_source(self, source_type, source_path=None):
        self.source_type = source_type
        return True

    def read_frame(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


class ScriptedFaceDetector:
    """Returns one scripted blendshape frame (or no face) per call."""

    def __init__(self, script):
        self.script = list(script)
        self.timestamps = []
        self.closed = False

    def detect_faces(self, image, timestamp_ms):
        from vision.face_detection_interface import FaceDetectionResult
        self.timestamps.append(timestamp_ms)
        blendshapes = self.script.pop(0) if self.script else None
        if blendshapes is None:
            return []
        return [FaceDetectionResult(blendshapes=blendshapes)]

    def is_available(self):
        return True

    def get_name(self):
        return "scripted"

    def close(self):
        self.closed = True


class SteppingClock(FakeClock):
    """Advances 20 ms on every read."""

    def __call__(self):
        return self.advance(20.0)


class TestPushSource(unittest.TestCase):

    def setUp(self):
        from gesture_detector import GestureCounterDetector
        self.clock = FakeClock(start=1000.0)
        self.seen = []
        self.detector = GestureCounterDetector(update_callback=self.seen.append, clock=self.clock)

    def tearDown(self):
        self.detector.stop_detection()

    def test_push_requires_running_detector(self):
        with self.assertRaises(RuntimeError):
            self.detector.push_blendshapes(make_blendshapes(blink=0.9))

    def test_push_source_has_no_thread(self):
        from vision.video_source_handler import VideoSourceType
        self.assertTrue(self.detector.start_detection(VideoSourceType.PUSH))
        self.assertTrue(self.detector.is_running)
        self.assertIsNone(self.detector.detection_thread)
        self.assertIsNone(self.detector.face_detector)

    def test_push_session_starts_on_first_frame(self):
        """Calibration opens at the first pushed frame, on that frame's clock."""
        from vision.video_source_handler import VideoSourceType
        self.detector.start_detection(VideoSourceType.PUSH)
        self.clock.advance(250.0)
        self.detector.push_blendshapes(make_blendshapes(brow=0.2))
        self.assertEqual(self.detector.session.baseline.calibrating_until, 2050.0)

    def test_client_timestamps_across_reset(self):
        """Client clock far from the server clock: counting resumes 400 ms after reset."""
        from vision.video_source_handler import VideoSourceType
        self.clock.now = 1_000_000.0
        self.detector.start_detection(VideoSourceType.PUSH)

        t = 5000.0
        for blink in (0.9, 0.1):
            self.detector.push_blendshapes(make_blendshapes(blink=blink), timestamp_ms=t)
            self.clock.advance(16.0)
            t += 16.0
        self.assertEqual(self.detector.session.baseline.calibrating_until, 5800.0)

        counts = self.detector.reset_counts()
        self.assertEqual(counts.blink, 0)
        self.assertAlmostEqual(self.detector.session.pause_until, t + 400.0)
        self.assertAlmostEqual(self.detector.session.baseline.calibrating_until, t + 800.0)

        last = None
        for i in range(200):
            last = self.detector.push_blendshapes(
                make_blendshapes(blink=0.9 if i % 2 else 0.1), timestamp_ms=t)
            self.clock.advance(16.0)
            t += 16.0
        self.assertFalse(last.paused)
        self.assertFalse(last.calibrating)
        self.assertGreater(last.counts.blink, 0)

    def test_reset_between_frames_uses_client_timeline(self):
        """A reset some time after the last frame is placed on the client clock."""
        from vision.video_source_handler import VideoSourceType
        self.detector.start_detection(VideoSourceType.PUSH)
        self.detector.push_blendshapes(None, timestamp_ms=300.0)
        self.clock.advance(100.0)
        self.detector.reset_counts()
        self.assertEqual(self.detector.session.pause_until, 800.0)
        snap = self.detector.push_blendshapes(make_blendshapes(mouth=0.9), timestamp_ms=790.0)
        self.assertTrue(snap.paused)
        self.detector.push_blendshapes(make_blendshapes(mouth=0.1), timestamp_ms=800.0)
        snap = self.detector.push_blendshapes(make_blendshapes(mouth=0.9), timestamp_ms=816.0)
        self.assertEqual(snap.counts.mouth, 1)

    def test_pushed_frames_are_counted(self):
        from vision.video_source_handler import VideoSourceType
        self.detector.start_detection(VideoSourceType.PUSH)
        for blink in (0.0, 0.8, 0.8, 0.1, 0.9):
            self.clock.advance(20.0)
            self.detector.push_blendshapes(make_blendshapes(blink=blink))
        self.assertEqual(self.detector.get_counts().blink, 2)
        self.assertEqual(len(self.seen), 5)
        self.assertIs(self.detector.get_current_snapshot(), self.seen[-1])
        self.assertEqual(self.seen[-1].timestamp, 1100.0)

    def test_explicit_timestamp_is_used(self):
        from vision.video_source_handler import VideoSourceType
        self.detector.start_detection(VideoSourceType.PUSH)
        snap = self.detector.push_blendshapes(None, timestamp_ms=5000)
        self.assertEqual(snap.timestamp, 5000.0)
        self.assertFalse(snap.face_detected)

    def test_reset_counts_pauses_counting(self):
        from vision.video_source_handler import VideoSourceType
        self.detector.start_detection(VideoSourceType.PUSH)
        self.detector.push_blendshapes(make_blendshapes(mouth=0.9))
        self.clock.advance(100.0)
        counts = self.detector.reset_counts()
        self.assertEqual(counts.to_dict(), {"blink": 0, "mouth": 0, "brow": 0})
        self.assertEqual(self.detector.session.pause_until, 1500.0)

        self.clock.advance(20.0)
        snap = self.detector.push_blendshapes(make_blendshapes(mouth=0.1))
        self.assertTrue(snap.paused)
        self.clock.advance(20.0)
        self.detector.push_blendshapes(make_blendshapes(mouth=0.9))
        self.assertEqual(self.detector.get_counts().mouth, 0)

        self.clock.advance(400.0)
        self.detector.push_blendshapes(make_blendshapes(mouth=0.1))
        self.detector.push_blendshapes(make_blendshapes(mouth=0.9))
        self.assertEqual(self.detector.get_counts().mouth, 1)

    def test_stop_clears_running_flag(self):
        from vision.video_source_handler import VideoSourceType
        self.detector.start_detection(VideoSourceType.PUSH)
        self.detector.stop_detection()
        self.assertFalse(self.detector.is_running)
        with self.assertRaises(RuntimeError):
            self.detector.push_blendshapes(None)


class TestFileSource(unittest.TestCase):

    def test_file_source_runs_to_end_of_file(self):
        from gesture_detector import GestureCounterDetector
        from vision.video_source_handler import VideoSourceType

        script = [
            make_blendshapes(blink=0.1),
            make_blendshapes(blink=0.9),
            None,
            make_blendshapes(blink=0.9, mouth=0.7),
            make_blendshapes(blink=0.2),
        ]
        face = ScriptedFaceDetector(script)
        detector = GestureCounterDetector(face_detector=face, clock=SteppingClock(start=0.0))
        handler = FakeVideoHandler(len(script))
        detector.video_handler = handler

        self.assertTrue(detector.start_detection(VideoSourceType.FILE, "clip.mp4"))
        detector.detection_thread.join(timeout=5.0)

        self.assertFalse(detector.is_running)
        self.assertEqual(detector.session.frames_processed, 5)
        counts = detector.get_counts()
        self.assertEqual(counts.blink, 2)
        self.assertEqual(counts.mouth, 1)
        self.assertEqual(face.timestamps, sorted(face.timestamps))
        self.assertEqual(len(set(face.timestamps)), 5)

        detector.stop_detection()
        self.assertTrue(handler.released)
        self.assertFalse(face.closed)  # caller-owned detector is left open

    def test_face_detector_errors_count_as_no_face(self):
        from gesture_detector import GestureCounterDetector
        from vision.video_source_handler import VideoSourceType

        class BrokenDetector(ScriptedFaceDetector):
            def detect_faces(self, image, timestamp_ms):
                raise RuntimeError("graph error")

        detector = GestureCounterDetector(face_detector=BrokenDetector([]), clock=SteppingClock(start=0.0))
        detector.video_handler = FakeVideoHandler(3)
        with self.assertLogs("gesture_detector", level="WARNING"):
            detector.start_detection(VideoSourceType.FILE, "clip.mp4")
            detector.detection_thread.join(timeout=5.0)
        self.assertEqual(detector.session.frames_processed, 3)
        self.assertFalse(detector.get_current_snapshot().face_detected)
        detector.stop_detection()

    def test_evaluation_errors_do_not_stop_the_loop(self):
        """A frame that fails in the session is logged and the next frames still run."""
        from gesture_detector import GestureCounterDetector
        from gestures.session import GestureSession, GestureThresholds
        from vision.video_source_handler import VideoSourceType

        calls = {"n": 0}

        def flaky_thresholds():
            calls["n"] += 1
            if calls["n"] == 1:
                raise ValueError("blink threshold must be between 0 and 1")
            return GestureThresholds()

        script = [make_blendshapes(blink=0.9), make_blendshapes(blink=0.1), make_blendshapes(blink=0.9)]
        detector = GestureCounterDetector(
            face_detector=ScriptedFaceDetector(script),
            clock=SteppingClock(start=0.0),
            session=GestureSession(thresholds_provider=flaky_thresholds),
        )
        detector.video_handler = FakeVideoHandler(len(script))
        with self.assertLogs("gesture_detector", level="WARNING"):
            detector.start_detection(VideoSourceType.FILE, "clip.mp4")
            detector.detection_thread.join(timeout=5.0)
        self.assertFalse(detector.detection_thread.is_alive())
        self.assertFalse(detector.is_running)
        self.assertEqual(detector.session.frames_processed, 2)
        self.assertEqual(detector.get_counts().blink, 1)
        detector.stop_detection()

    def test_unavailable_face_detector_is_rejected(self):
        from gesture_detector import GestureCounterDetector
        from vision.video_source_handler import VideoSourceType

        class OfflineDetector(ScriptedFaceDetector):
            def is_available(self):
                return False

        detector = GestureCounterDetector(face_detector=OfflineDetector([]))
        handler = FakeVideoHandler(3)
        detector.video_handler = handler
        with self.assertLogs("gesture_detector", level="ERROR") as logs:
            self.assertFalse(detector.start_detection(VideoSourceType.WEBCAM))
        self.assertIn("scripted", "\n".join(logs.output))
        self.assertFalse(detector.is_running)
        self.assertIsNone(detector.detection_thread)
        self.assertTrue(handler.released)


if __name__ == "__main__":
    unittest.main()
