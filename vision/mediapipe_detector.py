"""
MediaPipe Face Landmarker Implementation

This module provides a MediaPipe-based implementation of the FaceDetectorInterface
that returns face blendshape scores (eyeBlinkLeft, jawOpen, browInnerUp, ...).
Runs the Tasks FaceLandmarker in VIDEO mode for a single face. The model file is
downloaded on first use when it is not already on disk.
"""

import logging
import os
from typing import List, Optional

import cv2
import numpy as np
import requests
import mediapipe as mp
from mediapipe.tasks.python.core.base_options import BaseOptions
from mediapipe.tasks.python.vision import face_landmarker as mp_face_landmarker
from mediapipe.tasks.python.vision.core.vision_task_running_mode import VisionTaskRunningMode

import config
from gestures.signal_extractor import BlendshapeScore
from vision.face_detection_interface import FaceDetectorInterface, FaceDetectionResult

logger = logging.getLogger(__name__)


def ensure_model_file(path: str = config.FACE_LANDMARKER_MODEL_PATH,
                      url: str = config.FACE_LANDMARKER_MODEL_URL,
                      timeout: float = 30.0) -> str:
    """
    Make sure the face landmarker model exists locally, downloading it if needed.

    Returns:
        Path to the model file

    Raises:
        requests.RequestException: if the download fails
    """
    if os.path.isfile(path):
        return path
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    logger.info("Face landmarker model not found at %s; downloading from %s", path, url)
    tmp_path = path + ".part"
    with requests.get(url, stream=True, timeout=timeout) as resp:
        resp.raise_for_status()
        with open(tmp_path, "wb") as f:
            for chunk in resp.iter_content(chunk_size=1 << 16):
                if chunk:
                    f.write(chunk)
    os.replace(tmp_path, path)
    logger.info("Face landmarker model saved to %s", path)
    return path


class MediaPipeBlendshapeDetector(FaceDetectorInterface):
    """
    MediaPipe FaceLandmarker wrapper producing per-frame blendshape scores.
    """

    def __init__(self, model_path: Optional[str] = None, min_confidence: float = config.MIN_FACE_CONFIDENCE):
        """
        Args:
            model_path: Path to face_landmarker.task (default: config.FACE_LANDMARKER_MODEL_PATH)
            min_confidence: Minimum detection / presence / tracking confidence (0-1)
        """
        self._conf = max(0.01, min(0.99, float(min_confidence)))
        self._model_path = ensure_model_file(model_path or config.FACE_LANDMARKER_MODEL_PATH)
        options = mp_face_landmarker.FaceLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=self._model_path),
            running_mode=VisionTaskRunningMode.VIDEO,
            num_faces=1,
            min_face_detection_confidence=self._conf,
            min_face_presence_confidence=self._conf,
            min_tracking_confidence=self._conf,
            output_face_blendshapes=True,
        )
        self._landmarker = mp_face_landmarker.FaceLandmarker.create_from_options(options)
        self._last_timestamp_ms = -1
        self._available = True

    def detect_faces(self, image: np.ndarray, timestamp_ms: float) -> List[FaceDetectionResult]:
        if image is None or image.size == 0 or self._landmarker is None:
            return []

        # VIDEO mode rejects non-increasing timestamps
        ts = int(timestamp_ms)
        if ts <= self._last_timestamp_ms:
            ts = self._last_timestamp_ms + 1
        self._last_timestamp_ms = ts

        rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_image)
        result = self._landmarker.detect_for_video(mp_image, ts)

        if not result.face_blendshapes:
            return []

        height, width = image.shape[:2]
        faces = []
        for i, categories in enumerate(result.face_blendshapes):
            blendshapes = [
                BlendshapeScore(
                    category_name=c.category_name or "",
                    score=c.score,
                    display_name=c.display_name or None,
                )
                for c in categories
            ]
            landmarks = None
            bbox = None
            if result.face_landmarks and i < len(result.face_landmarks):
                landmarks = np.array([[p.x, p.y, p.z] for p in result.face_landmarks[i]], dtype=np.float32)
                if len(landmarks):
                    xs = landmarks[:, 0] * width
                    ys = landmarks[:, 1] * height
                    left, top = int(np.min(xs)), int(np.min(ys))
                    bbox = (left, top, int(np.max(xs)) - left, int(np.max(ys)) - top)
            faces.append(FaceDetectionResult(blendshapes=blendshapes, landmarks=landmarks, bounding_box=bbox))
        return faces

    def is_available(self) -> bool:
        return self._available

    def get_name(self) -> str:
        return "mediapipe"

    def close(self) -> None:
        """Release the MediaPipe graph."""
        if self._landmarker is not None:
            try:
                self._landmarker.close()
            except Exception as e:
                logger.debug("FaceLandmarker close failed: %s", e)
            self._landmarker = None
        self._available = False
