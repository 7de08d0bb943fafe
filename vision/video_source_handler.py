"""
Video Source Handler Module

This module provides a unified interface for the video sources the gesture
detector can read from:
- Webcam (default camera)
- Local video files
- Video streams (RTSP, HTTP, etc.)
- Push (no video on the server: the client runs the face landmarker and pushes
  blendshape scores per frame)
"""

import logging
import sys
from enum import Enum
from typing import Optional, Tuple

import cv2
import numpy as np

import config

logger = logging.getLogger(__name__)


class VideoSourceType(Enum):
    """Enumeration of supported video source types."""
    WEBCAM = "webcam"
    FILE = "file"
    STREAM = "stream"
    PUSH = "push"


class VideoSourceHandler:
    """
    Handler for managing video sources of different types.

    Usage:
        handler = VideoSourceHandler()
        handler.initialize_source(VideoSourceType.WEBCAM)

        while True:
            ret, frame = handler.read_frame()
            if not ret:
                break
            # Process frame
    """

    def __init__(self):
        """Initialize the video source handler."""
        self.cap: Optional[cv2.VideoCapture] = None
        self.source_type: Optional[VideoSourceType] = None
        self.source_path: Optional[str] = None

    def _open_webcam(self) -> Optional[cv2.VideoCapture]:
        apis = [cv2.CAP_DSHOW, cv2.CAP_MSMF, cv2.CAP_ANY] if sys.platform == "win32" else [cv2.CAP_ANY]
        indices = [config.CAMERA_INDEX] + [i for i in (0, 1, 2) if i != config.CAMERA_INDEX]
        for api in apis:
            for index in indices:
                cap = cv2.VideoCapture(index, api)
                if cap.isOpened() and cap.read()[0]:
                    return cap
                cap.release()
        return None

    def initialize_source(self, source_type: VideoSourceType, source_path: Optional[str] = None) -> bool:
        """
        Initialize a video source.

        Args:
            source_type: Type of video source (WEBCAM, FILE, STREAM, PUSH)
            source_path: Path to video file or stream URL (required for FILE/STREAM)

        Returns:
            True if the source is ready, False otherwise
        """
        self.release()
        self.source_type = source_type
        self.source_path = source_path

        try:
            if source_type == VideoSourceType.WEBCAM:
                self.cap = self._open_webcam()
                if self.cap is None:
                    logger.error("No camera could be opened")
                    return False
                self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, 1280)
                self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 720)
                self.cap.set(cv2.CAP_PROP_FPS, config.TARGET_FPS)
                self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

            elif source_type in (VideoSourceType.FILE, VideoSourceType.STREAM):
                if not source_path:
                    raise ValueError(f"source_path is required for {source_type.value} source type")
                self.cap = cv2.VideoCapture(source_path)
                if source_type == VideoSourceType.STREAM:
                    self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

            elif source_type == VideoSourceType.PUSH:
                self.cap = None
                return True

            else:
                raise ValueError(f"Unsupported source type: {source_type}")

            if self.cap is None or not self.cap.isOpened():
                logger.error("Video source could not be opened: %s %s", source_type.value, source_path or "")
                return False
            return True

        except (ValueError, cv2.error) as e:
            logger.error("Error initializing video source: %s", e)
            self.release()
            return False

    def read_frame(self) -> Tuple[bool, Optional[np.ndarray]]:
        """
        Read a frame from the video source.

        Returns:
            Tuple of (success, frame); PUSH sources never yield frames.
        """
        if self.source_type == VideoSourceType.PUSH:
            return False, None
        if not self.cap or not self.cap.isOpened():
            return False, None
        ret, frame = self.cap.read()
        if not ret or frame is None:
            return False, None
        return True, frame

    def get_properties(self) -> dict:
        """
        Get properties of the current video source.

        Returns:
            Dictionary with width, height, fps and frame_count (-1 for live sources)
        """
        if self.source_type == VideoSourceType.PUSH:
            return {'width': 0, 'height': 0, 'fps': config.TARGET_FPS, 'frame_count': -1}
        if not self.cap or not self.cap.isOpened():
            return {}
        return {
            'width': int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            'height': int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            'fps': self.cap.get(cv2.CAP_PROP_FPS),
            'frame_count': int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        }

    def release(self) -> None:
        """Release the current video source and free resources."""
        if self.cap:
            self.cap.release()
            self.cap = None
        self.source_type = None
        self.source_path = None

    def __del__(self):
        """Cleanup on deletion."""
        self.release()
