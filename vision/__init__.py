"""
Vision package for Facial Gesture Counter.

Frame acquisition (webcam, file, stream, or client-pushed scores) and the
blendshape-producing face detector seam. The MediaPipe backend lives in
vision.mediapipe_detector and is imported only when a video source is started.
"""

from .face_detection_interface import FaceDetectorInterface, FaceDetectionResult, first_face_blendshapes
from .video_source_handler import VideoSourceHandler, VideoSourceType

__all__ = [
    'FaceDetectorInterface',
    'FaceDetectionResult',
    'first_face_blendshapes',
    'VideoSourceHandler',
    'VideoSourceType',
]
