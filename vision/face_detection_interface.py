"""
Face Detection Interface Module

This module defines an abstract interface for blendshape-producing face
detectors, so the gesture detector can run on MediaPipe or any other engine
that supplies named expression scores per frame.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Tuple
import numpy as np
from dataclasses import dataclass, field

from gestures.signal_extractor import BlendshapeScore


@dataclass
class FaceDetectionResult:
    """
    Standardized face detection result.

    Only ``blendshapes`` feeds gesture counting; landmarks and the bounding
    box are carried for diagnostics.
    """
    blendshapes: List[BlendshapeScore] = field(default_factory=list)  # Named expression scores (0-1)
    landmarks: Optional[np.ndarray] = None  # (N, 3) normalised landmarks if available
    bounding_box: Optional[Tuple[int, int, int, int]] = None  # (left, top, width, height)
    confidence: float = 1.0  # Detection confidence (0-1)


def first_face_blendshapes(results: Optional[List[FaceDetectionResult]]) -> Optional[List[BlendshapeScore]]:
    """Blendshapes of the first detected face, or None when no face was found."""
    if not results:
        return None
    return results[0].blendshapes


class FaceDetectorInterface(ABC):
    """
    Abstract interface for face detection implementations.

    All backends must implement this interface to work with the gesture
    detector.
    """

    @abstractmethod
    def detect_faces(self, image: np.ndarray, timestamp_ms: float) -> List[FaceDetectionResult]:
        """
        Detect faces in one video frame.

        Args:
            image: BGR image array (OpenCV format)
            timestamp_ms: Monotonic frame timestamp in milliseconds

        Returns:
            List of FaceDetectionResult objects (empty when no face)
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if this face detection method is available and configured.

        Returns:
            True if the detector can be used, False otherwise
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Get the name of this face detection method.

        Returns:
            String name (e.g., "mediapipe")
        """
        pass

    def close(self) -> None:
        """
        Clean up resources. Override if needed.

        Default implementation does nothing.
        """
        pass
