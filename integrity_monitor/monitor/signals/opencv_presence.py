"""
OpenCV Presence Source - Face presence and gaze from webcam frames

Classical CV pipeline using OpenCV's bundled Haar cascades:
- a frontal face must be found for presence
- both eyes visible inside the face region counts as gaze on screen
"""

import logging
from typing import Any, Dict, Optional

import cv2
import numpy as np

from ..events import PresenceReading
from .base import PresenceSource

logger = logging.getLogger(__name__)


class FacePresenceDetector:
    """
    Detects faces and eyes in a video frame with Haar cascades.

    Provides:
    - Face count
    - Face presence
    - Whether both eyes of the largest face are visible
    """

    FACE_CASCADE = "haarcascade_frontalface_default.xml"
    EYE_CASCADE = "haarcascade_eye.xml"

    def __init__(self, min_face_size: int = 60, min_eyes: int = 2):
        """
        Initialize detector.

        Args:
            min_face_size: Smallest face edge in pixels
            min_eyes: Eyes required inside the face to count as looking at the screen
        """
        self.min_face_size = min_face_size
        self.min_eyes = min_eyes
        self.face_cascade = cv2.CascadeClassifier(cv2.data.haarcascades + self.FACE_CASCADE)
        self.eye_cascade = cv2.CascadeClassifier(cv2.data.haarcascades + self.EYE_CASCADE)

        if self.face_cascade.empty() or self.eye_cascade.empty():
            raise RuntimeError("OpenCV Haar cascades could not be loaded")

    def detect(self, frame: np.ndarray) -> Dict[str, Any]:
        """
        Detect face and eyes in a frame.

        Args:
            frame: BGR image from OpenCV

        Returns:
            dict with:
                - num_faces: int
                - face_present: bool
                - eyes_visible: int (eyes found in the largest face)
                - gaze_on_screen: bool
        """
        if frame is None or frame.size == 0:
            return {
                "num_faces": 0,
                "face_present": False,
                "eyes_visible": 0,
                "gaze_on_screen": False
            }

        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        gray = cv2.equalizeHist(gray)

        faces = self.face_cascade.detectMultiScale(
            gray,
            scaleFactor=1.1,
            minNeighbors=5,
            minSize=(self.min_face_size, self.min_face_size)
        )
        num_faces = len(faces)

        eyes_visible = 0
        if num_faces > 0:
            # Largest face is the candidate
            x, y, w, h = max(faces, key=lambda f: f[2] * f[3])
            face_region = gray[y:y + h, x:x + w]
            eyes = self.eye_cascade.detectMultiScale(face_region, scaleFactor=1.1, minNeighbors=5)
            eyes_visible = len(eyes)

        return {
            "num_faces": num_faces,
            "face_present": num_faces > 0,
            "eyes_visible": eyes_visible,
            "gaze_on_screen": num_faces > 0 and eyes_visible >= self.min_eyes
        }


class OpenCVPresenceSource(PresenceSource):
    """
    Reads one frame from the camera handle per poll cycle.

    The handle must expose read() -> (ok, frame) like cv2.VideoCapture.
    """

    name = "opencv"
    blocking = True

    def __init__(self, detector: Optional[FacePresenceDetector] = None):
        self._detector = detector

    @property
    def detector(self) -> FacePresenceDetector:
        """Lazy load detector"""
        if self._detector is None:
            self._detector = FacePresenceDetector()
        return self._detector

    def read(self, handle: Any = None) -> Optional[PresenceReading]:
        if handle is None:
            return None

        ok, frame = handle.read()
        if not ok:
            logger.debug("Camera returned no frame this cycle")
            return None

        result = self.detector.detect(frame)
        return PresenceReading(
            presence=result["face_present"],
            gaze=result["gaze_on_screen"]
        )
