"""
Camera Capabilities - Acquire and release camera/microphone handles
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..exceptions import CaptureDeniedError
from .base import CameraCapability

logger = logging.getLogger(__name__)


@dataclass
class ClientMediaHandle:
    """Marker handle for a stream held by the browser"""
    video: bool = True
    audio: bool = True


class ClientReportedCamera(CameraCapability):
    """
    The browser owns the media stream and tells us whether it was granted.

    Used by the HTTP API: presence readings arrive as observations rather
    than being polled from frames.
    """

    def __init__(self, granted: bool = True, reason: Optional[str] = None):
        self.granted = granted
        self.reason = reason
        self.released = 0

    def acquire(self) -> ClientMediaHandle:
        if not self.granted:
            raise CaptureDeniedError(self.reason or "Permission denied")
        return ClientMediaHandle()

    def release(self, handle: Any):
        self.released += 1


class OpenCVCamera(CameraCapability):
    """Local webcam through cv2.VideoCapture"""

    def __init__(self, device_index: int = 0, width: int = 640, height: int = 480):
        self.device_index = device_index
        self.width = width
        self.height = height

    def acquire(self):
        import cv2

        capture = cv2.VideoCapture(self.device_index)
        try:
            if not capture.isOpened():
                raise CaptureDeniedError(f"Camera {self.device_index} could not be opened")
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        except Exception:
            capture.release()
            raise

        logger.info(f"Camera {self.device_index} acquired")
        return capture

    def release(self, handle: Any):
        if handle is not None:
            handle.release()
            logger.info(f"Camera {self.device_index} released")
