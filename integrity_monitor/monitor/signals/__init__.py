"""Signal sources and camera capabilities"""

from .base import PresenceSource, CameraCapability
from .stub_sources import ScriptedPresenceSource, RandomPresenceSource
from .camera import ClientReportedCamera, OpenCVCamera
from .opencv_presence import FacePresenceDetector, OpenCVPresenceSource

__all__ = [
    "PresenceSource",
    "CameraCapability",
    "ScriptedPresenceSource",
    "RandomPresenceSource",
    "ClientReportedCamera",
    "OpenCVCamera",
    "FacePresenceDetector",
    "OpenCVPresenceSource",
]
