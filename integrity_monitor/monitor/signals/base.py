"""
Signal Source interfaces
"""

from typing import Any, Optional

from ..events import PresenceReading


class PresenceSource:
    """
    Periodic presence/gaze reporter.

    read() is called once per poll cycle while a session is active.
    `handle` is whatever the camera capability returned from acquire();
    sources that do not need frames ignore it. Returning None means no
    reading is available this cycle. Sources that block (camera reads,
    detection) set `blocking` so the scheduler keeps them off the event loop.
    """

    name = "presence"
    blocking = False

    def read(self, handle: Any = None) -> Optional[PresenceReading]:
        raise NotImplementedError

    def reset(self):
        """Called when a session starts"""


class CameraCapability:
    """Camera/microphone acquisition: acquire() -> handle, release(handle)"""

    def acquire(self) -> Any:
        """
        Returns:
            An opaque handle

        Raises:
            CaptureDeniedError: if the platform refuses capture
        """
        raise NotImplementedError

    def release(self, handle: Any):
        raise NotImplementedError
