"""
Monitor Exceptions
"""


class MonitorError(Exception):
    """Base class for integrity monitor errors"""


class InvalidTransitionError(MonitorError):
    """Raised when a lifecycle transition is requested from the wrong state"""

    def __init__(self, current_state: str, requested: str):
        self.current_state = current_state
        self.requested = requested
        super().__init__(f"Cannot {requested}() while session is {current_state}")


class CaptureDeniedError(MonitorError):
    """Raised by a camera capability when the platform refuses capture"""
