"""
Integrity Events - Typed records emitted while a session is monitored

Defines:
- EventType / Severity enums
- SignalKind and SignalObservation (raw input from a signal source)
- EventDraft (classifier output before it is stamped by the session)
- IntegrityEvent (immutable, appended once to the event log)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    """Kinds of events recorded in the session timeline"""
    SESSION_START = "SESSION_START"
    SESSION_END = "SESSION_END"
    FACE_NOT_DETECTED = "FACE_NOT_DETECTED"
    GAZE_OFFSCREEN = "GAZE_OFFSCREEN"
    TAB_HIDDEN = "TAB_HIDDEN"
    VELOCITY_ANOMALY = "VELOCITY_ANOMALY"
    PASTE = "PASTE"
    CAMERA_ERROR = "CAMERA_ERROR"


class Severity(str, Enum):
    """Qualitative urgency tag, independent of the numeric penalty"""
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SignalKind(str, Enum):
    """Kinds of raw observations a signal source can report"""
    PRESENCE = "presence"
    VISIBILITY = "visibility"
    KEYSTROKE = "keystroke"
    PASTE = "paste"
    CAMERA_FAILURE = "camera_failure"


@dataclass(frozen=True)
class PresenceReading:
    """One presence/gaze cycle from the video-derived source"""
    presence: bool
    gaze: bool


@dataclass(frozen=True)
class SignalObservation:
    """
    A single timestamped observation, consumed once by the classifier.

    value depends on kind:
        PRESENCE       -> PresenceReading
        VISIBILITY     -> bool (True when the tab is focused/visible)
        KEYSTROKE      -> float, keystroke time in milliseconds
        PASTE          -> int, pasted text length
        CAMERA_FAILURE -> str, reason reported by the platform
    """
    kind: SignalKind
    value: Any
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class EventDraft:
    """Classifier output: what happened, before id and session time are assigned"""
    type: EventType
    message: str
    severity: Severity


@dataclass(frozen=True)
class IntegrityEvent:
    """An immutable entry in the session event log"""
    id: int
    type: EventType
    message: str
    severity: Severity
    wall_clock_time: datetime
    session_elapsed_seconds: int

    @property
    def summary(self) -> str:
        """One-line "{type}: {message}" form sent to the analysis service"""
        return f"{self.type.value}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Export representation"""
        return {
            "id": self.id,
            "type": self.type.value,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": self.wall_clock_time.isoformat() + "Z",
            "sessionTime": self.session_elapsed_seconds,
        }


def make_event(
    event_id: int,
    draft: EventDraft,
    elapsed_seconds: int,
    wall_clock_time: Optional[datetime] = None
) -> IntegrityEvent:
    """Stamp a classifier draft with its sequence id and session time"""
    return IntegrityEvent(
        id=event_id,
        type=draft.type,
        message=draft.message,
        severity=draft.severity,
        wall_clock_time=wall_clock_time or datetime.utcnow(),
        session_elapsed_seconds=elapsed_seconds,
    )
