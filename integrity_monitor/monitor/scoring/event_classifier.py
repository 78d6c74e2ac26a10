"""
Event Classifier - Maps raw signal observations to integrity events
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..events import (
    EventDraft,
    EventType,
    PresenceReading,
    Severity,
    SignalKind,
    SignalObservation,
)

logger = logging.getLogger(__name__)


@dataclass
class MonitorIndicators:
    """Live display flags derived from the latest observations"""
    face_detected: bool = True
    gaze_on_screen: bool = True
    tab_focused: bool = True
    typing_velocity: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "face_detected": self.face_detected,
            "gaze_on_screen": self.gaze_on_screen,
            "tab_focused": self.tab_focused,
            "typing_velocity": self.typing_velocity,
        }


class EventClassifier:
    """
    Classifies signal observations into integrity events.

    Each rule is independent. The classifier keeps only the transition
    state it needs (last keystroke time, tab focus) and the display
    indicators; both are cleared by reset() when a session starts.
    Callers are expected to gate on session state: classify() is only
    invoked while the session is active.
    """

    # Threshold configuration
    THRESHOLDS: Dict[str, float] = {
        "presence_interval_seconds": 3.0,  # presence poll period, used in messages
        "fast_keystroke_gap_ms": 100.0,    # gaps at or above this are normal typing
        "velocity_wpm": 150.0,             # implied rate must exceed this
        "paste_length": 50.0,              # pastes longer than this are flagged
    }

    def __init__(self, thresholds: Dict[str, float] = None):
        """
        Initialize classifier with optional custom thresholds.

        Args:
            thresholds: Optional dict overriding default thresholds
        """
        self.thresholds = self.THRESHOLDS.copy()
        if thresholds:
            self.thresholds.update(thresholds)

        self._rules: Dict[SignalKind, Callable[[SignalObservation], Optional[EventDraft]]] = {
            SignalKind.PRESENCE: self._classify_presence,
            SignalKind.VISIBILITY: self._classify_visibility,
            SignalKind.KEYSTROKE: self._classify_keystroke,
            SignalKind.PASTE: self._classify_paste,
            SignalKind.CAMERA_FAILURE: self._classify_camera_failure,
        }

        self.indicators = MonitorIndicators()
        self._last_keystroke_ms: Optional[float] = None

    def reset(self):
        """Clear transition state and indicators for a fresh session"""
        self.indicators = MonitorIndicators()
        self._last_keystroke_ms = None

    def classify(self, observation: SignalObservation) -> Optional[EventDraft]:
        """
        Classify a single observation.

        Args:
            observation: Raw observation from a signal source

        Returns:
            EventDraft if the observation is an integrity event, else None
        """
        rule = self._rules.get(observation.kind)
        if rule is None:
            logger.warning(f"No classification rule for signal kind: {observation.kind}")
            return None
        return rule(observation)

    # ============== Rules ==============

    def _classify_presence(self, observation: SignalObservation) -> Optional[EventDraft]:
        reading: PresenceReading = observation.value

        self.indicators.face_detected = reading.presence
        self.indicators.gaze_on_screen = reading.gaze

        if not reading.presence:
            interval = self.thresholds["presence_interval_seconds"]
            return EventDraft(
                EventType.FACE_NOT_DETECTED,
                f"Face not detected for {interval:g} seconds",
                Severity.MEDIUM,
            )

        # Gaze only counts when a face is present in the same cycle
        if not reading.gaze:
            return EventDraft(
                EventType.GAZE_OFFSCREEN,
                "Looking away from screen",
                Severity.LOW,
            )

        return None

    def _classify_visibility(self, observation: SignalObservation) -> Optional[EventDraft]:
        focused = bool(observation.value)
        was_focused = self.indicators.tab_focused
        self.indicators.tab_focused = focused

        # One event per hide transition
        if was_focused and not focused:
            return EventDraft(
                EventType.TAB_HIDDEN,
                "Switched away from interview tab",
                Severity.HIGH,
            )
        return None

    def _classify_keystroke(self, observation: SignalObservation) -> Optional[EventDraft]:
        now_ms = float(observation.value)
        previous_ms = self._last_keystroke_ms
        self._last_keystroke_ms = now_ms

        if previous_ms is None:
            return None

        gap_ms = now_ms - previous_ms
        if gap_ms <= 0:
            logger.debug(f"Ignoring non-increasing keystroke gap: {gap_ms}ms")
            return None

        if gap_ms >= self.thresholds["fast_keystroke_gap_ms"]:
            return None

        wpm = int(60000 // gap_ms)
        if wpm <= self.thresholds["velocity_wpm"]:
            return None

        self.indicators.typing_velocity = wpm
        return EventDraft(
            EventType.VELOCITY_ANOMALY,
            f"Typing speed: {wpm} WPM (suspiciously fast)",
            Severity.MEDIUM,
        )

    def _classify_paste(self, observation: SignalObservation) -> Optional[EventDraft]:
        length = int(observation.value)
        if length <= self.thresholds["paste_length"]:
            return None

        return EventDraft(
            EventType.PASTE,
            f"Large paste detected ({length} characters)",
            Severity.HIGH,
        )

    def _classify_camera_failure(self, observation: SignalObservation) -> Optional[EventDraft]:
        reason = observation.value
        message = "Failed to access camera"
        if reason:
            message += f" ({reason})"
        return EventDraft(EventType.CAMERA_ERROR, message, Severity.HIGH)
