"""
Integrity Scorer - Applies fixed penalties from the event stream
"""

import logging
from typing import Dict, Any, Iterable, Optional

from ..events import EventType, IntegrityEvent

logger = logging.getLogger(__name__)


class IntegrityScorer:
    """
    Computes the integrity score as a fold over emitted events.

    Formula:
        score = 100
        for each event: score = max(0, score - PENALTIES[event.type])

    Penalties are non-negative, so the fold equals
    max(0, 100 - sum(penalties)) whatever the event order.
    """

    MAX_SCORE = 100
    MIN_SCORE = 0

    # Points deducted per event type
    PENALTIES: Dict[EventType, int] = {
        EventType.FACE_NOT_DETECTED: 5,
        EventType.GAZE_OFFSCREEN: 3,
        EventType.TAB_HIDDEN: 10,
        EventType.VELOCITY_ANOMALY: 8,
        EventType.PASTE: 20,
        EventType.CAMERA_ERROR: 0,
        EventType.SESSION_START: 0,
        EventType.SESSION_END: 0,
    }

    # Score bands (lower bound, label)
    BANDS = [
        (85, "High Integrity"),
        (65, "Moderate Concern"),
        (0, "Review Required"),
    ]

    def __init__(self, penalties: Optional[Dict[EventType, int]] = None):
        """
        Initialize scorer with optional penalty overrides.

        Args:
            penalties: Optional dict overriding default penalties

        Raises:
            ValueError: if any penalty is negative
        """
        self.penalties = self.PENALTIES.copy()
        if penalties:
            self.penalties.update(penalties)

        for event_type, penalty in self.penalties.items():
            if penalty < 0:
                raise ValueError(f"Penalty for {event_type.value} must be non-negative, got {penalty}")

    def penalty_for(self, event_type: EventType) -> int:
        """Points deducted for a single event of this type"""
        return self.penalties.get(event_type, 0)

    def apply(self, score: int, event_type: EventType) -> int:
        """
        Apply one event's penalty to a running score.

        Args:
            score: Current score (0-100)
            event_type: Type of the emitted event

        Returns:
            New score, floored at 0
        """
        if not self.MIN_SCORE <= score <= self.MAX_SCORE:
            raise ValueError(f"Score out of range: {score}")

        penalty = self.penalty_for(event_type)
        new_score = max(self.MIN_SCORE, score - penalty)

        if penalty:
            logger.debug(f"Penalty {event_type.value}: -{penalty} ({score} -> {new_score})")

        return new_score

    def replay(self, events: Iterable[IntegrityEvent]) -> int:
        """
        Recompute the score from the start of a session.

        Args:
            events: Events in emission order

        Returns:
            Integrity score (0-100, higher is better)
        """
        score = self.MAX_SCORE
        for event in events:
            score = self.apply(score, event.type)
        return score

    def compute_breakdown(self, events: Iterable[IntegrityEvent]) -> Dict[str, Any]:
        """
        Compute integrity score with per-type breakdown.

        Args:
            events: Events in emission order

        Returns:
            Dict with score, penalties per type and total deducted points
        """
        penalties: Dict[str, Dict[str, int]] = {}
        score = self.MAX_SCORE
        raw_total = 0

        for event in events:
            penalty = self.penalty_for(event.type)
            entry = penalties.setdefault(event.type.value, {"count": 0, "penalty": 0})
            entry["count"] += 1
            entry["penalty"] += penalty
            raw_total += penalty
            score = self.apply(score, event.type)

        return {
            "integrity_score": score,
            "penalties": penalties,
            "raw_penalty": raw_total,
            "points_deducted": self.MAX_SCORE - score,
        }

    def get_band(self, score: int) -> str:
        """
        Convert score to a review band.

        Returns:
            'High Integrity', 'Moderate Concern' or 'Review Required'
        """
        for lower_bound, label in self.BANDS:
            if score >= lower_bound:
                return label
        return self.BANDS[-1][1]
