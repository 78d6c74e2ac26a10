"""Scoring modules"""

from .integrity_scorer import IntegrityScorer
from .event_classifier import EventClassifier, MonitorIndicators

__all__ = ["IntegrityScorer", "EventClassifier", "MonitorIndicators"]
