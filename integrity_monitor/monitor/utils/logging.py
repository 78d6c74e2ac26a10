"""
Monitor Logger - One-line key=value records for session activity

Every record starts with "[MONITOR] session=<id> event=<name>" so monitor
activity can be grepped out of the shared service log.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def log_monitor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log one monitor record.

    Args:
        session_id: Monitoring session ID
        event_type: Record name (session_start, integrity_event, session_end, ...)
        details: Extra key=value pairs appended in insertion order
        level: debug, info, warning or error; anything else logs at info
    """
    parts = [f"[MONITOR] session={session_id} event={event_type}"]
    if details:
        parts.extend(f"{key}={value}" for key, value in details.items())

    logger.log(_LEVELS.get(level, logging.INFO), " ".join(parts))


def log_session_start(session_id: str, run_id: int, candidate_id: Optional[str], degraded: bool):
    log_monitor_event(
        session_id,
        "session_start",
        {"run": run_id, "candidate_id": candidate_id or "unknown", "degraded": degraded},
        level="warning" if degraded else "info"
    )


def log_session_end(session_id: str, integrity_score: int, events: int, elapsed_seconds: int):
    log_monitor_event(
        session_id,
        "session_end",
        {"integrity_score": integrity_score, "events": events, "elapsed_seconds": elapsed_seconds}
    )


def log_integrity_event(session_id: str, event_type: str, severity: str, penalty: int, score: int):
    """Log a recorded integrity event; high severity is logged as a warning"""
    log_monitor_event(
        session_id,
        "integrity_event",
        {"type": event_type, "severity": severity, "penalty": penalty, "score": score},
        level="warning" if severity == "high" else "info"
    )
