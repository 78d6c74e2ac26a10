"""
Integrity Monitor Module

Monitors a remote technical interview by classifying:
- Face absence
- Gaze diversion
- Tab switches
- Abnormally fast typing
- Large pastes
- Camera failures

into a timeline of integrity events and a running Integrity Score (0-100).
"""

from .api import router
from .session import MonitorSession, SessionState

__all__ = ["router", "MonitorSession", "SessionState"]
