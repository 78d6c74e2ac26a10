"""
Integrity Monitor API - FastAPI endpoints for interview monitoring

Endpoints:
- POST /api/monitor/start - Start (or restart) a monitoring session
- POST /api/monitor/stop - Stop a session
- POST /api/monitor/presence - Report one presence/gaze cycle
- POST /api/monitor/visibility - Report a tab focus change
- POST /api/monitor/keystroke - Report a keystroke
- POST /api/monitor/paste - Report a paste
- POST /api/monitor/camera-error - Report a capture failure
- GET /api/monitor/status/{session_id} - Get session status
- GET /api/monitor/events/{session_id} - Get the event timeline
- POST /api/monitor/analyze - Run external code review
- GET /api/monitor/export/{session_id} - Export the session record
- DELETE /api/monitor/session/{session_id} - Discard a session
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..config import settings
from .analysis import AnalysisVerdict, CodeReviewAnalyzer
from .events import IntegrityEvent
from .exceptions import InvalidTransitionError
from .scheduler import AsyncioScheduler, TaskScheduler
from .session import MonitorSession
from .signals import ClientReportedCamera

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/monitor", tags=["Integrity Monitor"])

# In-memory session storage; stopped sessions are dropped after SESSION_RETENTION_SECONDS
_sessions: Dict[str, MonitorSession] = {}

_analyzer: Optional[CodeReviewAnalyzer] = None


# ============== Dependencies ==============

def get_scheduler() -> TaskScheduler:
    return AsyncioScheduler()


def get_analyzer() -> CodeReviewAnalyzer:
    """Shared analyzer, created on first use"""
    global _analyzer
    if _analyzer is None:
        _analyzer = CodeReviewAnalyzer()
    return _analyzer


# ============== Request/Response Models ==============

class StartSessionRequest(BaseModel):
    """Request to start a monitoring session"""
    candidate_id: Optional[str] = Field(None, description="ID of the candidate")
    session_id: Optional[str] = Field(None, description="Existing session to restart")
    camera_granted: bool = Field(True, description="Whether the browser obtained camera/mic access")
    camera_error: Optional[str] = Field(None, description="Platform error when access was refused")


class StartSessionResponse(BaseModel):
    session_id: str
    status: str
    run: int
    degraded: bool
    message: str


class SessionRequest(BaseModel):
    session_id: str


class PresenceRequest(BaseModel):
    session_id: str
    presence: bool
    gaze: bool


class VisibilityRequest(BaseModel):
    session_id: str
    focused: bool


class KeystrokeRequest(BaseModel):
    session_id: str
    timestamp_ms: Optional[float] = Field(None, description="Client keystroke time in ms; server time if omitted")
    code: Optional[str] = Field(None, description="Editor contents after the keystroke")


class PasteRequest(BaseModel):
    session_id: str
    length: int = Field(..., ge=0, description="Pasted text length in characters")


class CameraErrorRequest(BaseModel):
    session_id: str
    reason: Optional[str] = None


class EventModel(BaseModel):
    """Event as served by the API; same field names as the export document"""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    type: str
    message: str
    severity: str
    timestamp: str
    session_time: int = Field(..., alias="sessionTime")

    @classmethod
    def from_event(cls, event: IntegrityEvent) -> "EventModel":
        return cls(**event.to_dict())


class ObservationResponse(BaseModel):
    """Response after reporting an observation"""
    recorded: bool
    event: Optional[EventModel] = None
    score: int


class StopSessionResponse(BaseModel):
    session_id: str
    state: str
    integrity_score: int
    band: str
    elapsed_seconds: int
    event_count: int


class SessionStatusResponse(BaseModel):
    session_id: str
    candidate_id: Optional[str]
    state: str
    run: int
    elapsed_seconds: int
    score: int
    band: str
    points_deducted: int
    indicators: Dict[str, Any]
    event_count: int
    camera_active: bool
    degraded: bool


class EventsResponse(BaseModel):
    session_id: str
    count: int
    events: List[EventModel]


# ============== Helpers ==============

def _get_session(session_id: str) -> MonitorSession:
    session = _sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _observation_response(session: MonitorSession, event: Optional[IntegrityEvent]) -> ObservationResponse:
    return ObservationResponse(
        recorded=event is not None,
        event=EventModel.from_event(event) if event else None,
        score=session.score,
    )


def _cleanup_session(session_id: str, run_id: int):
    """Drop a stopped session unless it was restarted since"""
    session = _sessions.get(session_id)
    if session is None or session.is_active or session.run_id != run_id:
        return

    session.close()
    del _sessions[session_id]
    logger.info(f"Cleaned up session: {session_id}")


def _schedule_cleanup(session: MonitorSession):
    """Keep a stopped session readable for a while, then drop it"""
    asyncio.get_running_loop().call_later(
        settings.SESSION_RETENTION_SECONDS,
        _cleanup_session,
        session.id,
        session.run_id
    )


# ============== API Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
async def start_session(
    request: StartSessionRequest,
    scheduler: TaskScheduler = Depends(get_scheduler)
):
    """
    Start a monitoring session.

    Restarts an ended session when session_id is given; otherwise
    creates a new one. Refused camera access still starts the session,
    in degraded mode.
    """
    camera = ClientReportedCamera(granted=request.camera_granted, reason=request.camera_error)

    if request.session_id and request.session_id in _sessions:
        session = _sessions[request.session_id]
        if session.is_active:
            raise HTTPException(status_code=409, detail=f"Session {session.id} is already active")
        session.camera = camera
    else:
        session = MonitorSession(
            session_id=request.session_id,
            candidate_id=request.candidate_id,
            camera=camera,
            scheduler=scheduler,
        )

    try:
        session.start()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to start monitoring session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    _sessions[session.id] = session

    logger.info(f"Started monitoring session: {session.id} (run {session.run_id})")

    return StartSessionResponse(
        session_id=session.id,
        status=session.state.value,
        run=session.run_id,
        degraded=session.degraded,
        message="Monitoring session started" + (" without camera" if session.degraded else ""),
    )


@router.post("/stop", response_model=StopSessionResponse)
async def stop_session(request: SessionRequest):
    """Stop a monitoring session and freeze its score"""
    session = _get_session(request.session_id)

    try:
        session.stop()
    except Exception as e:
        logger.error(f"Error stopping session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    _schedule_cleanup(session)

    score = session.score
    return StopSessionResponse(
        session_id=session.id,
        state=session.state.value,
        integrity_score=score,
        band=session.scorer.get_band(score),
        elapsed_seconds=session.elapsed_seconds,
        event_count=session.log.count(),
    )


@router.post("/presence", response_model=ObservationResponse)
async def report_presence(request: PresenceRequest):
    """Report one presence/gaze cycle from the client-side detector"""
    session = _get_session(request.session_id)
    event = session.observe_presence(request.presence, request.gaze)
    return _observation_response(session, event)


@router.post("/visibility", response_model=ObservationResponse)
async def report_visibility(request: VisibilityRequest):
    """Report that the interview tab was hidden or shown"""
    session = _get_session(request.session_id)
    event = session.observe_visibility(request.focused)
    return _observation_response(session, event)


@router.post("/keystroke", response_model=ObservationResponse)
async def report_keystroke(request: KeystrokeRequest):
    """Report a keystroke in the code editor"""
    session = _get_session(request.session_id)
    event = session.observe_keystroke(request.timestamp_ms, request.code)
    return _observation_response(session, event)


@router.post("/paste", response_model=ObservationResponse)
async def report_paste(request: PasteRequest):
    """Report a paste into the code editor"""
    session = _get_session(request.session_id)
    event = session.observe_paste(request.length)
    return _observation_response(session, event)


@router.post("/camera-error", response_model=ObservationResponse)
async def report_camera_error(request: CameraErrorRequest):
    """Report that the camera stream failed mid-session"""
    session = _get_session(request.session_id)
    event = session.report_camera_failure(request.reason)
    return _observation_response(session, event)


@router.get("/status/{session_id}", response_model=SessionStatusResponse)
async def get_session_status(session_id: str):
    """Get current status of a monitoring session"""
    session = _get_session(session_id)
    return SessionStatusResponse(**session.status())


@router.get("/events/{session_id}", response_model=EventsResponse)
async def get_events(session_id: str, newest_first: bool = False):
    """Get the event timeline in emission order, or newest first for display"""
    session = _get_session(session_id)
    events = session.log.reversed_view() if newest_first else session.log.all()
    return EventsResponse(
        session_id=session.id,
        count=len(events),
        events=[EventModel.from_event(e) for e in events],
    )


@router.post("/analyze", response_model=AnalysisVerdict)
async def analyze_session(
    request: SessionRequest,
    analyzer: CodeReviewAnalyzer = Depends(get_analyzer)
):
    """
    Run the external code review for the session's code.

    Monitoring continues while this is outstanding. Failures come back
    as the fallback verdict, never as an error.
    """
    session = _get_session(request.session_id)

    if not session.artifact_text.strip():
        raise HTTPException(status_code=400, detail="No code to analyze")

    return await session.run_analysis(analyzer)


@router.get("/export/{session_id}")
async def export_session(session_id: str):
    """Export the session record as a JSON document"""
    session = _get_session(session_id)
    return session.export().to_dict()


@router.delete("/session/{session_id}")
async def delete_session(session_id: str):
    """Stop (if needed) and discard a session immediately"""
    session = _get_session(session_id)

    try:
        session.close()
    except Exception as e:
        logger.error(f"Error closing session {session_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    del _sessions[session_id]
    logger.info(f"Deleted session: {session_id}")
    return {"session_id": session_id, "deleted": True}


# ============== Health Check ==============

@router.get("/health")
async def health_check():
    """Health check for monitoring module"""
    return {
        "status": "healthy",
        "active_sessions": sum(1 for s in _sessions.values() if s.is_active),
        "module": "integrity_monitor"
    }


def close_all_sessions() -> int:
    """Close every session; returns how many were still active"""
    active = 0
    for session in list(_sessions.values()):
        if session.is_active:
            active += 1
        try:
            session.close()
        except Exception as e:
            logger.error(f"Error closing session {session.id}: {e}")
    _sessions.clear()
    return active
