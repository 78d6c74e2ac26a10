"""
Monitor Session - Lifecycle state machine for one monitored interview
"""

import logging
import threading
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..config import settings
from .analysis import AnalysisVerdict, CodeReviewAnalyzer
from .event_log import EventLog
from .events import (
    EventDraft,
    EventType,
    IntegrityEvent,
    PresenceReading,
    Severity,
    SignalKind,
    SignalObservation,
    make_event,
)
from .exceptions import InvalidTransitionError
from .export import ExportSnapshot
from .scheduler import AsyncioScheduler, TaskScheduler
from .scoring import EventClassifier, IntegrityScorer, MonitorIndicators
from .signals import CameraCapability, ClientReportedCamera, PresenceSource
from .utils.logging import log_integrity_event, log_session_end, log_session_start

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"


class MonitorSession:
    """
    Owns one interview's monitoring lifecycle.

    idle -> active on start(), active -> ended on stop(); start() from
    ended begins a fresh run with score, clock and event log reset.
    All mutation goes through a per-session lock, so observations from
    request handlers, the clock and the presence poller are processed
    one at a time. The score is never stored: it is replayed from the
    event log.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        candidate_id: Optional[str] = None,
        camera: Optional[CameraCapability] = None,
        presence_source: Optional[PresenceSource] = None,
        scheduler: Optional[TaskScheduler] = None,
        classifier: Optional[EventClassifier] = None,
        scorer: Optional[IntegrityScorer] = None,
        tick_seconds: Optional[float] = None,
        poll_seconds: Optional[float] = None
    ):
        """
        Initialize an idle session.

        Args:
            session_id: Optional custom session ID (auto-generated if not provided)
            candidate_id: ID of the candidate being interviewed
            camera: Camera/mic capability (defaults to a client-reported grant)
            presence_source: Periodic presence/gaze source; None when the client
                             reports presence itself
            scheduler: Periodic task scheduler (defaults to asyncio)
            classifier: Event classifier (defaults to configured thresholds)
            scorer: Penalty model
            tick_seconds: Clock period
            poll_seconds: Presence poll period
        """
        self.id = session_id or f"INT_{uuid.uuid4().hex[:6].upper()}"
        self.candidate_id = candidate_id

        self.camera = camera or ClientReportedCamera()
        self.presence_source = presence_source
        self.scheduler = scheduler or AsyncioScheduler()
        self.tick_seconds = tick_seconds or settings.CLOCK_TICK_SECONDS
        self.poll_seconds = poll_seconds or settings.PRESENCE_POLL_SECONDS

        if classifier is None:
            thresholds = settings.classifier_thresholds()
            thresholds["presence_interval_seconds"] = self.poll_seconds
            classifier = EventClassifier(thresholds)
        self.classifier = classifier
        self.scorer = scorer or IntegrityScorer()

        self.state = SessionState.IDLE
        self.run_id = 0
        self.elapsed_seconds = 0
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None
        self.degraded = False

        self.artifact_text = ""
        self.analysis: Optional[AnalysisVerdict] = None
        self.log = EventLog(session_id=self.id)

        self._camera_handle: Any = None
        self._next_event_id = 1
        self._lock = threading.RLock()

    # ============== Derived state ==============

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def score(self) -> int:
        """Integrity score replayed from the event log"""
        return self.scorer.replay(self.log.all())

    @property
    def events(self):
        return self.log.all()

    @property
    def indicators(self) -> MonitorIndicators:
        return self.classifier.indicators

    @property
    def camera_active(self) -> bool:
        return self._camera_handle is not None

    # ============== Lifecycle ==============

    def start(self) -> "MonitorSession":
        """
        Begin a fresh monitoring run.

        Raises:
            InvalidTransitionError: if the session is already active
        """
        with self._lock:
            if self.state == SessionState.ACTIVE:
                raise InvalidTransitionError(self.state.value, "start")

            # Acquire and schedule first: if either fails the previous run's
            # record is left exactly as it was
            camera_failure = self._acquire_camera()
            try:
                self.scheduler.schedule("clock", self.tick_seconds, self.tick)
                if self.presence_source is not None and camera_failure is None:
                    self.scheduler.schedule(
                        "presence",
                        self.poll_seconds,
                        self.poll_presence,
                        blocking=self.presence_source.blocking
                    )
            except Exception:
                self.scheduler.cancel_all()
                self._release_camera()
                raise

            self.run_id += 1
            self.elapsed_seconds = 0
            self.log.clear()
            self._next_event_id = 1
            self.analysis = None
            self.classifier.reset()
            if self.presence_source is not None:
                self.presence_source.reset()

            self.started_at = datetime.utcnow()
            self.ended_at = None
            self.state = SessionState.ACTIVE
            self.degraded = camera_failure is not None

            if self.degraded:
                self._classify(SignalObservation(SignalKind.CAMERA_FAILURE, camera_failure))
            self._record(EventDraft(EventType.SESSION_START, "Interview session started", Severity.INFO))
            log_session_start(self.id, self.run_id, self.candidate_id, self.degraded)

        return self

    def stop(self):
        """End the run; a no-op unless the session is active"""
        with self._lock:
            if self.state != SessionState.ACTIVE:
                logger.warning(f"stop() ignored: session {self.id} is {self.state.value}")
                return

            self.scheduler.cancel_all()
            self.state = SessionState.ENDED
            self.ended_at = datetime.utcnow()

            try:
                self._release_camera()
            finally:
                self._record(EventDraft(EventType.SESSION_END, "Interview session ended", Severity.INFO))
                log_session_end(self.id, self.score, self.log.count(), self.elapsed_seconds)

    def close(self):
        """Release everything, whatever state the session is in"""
        with self._lock:
            if self.state == SessionState.ACTIVE:
                self.stop()
            else:
                self.scheduler.cancel_all()
                self._release_camera()

    def __enter__(self) -> "MonitorSession":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _acquire_camera(self) -> Optional[str]:
        """Acquire the camera; returns the failure reason, or None on success"""
        try:
            self._camera_handle = self.camera.acquire()
            return None
        except Exception as e:
            self._camera_handle = None
            logger.warning(f"Camera unavailable for session {self.id}, continuing degraded: {e}")
            return str(e)

    def _release_camera(self):
        handle, self._camera_handle = self._camera_handle, None
        if handle is not None:
            self.camera.release(handle)

    # ============== Periodic tasks ==============

    def tick(self):
        """Advance the session clock by one second"""
        with self._lock:
            if self.state == SessionState.ACTIVE:
                self.elapsed_seconds += 1

    def poll_presence(self) -> Optional[IntegrityEvent]:
        """Run one presence/gaze cycle against the configured source"""
        if self.presence_source is None or not self.is_active:
            return None

        try:
            reading = self.presence_source.read(self._camera_handle)
        except Exception as e:
            logger.warning(f"Presence source {self.presence_source.name} failed: {e}")
            return None

        if reading is None:
            return None
        return self.observe(SignalObservation(SignalKind.PRESENCE, reading))

    # ============== Observations ==============

    def observe(self, observation: SignalObservation) -> Optional[IntegrityEvent]:
        """
        Classify and record one observation.

        Returns:
            The recorded event, or None if nothing was recorded
            (including whenever the session is not active)
        """
        with self._lock:
            if self.state != SessionState.ACTIVE:
                logger.debug(f"Ignoring {observation.kind.value} on {self.state.value} session {self.id}")
                return None
            return self._classify(observation)

    def observe_presence(self, presence: bool, gaze: bool) -> Optional[IntegrityEvent]:
        return self.observe(SignalObservation(SignalKind.PRESENCE, PresenceReading(presence, gaze)))

    def observe_visibility(self, focused: bool) -> Optional[IntegrityEvent]:
        return self.observe(SignalObservation(SignalKind.VISIBILITY, focused))

    def observe_keystroke(
        self,
        timestamp_ms: Optional[float] = None,
        artifact_text: Optional[str] = None
    ) -> Optional[IntegrityEvent]:
        """Record a keystroke, optionally with the editor contents after it"""
        if timestamp_ms is None:
            timestamp_ms = time.time() * 1000
        with self._lock:
            if artifact_text is not None:
                self.update_artifact(artifact_text)
            return self.observe(SignalObservation(SignalKind.KEYSTROKE, timestamp_ms))

    def observe_paste(self, length: int) -> Optional[IntegrityEvent]:
        return self.observe(SignalObservation(SignalKind.PASTE, length))

    def report_camera_failure(self, reason: Optional[str] = None) -> Optional[IntegrityEvent]:
        return self.observe(SignalObservation(SignalKind.CAMERA_FAILURE, reason))

    def update_artifact(self, text: str) -> bool:
        """Replace the monitored code; the editor is read-only outside a run"""
        with self._lock:
            if self.state != SessionState.ACTIVE:
                return False
            self.artifact_text = text
            return True

    def _classify(self, observation: SignalObservation) -> Optional[IntegrityEvent]:
        try:
            draft = self.classifier.classify(observation)
        except Exception as e:
            logger.error(f"Classification failed for {observation.kind.value} in session {self.id}: {e}")
            return None

        if draft is None:
            return None
        return self._record(draft)

    def _record(self, draft: EventDraft) -> IntegrityEvent:
        event = make_event(self._next_event_id, draft, self.elapsed_seconds)
        self._next_event_id += 1
        self.log.append(event)

        if draft.type not in (EventType.SESSION_START, EventType.SESSION_END):
            log_integrity_event(
                self.id,
                draft.type.value,
                draft.severity.value,
                self.scorer.penalty_for(draft.type),
                self.score
            )
        return event

    # ============== Analysis & export ==============

    async def run_analysis(self, analyzer: CodeReviewAnalyzer) -> AnalysisVerdict:
        """
        Review the current artifact and timeline without pausing monitoring.

        The verdict is attached only if the same run is still current when
        it arrives; it never changes state or score.
        """
        with self._lock:
            run_id = self.run_id
            artifact = self.artifact_text
            events = self.log.all()

        verdict = await analyzer.analyze(artifact, events)
        self.attach_analysis(verdict, run_id)
        return verdict

    def attach_analysis(self, verdict: AnalysisVerdict, run_id: Optional[int] = None) -> bool:
        with self._lock:
            if run_id is not None and run_id != self.run_id:
                logger.info(f"Discarding analysis from run {run_id}; session {self.id} is on run {self.run_id}")
                return False
            self.analysis = verdict
            return True

    def export(self) -> ExportSnapshot:
        """Snapshot score, duration, events, code and analysis"""
        with self._lock:
            return ExportSnapshot(
                score=self.score,
                elapsed_seconds=self.elapsed_seconds,
                events=self.log.all(),
                artifact_text=self.artifact_text,
                analysis=self.analysis,
                exported_at=datetime.utcnow(),
            )

    def status(self) -> Dict[str, Any]:
        """Current session status for display"""
        with self._lock:
            score = self.score
            return {
                "session_id": self.id,
                "candidate_id": self.candidate_id,
                "state": self.state.value,
                "run": self.run_id,
                "elapsed_seconds": self.elapsed_seconds,
                "score": score,
                "band": self.scorer.get_band(score),
                "points_deducted": IntegrityScorer.MAX_SCORE - score,
                "indicators": self.indicators.to_dict(),
                "event_count": self.log.count(),
                "camera_active": self.camera_active,
                "degraded": self.degraded,
            }
