"""
Pytest Configuration for Integrity Monitor Tests
"""
import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from integrity_monitor.monitor import api
from integrity_monitor.monitor.analysis import AnalysisVerdict
from integrity_monitor.monitor.scheduler import ManualScheduler
from integrity_monitor.monitor.session import MonitorSession
from integrity_monitor.monitor.signals import ClientReportedCamera


class StubAnalyzer:
    """Analyzer double returning a fixed verdict and recording its inputs"""

    def __init__(self, verdict: AnalysisVerdict = None):
        self.verdict = verdict or AnalysisVerdict(
            overall_quality=8,
            suspicious_patterns=[],
            improvement_suggestions=["Add input validation"],
            confidence_score=90,
        )
        self.calls = []

    async def analyze(self, artifact_text, events):
        self.calls.append((artifact_text, tuple(events)))
        return self.verdict


@pytest.fixture
def scheduler():
    """Deterministic scheduler"""
    return ManualScheduler()


@pytest.fixture
def camera():
    return ClientReportedCamera()


@pytest.fixture
def session(scheduler, camera):
    """Idle session on a manual clock with no server-side presence source"""
    s = MonitorSession(session_id="INT_TEST01", camera=camera, scheduler=scheduler)
    yield s
    s.close()


@pytest.fixture
def stub_analyzer():
    return StubAnalyzer()


@pytest.fixture(scope='session')
def app():
    """FastAPI app for testing"""
    from integrity_monitor.main import app
    return app


@pytest.fixture(scope='function')
def client(app, stub_analyzer):
    """FastAPI test client with a manual clock and stubbed code review"""
    schedulers = []

    def manual_scheduler():
        scheduler = ManualScheduler()
        schedulers.append(scheduler)
        return scheduler

    app.dependency_overrides[api.get_scheduler] = manual_scheduler
    app.dependency_overrides[api.get_analyzer] = lambda: stub_analyzer

    with TestClient(app) as test_client:
        test_client.schedulers = schedulers
        yield test_client

    app.dependency_overrides.clear()
    api._sessions.clear()
