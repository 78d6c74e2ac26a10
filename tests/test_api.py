"""
Tests for the Integrity Monitor API endpoints
"""

from unittest.mock import patch


def _start(client, **body):
    response = client.post("/api/monitor/start", json=body)
    assert response.status_code == 200, response.text
    return response.json()


class TestHealth:

    def test_service_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_monitor_health(self, client):
        _start(client)
        data = client.get("/api/monitor/health").json()
        assert data["active_sessions"] == 1


class TestSessionLifecycle:

    def test_start(self, client):
        data = _start(client, candidate_id="cand-1")

        assert data["session_id"].startswith("INT_")
        assert data["status"] == "active"
        assert data["run"] == 1
        assert data["degraded"] is False

    def test_start_with_denied_camera(self, client):
        data = _start(client, camera_granted=False, camera_error="NotAllowedError")
        assert data["degraded"] is True
        assert data["status"] == "active"

        events = client.get(f"/api/monitor/events/{data['session_id']}").json()["events"]
        assert [e["type"] for e in events] == ["CAMERA_ERROR", "SESSION_START"]
        assert events[0]["message"] == "Failed to access camera (NotAllowedError)"

    def test_restart_active_session_conflicts(self, client):
        session_id = _start(client)["session_id"]
        response = client.post("/api/monitor/start", json={"session_id": session_id})
        assert response.status_code == 409

    def test_stop_and_restart(self, client):
        session_id = _start(client)["session_id"]
        client.post("/api/monitor/paste", json={"session_id": session_id, "length": 120})

        stopped = client.post("/api/monitor/stop", json={"session_id": session_id}).json()
        assert stopped["state"] == "ended"
        assert stopped["integrity_score"] == 80
        assert stopped["band"] == "Moderate Concern"
        assert stopped["event_count"] == 3

        restarted = _start(client, session_id=session_id)
        assert restarted["run"] == 2

        status = client.get(f"/api/monitor/status/{session_id}").json()
        assert status["score"] == 100
        assert status["event_count"] == 1

    def test_unknown_session(self, client):
        assert client.get("/api/monitor/status/INT_NOPE").status_code == 404
        assert client.post("/api/monitor/stop", json={"session_id": "INT_NOPE"}).status_code == 404


class TestObservations:

    def test_paste(self, client):
        session_id = _start(client)["session_id"]

        data = client.post("/api/monitor/paste", json={"session_id": session_id, "length": 51}).json()
        assert data["recorded"] is True
        assert data["event"]["type"] == "PASTE"
        assert data["event"]["severity"] == "high"
        assert data["score"] == 80

        small = client.post("/api/monitor/paste", json={"session_id": session_id, "length": 50}).json()
        assert small["recorded"] is False
        assert small["event"] is None

    def test_negative_paste_length_rejected(self, client):
        session_id = _start(client)["session_id"]
        response = client.post("/api/monitor/paste", json={"session_id": session_id, "length": -1})
        assert response.status_code == 422

    def test_presence(self, client):
        session_id = _start(client)["session_id"]

        face = client.post("/api/monitor/presence",
                           json={"session_id": session_id, "presence": False, "gaze": False}).json()
        gaze = client.post("/api/monitor/presence",
                           json={"session_id": session_id, "presence": True, "gaze": False}).json()

        assert face["event"]["type"] == "FACE_NOT_DETECTED"
        assert gaze["event"]["type"] == "GAZE_OFFSCREEN"
        assert gaze["score"] == 92

    def test_visibility_and_keystrokes(self, client):
        session_id = _start(client)["session_id"]

        hidden = client.post("/api/monitor/visibility", json={"session_id": session_id, "focused": False}).json()
        assert hidden["event"]["type"] == "TAB_HIDDEN"

        client.post("/api/monitor/keystroke", json={"session_id": session_id, "timestamp_ms": 1000, "code": "a"})
        fast = client.post("/api/monitor/keystroke",
                           json={"session_id": session_id, "timestamp_ms": 1040, "code": "ab"}).json()
        assert fast["event"]["message"] == "Typing speed: 1500 WPM (suspiciously fast)"

        status = client.get(f"/api/monitor/status/{session_id}").json()
        assert status["indicators"]["tab_focused"] is False
        assert status["indicators"]["typing_velocity"] == 1500
        assert status["score"] == 82

    def test_ignored_after_stop(self, client):
        session_id = _start(client)["session_id"]
        client.post("/api/monitor/stop", json={"session_id": session_id})

        data = client.post("/api/monitor/paste", json={"session_id": session_id, "length": 500}).json()
        assert data["recorded"] is False
        assert data["score"] == 100

    def test_camera_error_mid_session(self, client):
        session_id = _start(client)["session_id"]
        data = client.post("/api/monitor/camera-error",
                           json={"session_id": session_id, "reason": "Track ended"}).json()

        assert data["event"]["type"] == "CAMERA_ERROR"
        assert data["score"] == 100

    def test_clock_drives_session_time(self, client):
        session_id = _start(client)["session_id"]
        client.schedulers[-1].advance(4)

        data = client.post("/api/monitor/paste", json={"session_id": session_id, "length": 99}).json()
        assert data["event"]["sessionTime"] == 4


class TestTimeline:

    def test_events_order(self, client):
        session_id = _start(client)["session_id"]
        client.post("/api/monitor/paste", json={"session_id": session_id, "length": 70})
        client.post("/api/monitor/visibility", json={"session_id": session_id, "focused": False})

        oldest = client.get(f"/api/monitor/events/{session_id}").json()
        newest = client.get(f"/api/monitor/events/{session_id}?newest_first=true").json()

        assert oldest["count"] == 3
        assert [e["type"] for e in oldest["events"]] == ["SESSION_START", "PASTE", "TAB_HIDDEN"]
        assert [e["id"] for e in newest["events"]] == [3, 2, 1]


class TestAnalysisAndExport:

    def test_analyze_requires_code(self, client):
        session_id = _start(client)["session_id"]
        response = client.post("/api/monitor/analyze", json={"session_id": session_id})
        assert response.status_code == 400

    def test_analyze_and_export(self, client, stub_analyzer):
        session_id = _start(client)["session_id"]
        client.post("/api/monitor/keystroke",
                    json={"session_id": session_id, "timestamp_ms": 0, "code": "def f(): return 1"})

        verdict = client.post("/api/monitor/analyze", json={"session_id": session_id}).json()
        assert verdict["overall_quality"] == 8
        assert stub_analyzer.calls[0][0] == "def f(): return 1"

        client.post("/api/monitor/stop", json={"session_id": session_id})
        export = client.get(f"/api/monitor/export/{session_id}").json()

        assert export["score"] == 100
        assert export["code"] == "def f(): return 1"
        assert export["aiAnalysis"]["confidence_score"] == 90
        assert [e["type"] for e in export["events"]] == ["SESSION_START", "SESSION_END"]
        assert export["timestamp"].endswith("Z")

    def test_event_fields_match_export(self, client):
        session_id = _start(client)["session_id"]
        client.post("/api/monitor/paste", json={"session_id": session_id, "length": 70})

        served = client.get(f"/api/monitor/events/{session_id}").json()["events"]
        exported = client.get(f"/api/monitor/export/{session_id}").json()["events"]

        assert served == exported
        assert "sessionTime" in served[0]


class TestSessionCleanup:
    """Stopped sessions are dropped from memory"""

    def test_stopped_sessions_are_dropped(self, client):
        from integrity_monitor.monitor import api

        with patch.object(api.settings, "SESSION_RETENTION_SECONDS", 0):
            for _ in range(5):
                session_id = _start(client)["session_id"]
                client.post("/api/monitor/stop", json={"session_id": session_id})

            # The cleanup timer fires on the app loop before the next request is served
            response = client.get(f"/api/monitor/status/{session_id}")

        assert response.status_code == 404
        assert api._sessions == {}

    def test_stopped_session_readable_during_retention(self, client):
        from integrity_monitor.monitor import api

        with patch.object(api.settings, "SESSION_RETENTION_SECONDS", 300):
            session_id = _start(client)["session_id"]
            client.post("/api/monitor/stop", json={"session_id": session_id})

            assert client.get(f"/api/monitor/export/{session_id}").status_code == 200

    def test_restarted_session_survives_old_cleanup(self, client):
        from integrity_monitor.monitor import api

        session_id = _start(client)["session_id"]
        client.post("/api/monitor/stop", json={"session_id": session_id})
        _start(client, session_id=session_id)

        api._cleanup_session(session_id, run_id=1)

        assert session_id in api._sessions
        assert api._sessions[session_id].is_active

    def test_cleanup_releases_camera(self, client):
        from integrity_monitor.monitor import api

        session_id = _start(client)["session_id"]
        client.post("/api/monitor/stop", json={"session_id": session_id})
        session = api._sessions[session_id]

        api._cleanup_session(session_id, run_id=session.run_id)

        assert session_id not in api._sessions
        assert session.camera_active is False

    def test_delete_session(self, client):
        session_id = _start(client)["session_id"]

        response = client.delete(f"/api/monitor/session/{session_id}")

        assert response.status_code == 200
        assert response.json() == {"session_id": session_id, "deleted": True}
        assert client.get(f"/api/monitor/status/{session_id}").status_code == 404
        assert client.delete(f"/api/monitor/session/{session_id}").status_code == 404


class TestAnalyzerDependency:

    def test_analyzer_is_shared(self):
        from integrity_monitor.monitor import api

        with patch.object(api, "_analyzer", None):
            with patch.object(api, "CodeReviewAnalyzer") as analyzer_cls:
                first = api.get_analyzer()
                second = api.get_analyzer()

        assert first is second
        analyzer_cls.assert_called_once()
