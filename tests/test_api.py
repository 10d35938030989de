"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST API and WebSocket endpoints.

==============================================================================
"""

import threading
import time

import pytest
from fastapi.testclient import TestClient

from fakes import FakeCamera


def create_session(client: TestClient) -> str:
    response = client.post("/api/v1/sessions")
    assert response.status_code == 201
    return response.json()["session"]["id"]


def wait_for_count(client: TestClient, session_id: str, count: int, timeout: float = 3.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        session = client.get(f"/api/v1/sessions/{session_id}").json()["session"]
        if session["count"] >= count:
            return session
        if time.monotonic() > deadline:
            raise AssertionError(f"session never reached {count} result(s): {session}")
        time.sleep(0.01)


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        """Test health check reports camera and session count."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["camera"] == "healthy"
        assert data["details"]["active_sessions"] == 0

    def test_health_degraded_without_camera(self, client: TestClient, fake_camera: FakeCamera):
        """Test health check when no camera backend exists."""
        fake_camera.supported = False
        data = client.get("/api/v1/health").json()
        assert data["status"] == "degraded"
        assert data["components"]["camera"] == "unsupported"

    def test_readiness_check(self, client: TestClient):
        """Test readiness check."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_check(self, client: TestClient):
        """Test liveness check."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True


class TestSessionEndpoints:
    """Tests for the scan session lifecycle over REST."""

    def test_create_session(self, client: TestClient):
        """Test a new session starts idle and empty."""
        response = client.post("/api/v1/sessions")
        assert response.status_code == 201
        session = response.json()["session"]
        assert session["state"] == "idle"
        assert session["results"] == []
        assert session["error"] is None

    def test_scan_and_finish(self, client: TestClient, fake_camera: FakeCamera):
        """Test start, collect two codes, finish and read the report."""
        session_id = create_session(client)

        response = client.post(f"/api/v1/sessions/{session_id}/start")
        assert response.status_code == 200
        assert response.json()["session"]["state"] == "scanning"
        assert response.json()["session"]["profile"] == "environment-hd"

        session = wait_for_count(client, session_id, 2)
        assert [r["text"] for r in session["results"]] == ["123", "456"]
        assert session["last_scanned"] == "456"

        response = client.post(f"/api/v1/sessions/{session_id}/finish")
        assert response.status_code == 200
        report = response.json()
        assert report["results"] == ["123", "456"]
        assert report["headline"] == "2 Barcodes Scanned!"
        assert report["copy_text"] == "Barcode 1: 123\nBarcode 2: 456"
        assert fake_camera.streams[0].active is False

        response = client.get(f"/api/v1/sessions/{session_id}/report")
        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_finish_without_results(self, client: TestClient, manager):
        """Test finishing before anything is scanned is refused."""
        session_id = create_session(client)

        response = client.post(f"/api/v1/sessions/{session_id}/finish")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NO_RESULTS"
        assert manager.get(session_id).is_disposed is False

    def test_stop_releases_camera(self, client: TestClient, fake_camera: FakeCamera):
        """Test stop returns the session to idle."""
        session_id = create_session(client)
        client.post(f"/api/v1/sessions/{session_id}/start")

        response = client.post(f"/api/v1/sessions/{session_id}/stop")
        assert response.status_code == 200
        assert response.json()["session"]["state"] == "idle"
        assert fake_camera.streams[0].active is False

    def test_no_camera_then_retry(self, client: TestClient, fake_camera: FakeCamera):
        """Test a failed start reports the error and retry recovers."""
        fake_camera.failing = {"environment-hd", "environment", "any"}
        session_id = create_session(client)

        response = client.post(f"/api/v1/sessions/{session_id}/start")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "NO_CAMERA_AVAILABLE"

        session = client.get(f"/api/v1/sessions/{session_id}").json()["session"]
        assert session["state"] == "error"
        assert session["error"]["code"] == "NO_CAMERA_AVAILABLE"

        fake_camera.failing = {"environment-hd"}
        response = client.post(f"/api/v1/sessions/{session_id}/retry")
        assert response.status_code == 200
        session = response.json()["session"]
        assert session["state"] == "scanning"
        assert session["profile"] == "environment"
        assert session["retry_count"] == 1

    def test_insecure_context(self, insecure_client: TestClient, fake_camera: FakeCamera):
        """Test plain HTTP from a remote host cannot open the camera."""
        session_id = create_session(insecure_client)

        response = insecure_client.post(f"/api/v1/sessions/{session_id}/start")
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "INSECURE_CONTEXT"
        assert fake_camera.requested == []

        session = insecure_client.get(f"/api/v1/sessions/{session_id}").json()["session"]
        assert session["state"] == "error"

    def test_remove_result(self, client: TestClient):
        """Test removing a scanned code by index."""
        session_id = create_session(client)
        client.post(f"/api/v1/sessions/{session_id}/start")
        wait_for_count(client, session_id, 2)

        response = client.delete(f"/api/v1/sessions/{session_id}/results/0")
        assert response.status_code == 200
        assert [r["text"] for r in response.json()["session"]["results"]] == ["456"]

        response = client.delete(f"/api/v1/sessions/{session_id}/results/5")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_RESULT_INDEX"

    def test_close_discards_results(self, client: TestClient):
        """Test closing abandons the session without a report."""
        session_id = create_session(client)
        client.post(f"/api/v1/sessions/{session_id}/start")

        response = client.post(f"/api/v1/sessions/{session_id}/close")
        assert response.status_code == 200

        response = client.post(f"/api/v1/sessions/{session_id}/start")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SESSION_DISPOSED"

        response = client.get(f"/api/v1/sessions/{session_id}/report")
        assert response.status_code == 404

    def test_debug_log(self, client: TestClient):
        """Test the debug log is only returned on request."""
        session_id = create_session(client)
        client.post(f"/api/v1/sessions/{session_id}/start")

        session = client.get(f"/api/v1/sessions/{session_id}").json()["session"]
        assert session["debug_log"] is None

        session = client.get(f"/api/v1/sessions/{session_id}?debug=true").json()["session"]
        assert "Initializing camera..." in session["debug_log"]

    def test_delete_session(self, client: TestClient, fake_camera: FakeCamera):
        """Test deleting a running session releases the camera."""
        session_id = create_session(client)
        client.post(f"/api/v1/sessions/{session_id}/start")

        response = client.delete(f"/api/v1/sessions/{session_id}")
        assert response.status_code == 200
        assert fake_camera.streams[0].active is False

        response = client.get(f"/api/v1/sessions/{session_id}")
        assert response.status_code == 404

    def test_unknown_session(self, client: TestClient):
        """Test unknown session ids return 404."""
        response = client.post("/api/v1/sessions/missing/start")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"

    def test_session_limit(self, client: TestClient):
        """Test the configured session limit is enforced."""
        create_session(client)
        create_session(client)

        response = client.post("/api/v1/sessions")
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "SESSION_LIMIT_REACHED"

    def test_disposed_sessions_free_a_slot(self, client: TestClient):
        """Test a closed session no longer counts towards the limit."""
        first = create_session(client)
        create_session(client)
        client.post(f"/api/v1/sessions/{first}/close")

        response = client.post("/api/v1/sessions")
        assert response.status_code == 201


class TestScannerWebSocket:
    """Tests for the live scan session WebSocket."""

    @staticmethod
    def receive_until(websocket, event_type: str, limit: int = 50) -> list:
        messages = []
        for _ in range(limit):
            message = websocket.receive_json()
            messages.append(message)
            if message["type"] == event_type:
                return messages
        pytest.fail(f"no '{event_type}' message in {messages}")

    def test_scan_flow(self, client: TestClient):
        """Test start, live results and finish over one connection."""
        session_id = create_session(client)

        with client.websocket_connect(f"/ws/sessions/{session_id}") as websocket:
            snapshot = websocket.receive_json()
            assert snapshot["type"] == "snapshot"
            assert snapshot["session"]["state"] == "idle"

            websocket.send_json({"type": "start"})
            messages = self.receive_until(websocket, "result")
            states = [m["state"] for m in messages if m["type"] == "state"]
            assert states == ["requesting", "granted", "loading", "ready", "scanning"]
            assert messages[-1]["text"] == "123"

            second = self.receive_until(websocket, "result")[-1]
            assert second["text"] == "456"
            assert second["index"] == 1

            websocket.send_json({"type": "finish"})
            finished = self.receive_until(websocket, "finished")[-1]
            assert finished["results"] == ["123", "456"]
            assert finished["headline"] == "2 Barcodes Scanned!"

    def test_unknown_command(self, client: TestClient):
        """Test unknown commands are reported without closing."""
        session_id = create_session(client)

        with client.websocket_connect(f"/ws/sessions/{session_id}") as websocket:
            websocket.receive_json()
            websocket.send_json({"type": "dance"})
            error = websocket.receive_json()
            assert error["code"] == "UNKNOWN_COMMAND"

            websocket.send_json({"type": "status"})
            assert websocket.receive_json()["type"] == "snapshot"

    def test_unknown_session(self, client: TestClient):
        """Test connecting to a missing session."""
        with client.websocket_connect("/ws/sessions/missing") as websocket:
            error = websocket.receive_json()
            assert error["type"] == "error"
            assert error["code"] == "SESSION_NOT_FOUND"

    def test_stop_while_camera_request_pending(self, client: TestClient, fake_camera: FakeCamera):
        """Test stop is handled while start is still waiting for the camera."""
        gate = threading.Event()
        fake_camera.gates = {"environment-hd": gate}
        session_id = create_session(client)

        try:
            with client.websocket_connect(f"/ws/sessions/{session_id}") as websocket:
                websocket.receive_json()
                websocket.send_json({"type": "start"})
                assert self.receive_until(websocket, "state")[-1]["state"] == "requesting"

                websocket.send_json({"type": "stop"})
                assert self.receive_until(websocket, "state")[-1]["state"] == "idle"

                gate.set()
                deadline = time.monotonic() + 3.0
                while not fake_camera.streams or fake_camera.streams[0].active:
                    assert time.monotonic() < deadline
                    time.sleep(0.01)

                websocket.send_json({"type": "status"})
                snapshot = self.receive_until(websocket, "snapshot")[-1]
                assert snapshot["session"]["state"] == "idle"
                assert snapshot["session"]["profile"] is None
        finally:
            gate.set()

        assert fake_camera.requested == ["environment-hd"]
        assert fake_camera.streams[0].active is False
