"""
API Tests for Health Endpoints, Weekly Adherence and the WebSocket
"""

import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from services.auth_service import create_access_token
from services.connection_registry import ConnectionRegistry


@pytest.fixture
def ws_session(monkeypatch, session_factory):
    """The WebSocket endpoint opens its own session; point it at the test database"""
    monkeypatch.setattr("api.ws.SessionLocal", session_factory)


@pytest.mark.api
class TestHealthEndpoints:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.parametrize("path", ["/health", "/api/health"])
    def test_health(self, client, path):
        data = client.get(path).json()

        assert data["checks"]["database"]["type"] == "sqlite"
        assert set(data["checks"]["audit"]) == {"written", "failed", "dropped"}
        assert data["checks"]["connections"] == 0


@pytest.mark.api
class TestAdherenceAPI:

    def test_weekly_chart_shape(self, client, test_patient, patient_headers):
        response = client.get("/api/adherence/weekly", headers=patient_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["patient_id"] == test_patient.id
        assert len(data["bars"]) == 7
        assert all(bar["height"] >= 5 for bar in data["bars"])
        assert data["overall_band"] in ("green", "yellow", "red")

    def test_caregiver_sees_patient_chart(self, client, test_patient, caregiver_headers):
        response = client.get("/api/adherence/weekly", headers=caregiver_headers)
        assert response.json()["patient_id"] == test_patient.id


@pytest.mark.api
class TestWebSocket:

    def test_invalid_token_is_rejected(self, client, ws_session):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws?token=not-a-token") as websocket:
                websocket.receive_json()

    def test_connection_during_shutdown_is_closed(self, client, ws_session, test_patient, monkeypatch):
        closed = ConnectionRegistry()
        asyncio.run(closed.close_all())
        monkeypatch.setattr(client.app.state, "connections", closed)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws?token={create_access_token(test_patient.id)}") as websocket:
                websocket.receive_json()

        assert exc_info.value.code == 1001

    def test_connect_and_receive_notification(self, client, ws_session, test_patient, patient_headers):
        with client.websocket_connect(f"/ws?token={create_access_token(test_patient.id)}") as websocket:
            assert websocket.receive_json() == {"type": "connected", "data": {"user_id": test_patient.id}}

            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"

            client.post("/api/medications", json={
                "name": "Losartana", "dosage": "50mg", "frequency": "1x ao dia", "schedules": ["08:00"],
            }, headers=patient_headers)

            message = websocket.receive_json()
            assert message["type"] == "notification"
            assert message["data"]["title"] == "Novo Medicamento"
