"""
API Tests for Notifications
"""

import pytest

from tests.conftest import auth_headers


@pytest.fixture
def medication_notifications(client, patient_headers):
    """Adding two medications raises two notifications for the patient"""
    for name in ("Losartana", "Metformina"):
        client.post("/api/medications", json={
            "name": name, "dosage": "50mg", "frequency": "1x ao dia", "schedules": ["08:00"],
        }, headers=patient_headers)


@pytest.mark.api
class TestNotificationsAPI:

    def test_list_with_summary(self, client, patient_headers, medication_notifications):
        response = client.get("/api/notifications?limit=1", headers=patient_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data["notifications"]) == 1
        assert data["notifications"][0]["title"] == "Novo Medicamento"
        assert data["notifications"][0]["message"] == "Metformina 50mg foi adicionado"
        assert data["summary"]["total"] == 2
        assert data["summary"]["unread"] == 2
        assert data["pagination"] == {"limit": 1, "offset": 0, "has_more": True}

    def test_caregiver_receives_patient_notifications(self, client, test_caregiver, medication_notifications):
        data = client.get("/api/notifications", headers=auth_headers(test_caregiver)).json()
        assert data["summary"]["total"] == 2

    def test_mark_read(self, client, patient_headers, medication_notifications):
        notification = client.get("/api/notifications", headers=patient_headers).json()["notifications"][0]

        response = client.put(f"/api/notifications/{notification['id']}/read", headers=patient_headers)

        assert response.status_code == 200
        assert response.json()["is_read"] is True
        unread = client.get("/api/notifications?unread_only=true", headers=patient_headers).json()
        assert len(unread["notifications"]) == 1

    def test_mark_read_unknown(self, client, patient_headers):
        assert client.put("/api/notifications/999/read", headers=patient_headers).status_code == 404

    def test_mark_all_read(self, client, patient_headers, medication_notifications):
        response = client.put("/api/notifications/mark-all-read", headers=patient_headers)

        assert response.json() == {"updated": 2}
        summary = client.get("/api/notifications", headers=patient_headers).json()["summary"]
        assert summary["unread"] == 0

    def test_requires_authentication(self, client):
        assert client.get("/api/notifications").status_code == 401
