"""
API Tests for Medications
"""

import pytest

from models import MedicationLogStatus
from tests.conftest import auth_headers


@pytest.mark.api
class TestMedicationsAPI:

    def test_create_medication(self, client, test_patient, patient_headers):
        response = client.post("/api/medications", json={
            "name": "Metformina",
            "dosage": "850mg",
            "frequency": "2x ao dia",
            "schedules": ["20:00", "08:00"],
        }, headers=patient_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["patient_id"] == test_patient.id
        assert data["schedules"] == ["08:00", "20:00"]
        assert data["is_active"] is True

        today = client.get("/api/medication-logs/today", headers=patient_headers).json()
        assert len(today) == 2

    def test_create_rejects_bad_time(self, client, patient_headers):
        response = client.post("/api/medications", json={
            "name": "Metformina", "dosage": "850mg", "frequency": "1x", "schedules": ["8h"],
        }, headers=patient_headers)
        assert response.status_code == 422

    def test_list_active_only(self, client, test_medication, patient_headers):
        client.post(f"/api/medications/{test_medication.id}/inactivate", headers=patient_headers)

        assert client.get("/api/medications?active_only=true", headers=patient_headers).json() == []
        assert len(client.get("/api/medications", headers=patient_headers).json()) == 1

    def test_update_medication(self, client, test_medication, patient_headers):
        response = client.put(f"/api/medications/{test_medication.id}", json={
            "dosage": "100mg",
            "schedules": ["09:00"],
        }, headers=patient_headers)

        assert response.status_code == 200
        assert response.json()["dosage"] == "100mg"
        assert response.json()["schedules"] == ["09:00"]

    def test_update_other_patients_medication(self, client, test_medication, other_patient):
        response = client.put(f"/api/medications/{test_medication.id}", json={"dosage": "1mg"}, headers=auth_headers(other_patient))
        assert response.status_code == 404

    def test_delete_unused_medication(self, client, test_medication, patient_headers):
        response = client.delete(f"/api/medications/{test_medication.id}", headers=patient_headers)

        assert response.status_code == 204
        assert client.get("/api/medications", headers=patient_headers).json() == []

    def test_delete_taken_medication_asks_to_inactivate(self, client, test_medication, patient_headers, make_log, current_datetime):
        make_log(current_datetime, MedicationLogStatus.TAKEN, actual_at=current_datetime)

        check = client.get(f"/api/medications/{test_medication.id}/has-taken-logs", headers=patient_headers)
        assert check.json() == {"medication_id": test_medication.id, "has_taken_logs": True}

        response = client.delete(f"/api/medications/{test_medication.id}", headers=patient_headers)
        assert response.status_code == 400
        assert response.json()["message"]["should_inactivate"] is True

    def test_reactivate(self, client, test_medication, patient_headers):
        client.post(f"/api/medications/{test_medication.id}/inactivate", headers=patient_headers)
        response = client.post(f"/api/medications/{test_medication.id}/reactivate", headers=patient_headers)

        assert response.status_code == 200
        assert response.json()["is_active"] is True

    def test_update_can_clear_end_date(self, client, test_medication, patient_headers):
        url = f"/api/medications/{test_medication.id}"
        client.put(url, json={"end_date": "2030-01-01"}, headers=patient_headers)

        response = client.put(url, json={"end_date": None}, headers=patient_headers)

        assert response.status_code == 200
        assert response.json()["end_date"] is None
        assert response.json()["dosage"] == "50mg"
