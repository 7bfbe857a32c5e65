import threading

import pytest

from clinic.core.database import SessionLocal
from clinic.core.exceptions import ConflictError
from clinic.models import Consultation
from clinic.schemas.consultation import ConsultationCreate
from clinic.services.clinical_service import ClinicalRecordLinker

BASE = "/api/v1/consultations"

class TestCreateConsultation:

    def test_doctor_records_consultation(self, client, doctor, patient, confirmed_appointment):
        response = client.post(
            BASE,
            json={"appointment_id": confirmed_appointment["id"], "diagnosis": "Hypertension"},
            headers=doctor.headers
        )
        assert response.status_code == 201

        data = response.json()["data"]
        assert data["appointment_id"] == confirmed_appointment["id"]
        assert data["patient_id"] == patient.profile_id
        assert data["doctor_id"] == doctor.profile_id
        assert data["date_time"] == confirmed_appointment["date_time"]
        assert data["status"] == "in-progress"

    def test_offset_time_is_stored_as_utc(self, client, doctor, confirmed_appointment):
        response = client.post(
            BASE,
            json={
                "appointment_id": confirmed_appointment["id"],
                "date_time": "2024-01-20T15:15:00+01:00",
                "diagnosis": "Hypertension",
            },
            headers=doctor.headers
        )
        assert response.status_code == 201
        assert response.json()["data"]["date_time"] == "2024-01-20T14:15:00"

    def test_second_consultation_conflicts(self, client, doctor, consultation):
        response = client.post(
            BASE,
            json={"appointment_id": consultation["appointment_id"], "diagnosis": "Second opinion"},
            headers=doctor.headers
        )
        assert response.status_code == 409
        assert response.json()["message"] == "A consultation already exists for this appointment"

    def test_unknown_appointment(self, client, doctor, test_db):
        response = client.post(
            BASE, json={"appointment_id": 9999, "diagnosis": "Flu"}, headers=doctor.headers
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Appointment not found"

    def test_mismatched_patient(self, client, doctor, other_patient, confirmed_appointment):
        response = client.post(
            BASE,
            json={
                "appointment_id": confirmed_appointment["id"],
                "patient_id": other_patient.profile_id,
                "diagnosis": "Flu",
            },
            headers=doctor.headers
        )
        assert response.status_code == 400

    def test_empty_diagnosis(self, client, doctor, confirmed_appointment):
        response = client.post(
            BASE,
            json={"appointment_id": confirmed_appointment["id"], "diagnosis": ""},
            headers=doctor.headers
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("role", ["patient", "secretary"])
    def test_role_cannot_create(self, client, request, role, confirmed_appointment):
        account = request.getfixturevalue(role)
        response = client.post(
            BASE,
            json={"appointment_id": confirmed_appointment["id"], "diagnosis": "Flu"},
            headers=account.headers
        )
        assert response.status_code == 403

class TestConcurrentCreation:

    def test_only_one_consultation_wins(self, doctor, db, confirmed_appointment):
        principal = doctor.principal
        data = ConsultationCreate(appointment_id=confirmed_appointment["id"], diagnosis="Flu")
        barrier = threading.Barrier(2)
        outcomes = []

        def attempt():
            session = SessionLocal()
            try:
                barrier.wait()
                ClinicalRecordLinker(session).create_consultation(principal, data)
                outcomes.append("created")
            except ConflictError:
                outcomes.append("conflict")
            finally:
                session.close()

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["conflict", "created"]
        assert db.query(Consultation).filter(
            Consultation.appointment_id == confirmed_appointment["id"]
        ).count() == 1

class TestReadConsultations:

    def test_staff_list(self, client, secretary, consultation):
        response = client.get(BASE, headers=secretary.headers)
        assert response.status_code == 200
        assert [item["id"] for item in response.json()["data"]] == [consultation["id"]]

    def test_patient_cannot_list(self, client, patient, consultation):
        response = client.get(BASE, headers=patient.headers)
        assert response.status_code == 403

    def test_patient_cannot_read_own(self, client, patient, consultation):
        response = client.get(f"{BASE}/{consultation['id']}", headers=patient.headers)
        assert response.status_code == 403

    def test_doctor_reads(self, client, doctor, consultation):
        response = client.get(f"{BASE}/{consultation['id']}", headers=doctor.headers)
        assert response.status_code == 200
        assert response.json()["data"]["diagnosis"] == "Type 2 Diabetes"

    def test_read_missing(self, client, doctor, test_db):
        response = client.get(f"{BASE}/9999", headers=doctor.headers)
        assert response.status_code == 404

class TestUpdateConsultation:

    def test_doctor_completes(self, client, doctor, consultation):
        response = client.put(
            f"{BASE}/{consultation['id']}",
            json={"status": "completed", "notes": "Review in 3 months"},
            headers=doctor.headers
        )
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["notes"] == "Review in 3 months"
        assert data["diagnosis"] == "Type 2 Diabetes"

    def test_secretary_cannot_update(self, client, secretary, consultation):
        response = client.put(
            f"{BASE}/{consultation['id']}", json={"notes": "x"}, headers=secretary.headers
        )
        assert response.status_code == 403

    def test_null_diagnosis(self, client, doctor, consultation):
        response = client.put(
            f"{BASE}/{consultation['id']}", json={"diagnosis": None}, headers=doctor.headers
        )
        assert response.status_code == 400

class TestDeleteConsultation:

    def test_admin_deletes(self, client, admin, consultation):
        response = client.delete(f"{BASE}/{consultation['id']}", headers=admin.headers)
        assert response.status_code == 200
        assert client.get(f"{BASE}/{consultation['id']}", headers=admin.headers).status_code == 404

    def test_doctor_cannot_delete(self, client, doctor, consultation):
        response = client.delete(f"{BASE}/{consultation['id']}", headers=doctor.headers)
        assert response.status_code == 403

    def test_delete_with_prescriptions_conflicts(self, client, admin, doctor, consultation, medication_line):
        client.post(
            "/api/v1/prescriptions",
            json={"consultation_id": consultation["id"], "medications": [medication_line]},
            headers=doctor.headers
        )

        response = client.delete(f"{BASE}/{consultation['id']}", headers=admin.headers)
        assert response.status_code == 409
