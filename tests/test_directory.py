import pytest

from clinic.core.security import UserRole

class TestDoctorDirectory:

    @pytest.fixture
    def cardiologist(self, make_account, db):
        account = make_account(UserRole.DOCTOR, "heart@clinic-example.com", "Carl", "Beat")
        account.user.doctor.specialization = "Cardiology"
        db.commit()
        return account

    def test_patient_lists_doctors(self, client, patient, doctor, cardiologist):
        response = client.get("/api/v1/doctors", headers=patient.headers)
        assert response.status_code == 200

        body = response.json()
        assert body["pagination"]["total"] == 2
        assert [item["last_name"] for item in body["data"]] == ["Beat", "House"]
        assert body["data"][1]["id"] == doctor.profile_id
        assert body["data"][1]["full_name"] == "Dana House"

    def test_search_by_specialization(self, client, patient, doctor, cardiologist):
        response = client.get("/api/v1/doctors", params={"search": "cardio"}, headers=patient.headers)

        data = response.json()["data"]
        assert [item["id"] for item in data] == [cardiologist.profile_id]

    def test_get_doctor(self, client, secretary, doctor):
        response = client.get(f"/api/v1/doctors/{doctor.profile_id}", headers=secretary.headers)
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "doctor@clinic-example.com"

    def test_get_missing_doctor(self, client, patient):
        response = client.get("/api/v1/doctors/9999", headers=patient.headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Doctor not found"

    def test_requires_authentication(self, client, test_db):
        response = client.get("/api/v1/doctors")
        assert response.status_code == 401

class TestCurrentPatient:

    def test_patient_gets_own_record(self, client, patient):
        response = client.get("/api/v1/patients/me", headers=patient.headers)
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["id"] == patient.profile_id
        assert data["user_id"] == patient.user.id
        assert "social_security_number" not in data

    def test_own_id_books_and_lists(self, client, patient, doctor):
        patient_id = client.get("/api/v1/patients/me", headers=patient.headers).json()["data"]["id"]
        client.post(
            "/api/v1/appointments",
            json={"doctor_id": doctor.profile_id, "date_time": "2024-02-01T10:00:00Z"},
            headers=patient.headers
        )

        response = client.get(f"/api/v1/appointments/patient/{patient_id}", headers=patient.headers)
        assert response.status_code == 200
        assert len(response.json()["data"]) == 1

    def test_staff_have_no_patient_record(self, client, doctor):
        response = client.get("/api/v1/patients/me", headers=doctor.headers)
        assert response.status_code == 404
