import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import pytest

# Must be set before the clinic package reads its settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

from fastapi.testclient import TestClient

from clinic.main import app
from clinic.core.database import Base, SessionLocal, engine, get_redis
from clinic.core.security import Identity, UserRole, create_token_pair, get_password_hash
from clinic.models import Doctor, Patient, Secretary, User
from clinic.services.identity import Principal

TEST_PASSWORD = "TestPassword123"
# bcrypt is slow; hash once for every seeded account
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

PROFILE_MODELS = {
    UserRole.PATIENT: Patient,
    UserRole.DOCTOR: Doctor,
    UserRole.SECRETARY: Secretary,
}


class FakeRedis:
    """In-memory stand-in for the rate limiter's Redis calls."""

    def __init__(self):
        self.data = {}

    def setex(self, key, time, value):
        self.data[key] = str(value)
        return True

    def get(self, key):
        return self.data.get(key)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])


@dataclass
class Account:
    user: User
    profile_id: Optional[int]
    token: str

    @property
    def headers(self):
        return {"Authorization": f"Bearer {self.token}"}

    @property
    def principal(self) -> Principal:
        now = datetime.now(timezone.utc)
        identity = Identity(
            subject_id=self.user.id, role=self.user.role, issued_at=now, expires_at=now
        )
        patient_id = self.profile_id if self.user.role == UserRole.PATIENT else None
        return Principal(identity=identity, patient_id=patient_id)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_db, fake_redis):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_account(db):
    def _make(role: UserRole, email: str, first_name: str = "Test", last_name: str = "User") -> Account:
        user = User(
            email=email,
            password_hash=TEST_PASSWORD_HASH,
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        profile_id = None
        model = PROFILE_MODELS.get(role)
        if model is not None:
            profile = model(user_id=user.id, email=email, first_name=first_name, last_name=last_name)
            db.add(profile)
            db.commit()
            profile_id = profile.id

        token = create_token_pair(user.id, user.email, user.role).access_token
        return Account(user=user, profile_id=profile_id, token=token)

    return _make


@pytest.fixture
def admin(make_account):
    return make_account(UserRole.ADMIN, "admin@clinic-example.com", "Ada", "Admin")


@pytest.fixture
def secretary(make_account):
    return make_account(UserRole.SECRETARY, "secretary@clinic-example.com", "Sam", "Desk")


@pytest.fixture
def doctor(make_account):
    return make_account(UserRole.DOCTOR, "doctor@clinic-example.com", "Dana", "House")


@pytest.fixture
def patient(make_account):
    return make_account(UserRole.PATIENT, "patient@clinic-example.com", "Paul", "Patient")


@pytest.fixture
def other_patient(make_account):
    return make_account(UserRole.PATIENT, "other@clinic-example.com", "Olga", "Other")


@pytest.fixture
def appointment_payload(patient, doctor):
    return {
        "patient_id": patient.profile_id,
        "doctor_id": doctor.profile_id,
        "date_time": "2024-01-20T14:00:00Z",
        "reason": "Follow-up on blood sugar",
    }


@pytest.fixture
def confirmed_appointment(client, secretary, appointment_payload):
    response = client.post(
        "/api/v1/appointments",
        json={**appointment_payload, "status": "confirmed"},
        headers=secretary.headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def consultation(client, doctor, confirmed_appointment):
    response = client.post(
        "/api/v1/consultations",
        json={
            "appointment_id": confirmed_appointment["id"],
            "diagnosis": "Type 2 Diabetes",
            "treatment": "Metformin and diet plan",
        },
        headers=doctor.headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def medication_line():
    return {
        "medication_id": "MED-001",
        "medication_name": "Metformin",
        "dosage": "500mg",
        "frequency": "Twice daily",
        "duration": "3 months",
    }
