from ..models import Doctor, Patient, RefreshToken, Secretary, User
from .base import Repository


class UserRepository(Repository[User]):
    model = User
    conflict_message = "Email already registered"


class RefreshTokenRepository(Repository[RefreshToken]):
    model = RefreshToken


class PatientRepository(Repository[Patient]):
    model = Patient
    conflict_message = "Patient with this email already exists"

    def find_by_user_id(self, user_id: int):
        return self.find_one(user_id=user_id)


class DoctorRepository(Repository[Doctor]):
    model = Doctor
    sortable_fields = ("last_name", "specialization", "created_at")
    searchable_fields = ("first_name", "last_name", "email", "specialization")
    conflict_message = "Doctor with this email already exists"


class SecretaryRepository(Repository[Secretary]):
    model = Secretary
    conflict_message = "Secretary with this email already exists"
