from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import AuthenticationError, NotFoundError
from ..core.security import Identity, UserRole
from ..models import Patient
from ..repositories import PatientRepository, UserRepository


@dataclass(frozen=True)
class Principal:
    """An Identity plus the profile data policy checks need."""
    identity: Identity
    patient_id: Optional[int] = None

    @property
    def role(self) -> UserRole:
        return self.identity.role

    @property
    def subject_id(self) -> int:
        return self.identity.subject_id


class IdentityResolver:
    def __init__(self, db: Session):
        self.users = UserRepository(db)
        self.patients = PatientRepository(db)

    def resolve_patient(self, identity: Identity) -> Patient:
        """Return the Patient record owned by a patient identity."""
        patient = self.patients.find_by_user_id(identity.subject_id)
        if patient is None:
            raise NotFoundError("Patient profile not found for this account")
        return patient

    def resolve_principal(self, identity: Identity) -> Principal:
        user = self.users.find_by_id(identity.subject_id)
        if user is None:
            raise AuthenticationError("User not found")
        if not user.is_active:
            raise AuthenticationError("User account is deactivated")
        if user.role != identity.role:
            # Role changed since the token was issued
            raise AuthenticationError("Token no longer matches the account role")

        if identity.role == UserRole.PATIENT:
            return Principal(identity=identity, patient_id=self.resolve_patient(identity).id)
        return Principal(identity=identity)
