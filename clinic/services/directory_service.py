"""Read-only lookups of doctor and patient profiles.

Booking needs a doctor id and a patient id, so callers can list doctors and
a patient can fetch their own record. Profiles are never written here.
"""
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError
from ..models import Doctor, Patient
from ..repositories import DoctorRepository
from ..schemas.common import PageParams
from .identity import IdentityResolver, Principal
from .policy import Action, Entity, policy_enforcer


class DirectoryService:
    def __init__(self, db: Session):
        self.doctors = DoctorRepository(db)
        self.identities = IdentityResolver(db)

    def list_doctors(
        self, principal: Principal, params: PageParams, search: Optional[str] = None
    ) -> Tuple[List[Doctor], int]:
        policy_enforcer.authorize(principal, Entity.DOCTOR, Action.READ)
        field = params.sort_by if params.sort_by in self.doctors.sortable_fields else "last_name"
        items = self.doctors.find(
            sort=(field, params.order), skip=params.skip, limit=params.limit, search=search
        )
        return items, self.doctors.count(search=search)

    def get_doctor(self, principal: Principal, doctor_id: int) -> Doctor:
        policy_enforcer.authorize(principal, Entity.DOCTOR, Action.READ)
        doctor = self.doctors.find_by_id(doctor_id)
        if doctor is None:
            raise NotFoundError("Doctor not found")
        return doctor

    def get_own_patient(self, principal: Principal) -> Patient:
        """Return the caller's Patient record; staff accounts have none."""
        patient = self.identities.resolve_patient(principal.identity)
        policy_enforcer.authorize(
            principal, Entity.PATIENT, Action.READ, resource_owner_id=patient.id
        )
        return patient
