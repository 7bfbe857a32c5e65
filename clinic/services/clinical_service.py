"""Consultations and prescriptions linked to appointments.

Structure enforced here:

* one Consultation per Appointment (unique ``appointment_id``),
* any number of Prescriptions per Consultation,
* every Prescription carries at least one medication line with a dosage
  and a frequency.

The one-consultation rule is left to the database unique index. The insert
is attempted directly and an integrity violation becomes ConflictError, so
two concurrent requests for the same appointment cannot both succeed.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Appointment, Consultation, ConsultationStatus, Prescription, PrescriptionStatus
from ..repositories import AppointmentRepository, ConsultationRepository, PrescriptionRepository
from ..schemas.common import PageParams
from ..schemas.consultation import ConsultationCreate, ConsultationUpdate
from ..schemas.prescription import PrescriptionCreate, PrescriptionUpdate
from .identity import Principal
from .policy import Action, Entity, policy_enforcer

logger = logging.getLogger(__name__)

REQUIRED_MEDICATION_FIELDS = ("dosage", "frequency")


def validate_medications(lines: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    """Check a medication list and return it as plain dicts.

    Raises ValidationError naming the first offending line (1-based).
    """
    if not lines:
        raise ValidationError("At least one medication is required")

    validated = []
    for index, line in enumerate(lines, start=1):
        entry = dict(line) if isinstance(line, dict) else line.model_dump()
        for field in REQUIRED_MEDICATION_FIELDS:
            value = entry.get(field)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"Medication {index}: {field} is required")
        validated.append({
            key: value.strip() if isinstance(value, str) else value
            for key, value in entry.items()
        })
    return validated


def _check_participants(data, parent, parent_name: str) -> Tuple[int, int]:
    """Default patient/doctor to the parent record's and reject mismatches."""
    for field in ("patient_id", "doctor_id"):
        supplied = getattr(data, field)
        if supplied is not None and supplied != getattr(parent, field):
            raise ValidationError(f"{field} does not match the referenced {parent_name}")
    return parent.patient_id, parent.doctor_id


def _reject_nulls(patch: Dict[str, Any], fields: Iterable[str]) -> None:
    for field in fields:
        if field in patch and patch[field] is None:
            raise ValidationError(f"{field} cannot be null")


class ClinicalRecordLinker:
    def __init__(self, db: Session):
        self.appointments = AppointmentRepository(db)
        self.consultations = ConsultationRepository(db)
        self.prescriptions = PrescriptionRepository(db)

    # Resolvers

    def resolve_appointment_or_fail(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    def resolve_consultation_or_fail(self, consultation_id: int) -> Consultation:
        consultation = self.consultations.find_by_id(consultation_id)
        if consultation is None:
            raise NotFoundError("Consultation not found")
        return consultation

    def resolve_prescription_or_fail(self, prescription_id: int) -> Prescription:
        prescription = self.prescriptions.find_by_id(prescription_id)
        if prescription is None:
            raise NotFoundError("Prescription not found")
        return prescription

    def _list(self, repository, entity: Entity, principal: Principal, params: PageParams, status, default_sort):
        decision = policy_enforcer.authorize(principal, entity, Action.READ)
        filters = {}
        if decision.owner_scope is not None:
            filters["patient_id"] = decision.owner_scope
        if status is not None:
            filters["status"] = status
        field = params.sort_by if params.sort_by in repository.sortable_fields else default_sort
        order = params.order if params.sort_by else "desc"
        items = repository.find(filters, sort=(field, order), skip=params.skip, limit=params.limit)
        return items, repository.count(filters)

    def _load_authorized(self, resolver, entity: Entity, action: Action, principal: Principal, record_id: int):
        policy_enforcer.authorize(principal, entity, action)
        record = resolver(record_id)
        policy_enforcer.authorize(principal, entity, action, resource_owner_id=record.patient_id)
        return record

    # Consultations

    def list_consultations(
        self, principal: Principal, params: PageParams, status: Optional[ConsultationStatus] = None
    ) -> Tuple[List[Consultation], int]:
        return self._list(self.consultations, Entity.CONSULTATION, principal, params, status, "date_time")

    def get_consultation(self, principal: Principal, consultation_id: int) -> Consultation:
        return self._load_authorized(
            self.resolve_consultation_or_fail, Entity.CONSULTATION, Action.READ, principal, consultation_id
        )

    def create_consultation(self, principal: Principal, data: ConsultationCreate) -> Consultation:
        policy_enforcer.authorize(principal, Entity.CONSULTATION, Action.CREATE)
        appointment = self.resolve_appointment_or_fail(data.appointment_id)
        policy_enforcer.authorize(
            principal, Entity.CONSULTATION, Action.CREATE, resource_owner_id=appointment.patient_id
        )
        patient_id, doctor_id = _check_participants(data, appointment, "appointment")

        consultation = self.consultations.create({
            "appointment_id": appointment.id,
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "date_time": data.date_time or appointment.date_time,
            "diagnosis": data.diagnosis,
            "treatment": data.treatment,
            "notes": data.notes,
            "status": data.status,
        })
        logger.info(
            f"Consultation {consultation.id} created for appointment {appointment.id} "
            f"by user {principal.subject_id}"
        )
        return consultation

    def update_consultation(
        self, principal: Principal, consultation_id: int, data: ConsultationUpdate
    ) -> Consultation:
        consultation = self._load_authorized(
            self.resolve_consultation_or_fail, Entity.CONSULTATION, Action.UPDATE, principal, consultation_id
        )
        patch = data.model_dump(exclude_unset=True)
        _reject_nulls(patch, ("date_time", "diagnosis", "status"))

        updated = self.consultations.update_by_id(consultation.id, patch)
        logger.info(f"Consultation {updated.id} updated by user {principal.subject_id}")
        return updated

    def delete_consultation(self, principal: Principal, consultation_id: int) -> None:
        consultation = self._load_authorized(
            self.resolve_consultation_or_fail, Entity.CONSULTATION, Action.DELETE, principal, consultation_id
        )
        message = "Consultation has prescriptions and cannot be deleted"
        if self.prescriptions.find_one(consultation_id=consultation.id) is not None:
            raise ConflictError(message)
        self.consultations.delete_by_id(consultation.id, conflict_message=message)
        logger.info(f"Consultation {consultation_id} deleted by user {principal.subject_id}")

    # Prescriptions

    def list_prescriptions(
        self, principal: Principal, params: PageParams, status: Optional[PrescriptionStatus] = None
    ) -> Tuple[List[Prescription], int]:
        return self._list(self.prescriptions, Entity.PRESCRIPTION, principal, params, status, "date_created")

    def get_prescription(self, principal: Principal, prescription_id: int) -> Prescription:
        return self._load_authorized(
            self.resolve_prescription_or_fail, Entity.PRESCRIPTION, Action.READ, principal, prescription_id
        )

    def create_prescription(self, principal: Principal, data: PrescriptionCreate) -> Prescription:
        policy_enforcer.authorize(principal, Entity.PRESCRIPTION, Action.CREATE)
        consultation = self.resolve_consultation_or_fail(data.consultation_id)
        policy_enforcer.authorize(
            principal, Entity.PRESCRIPTION, Action.CREATE, resource_owner_id=consultation.patient_id
        )
        medications = validate_medications(data.medications)
        patient_id, doctor_id = _check_participants(data, consultation, "consultation")

        prescription = self.prescriptions.create({
            "consultation_id": consultation.id,
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "medications": medications,
            "notes": data.notes,
            "status": data.status,
        })
        logger.info(
            f"Prescription {prescription.id} created for consultation {consultation.id} "
            f"with {len(medications)} medication(s) by user {principal.subject_id}"
        )
        return prescription

    def update_prescription(
        self, principal: Principal, prescription_id: int, data: PrescriptionUpdate
    ) -> Prescription:
        prescription = self._load_authorized(
            self.resolve_prescription_or_fail, Entity.PRESCRIPTION, Action.UPDATE, principal, prescription_id
        )
        patch = data.model_dump(exclude_unset=True)
        _reject_nulls(patch, ("status",))
        if "medications" in patch:
            # Replaced wholesale
            patch["medications"] = validate_medications(data.medications)

        updated = self.prescriptions.update_by_id(prescription.id, patch)
        logger.info(f"Prescription {updated.id} updated by user {principal.subject_id}")
        return updated

    def delete_prescription(self, principal: Principal, prescription_id: int) -> None:
        prescription = self._load_authorized(
            self.resolve_prescription_or_fail, Entity.PRESCRIPTION, Action.DELETE, principal, prescription_id
        )
        self.prescriptions.delete_by_id(prescription.id)
        logger.info(f"Prescription {prescription_id} deleted by user {principal.subject_id}")
