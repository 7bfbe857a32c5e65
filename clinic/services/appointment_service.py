"""Appointment lifecycle.

    pending ──> confirmed ──> completed
       │            │
       └────────────┴──> cancelled

``completed`` and ``cancelled`` are terminal. Appointments booked by a
patient always start as ``pending``; staff may pick any initial state.
"""
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.security import UserRole
from ..models import Appointment, AppointmentStatus
from ..repositories import (
    AppointmentRepository,
    ConsultationRepository,
    DoctorRepository,
    PatientRepository,
)
from ..schemas.appointment import AppointmentCreate, AppointmentUpdate
from ..schemas.common import PageParams
from .identity import Principal
from .policy import Action, Entity, policy_enforcer

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[AppointmentStatus, frozenset] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

NON_NULLABLE_FIELDS = ("patient_id", "doctor_id", "date_time", "status")


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target == current or target in ALLOWED_TRANSITIONS[current]


class AppointmentService:
    def __init__(self, db: Session):
        self.appointments = AppointmentRepository(db)
        self.consultations = ConsultationRepository(db)
        self.patients = PatientRepository(db)
        self.doctors = DoctorRepository(db)

    def _resolve_or_fail(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    def _ensure_references(self, patient_id: Optional[int], doctor_id: Optional[int]) -> None:
        if patient_id is not None and self.patients.find_by_id(patient_id) is None:
            raise NotFoundError("Patient not found")
        if doctor_id is not None and self.doctors.find_by_id(doctor_id) is None:
            raise NotFoundError("Doctor not found")

    def _sort(self, params: PageParams, default_order: str = None) -> Tuple[str, str]:
        field = params.sort_by if params.sort_by in self.appointments.sortable_fields else "date_time"
        return field, default_order or params.order

    def _page(self, filters, params: PageParams, sort) -> Tuple[List[Appointment], int]:
        items = self.appointments.find(filters, sort=sort, skip=params.skip, limit=params.limit)
        return items, self.appointments.count(filters)

    def list_appointments(
        self,
        principal: Principal,
        params: PageParams,
        status: Optional[AppointmentStatus] = None,
    ) -> Tuple[List[Appointment], int]:
        decision = policy_enforcer.authorize(principal, Entity.APPOINTMENT, Action.READ)
        filters = {}
        if decision.owner_scope is not None:
            filters["patient_id"] = decision.owner_scope
        if status is not None:
            filters["status"] = status
        return self._page(filters, params, self._sort(params))

    def list_for_doctor(
        self, principal: Principal, doctor_id: int, params: PageParams
    ) -> Tuple[List[Appointment], int]:
        decision = policy_enforcer.authorize(principal, Entity.APPOINTMENT, Action.READ)
        self._ensure_references(None, doctor_id)
        filters = {"doctor_id": doctor_id}
        if decision.owner_scope is not None:
            filters["patient_id"] = decision.owner_scope
        return self._page(filters, params, ("date_time", "asc"))

    def list_for_patient(
        self, principal: Principal, patient_id: int, params: PageParams
    ) -> Tuple[List[Appointment], int]:
        policy_enforcer.authorize(
            principal, Entity.APPOINTMENT, Action.READ, resource_owner_id=patient_id
        )
        self._ensure_references(patient_id, None)
        return self._page({"patient_id": patient_id}, params, ("date_time", "desc"))

    def get_appointment(self, principal: Principal, appointment_id: int) -> Appointment:
        policy_enforcer.authorize(principal, Entity.APPOINTMENT, Action.READ)
        appointment = self._resolve_or_fail(appointment_id)
        policy_enforcer.authorize(
            principal, Entity.APPOINTMENT, Action.READ, resource_owner_id=appointment.patient_id
        )
        return appointment

    def create_appointment(self, principal: Principal, data: AppointmentCreate) -> Appointment:
        patient_id = data.patient_id
        if patient_id is None and principal.role == UserRole.PATIENT:
            patient_id = principal.patient_id
        if patient_id is None:
            raise ValidationError("patient_id is required")

        policy_enforcer.authorize(
            principal, Entity.APPOINTMENT, Action.CREATE, resource_owner_id=patient_id
        )
        self._ensure_references(patient_id, data.doctor_id)

        if principal.role == UserRole.PATIENT:
            status = AppointmentStatus.PENDING
        else:
            status = data.status or AppointmentStatus.PENDING

        appointment = self.appointments.create({
            "patient_id": patient_id,
            "doctor_id": data.doctor_id,
            "date_time": data.date_time,
            "reason": data.reason,
            "notes": data.notes,
            "status": status,
        })
        logger.info(
            f"Appointment {appointment.id} created by user {principal.subject_id} "
            f"with status {status.value}"
        )
        return appointment

    def update_appointment(
        self, principal: Principal, appointment_id: int, data: AppointmentUpdate
    ) -> Appointment:
        policy_enforcer.authorize(principal, Entity.APPOINTMENT, Action.UPDATE)
        appointment = self._resolve_or_fail(appointment_id)
        policy_enforcer.authorize(
            principal, Entity.APPOINTMENT, Action.UPDATE, resource_owner_id=appointment.patient_id
        )

        patch = data.model_dump(exclude_unset=True)
        for field in NON_NULLABLE_FIELDS:
            if field in patch and patch[field] is None:
                raise ValidationError(f"{field} cannot be null")

        new_patient = patch.get("patient_id", appointment.patient_id)
        new_doctor = patch.get("doctor_id", appointment.doctor_id)
        if (new_patient, new_doctor) != (appointment.patient_id, appointment.doctor_id):
            if self.consultations.find_one(appointment_id=appointment.id) is not None:
                raise ConflictError(
                    "Appointment already has a consultation; patient and doctor cannot be changed"
                )
            self._ensure_references(
                new_patient if new_patient != appointment.patient_id else None,
                new_doctor if new_doctor != appointment.doctor_id else None,
            )

        target = patch.get("status")
        if target is not None and not can_transition(appointment.status, target):
            raise ValidationError(
                f"Cannot change appointment status from '{appointment.status.value}' "
                f"to '{target.value}'"
            )

        updated = self.appointments.update_by_id(appointment.id, patch)
        logger.info(f"Appointment {updated.id} updated by user {principal.subject_id}")
        return updated

    def delete_appointment(self, principal: Principal, appointment_id: int) -> None:
        policy_enforcer.authorize(principal, Entity.APPOINTMENT, Action.DELETE)
        appointment = self._resolve_or_fail(appointment_id)
        policy_enforcer.authorize(
            principal, Entity.APPOINTMENT, Action.DELETE, resource_owner_id=appointment.patient_id
        )

        message = "Appointment has a consultation and cannot be deleted"
        if self.consultations.find_one(appointment_id=appointment.id) is not None:
            raise ConflictError(message)
        # The RESTRICT foreign key still catches a consultation created meanwhile
        self.appointments.delete_by_id(appointment.id, conflict_message=message)
        logger.info(f"Appointment {appointment_id} deleted by user {principal.subject_id}")
