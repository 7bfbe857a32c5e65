from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ..models.appointment import AppointmentStatus
from .common import to_naive_utc


class AppointmentCreate(BaseModel):
    # Patients may omit it; it then defaults to their own record
    patient_id: Optional[int] = None
    doctor_id: int
    date_time: datetime
    reason: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[AppointmentStatus] = None

    @field_validator("date_time")
    @classmethod
    def normalize_date_time(cls, value):
        return to_naive_utc(value)


class AppointmentUpdate(BaseModel):
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    date_time: Optional[datetime] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[AppointmentStatus] = None

    @field_validator("date_time")
    @classmethod
    def normalize_date_time(cls, value):
        return to_naive_utc(value)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: int
    doctor_name: Optional[str] = None
    date_time: datetime
    reason: Optional[str] = None
    notes: Optional[str] = None
    status: AppointmentStatus

    @classmethod
    def from_record(cls, appointment) -> "AppointmentResponse":
        response = cls.model_validate(appointment)
        if appointment.patient is not None:
            response.patient_name = appointment.patient.full_name
        if appointment.doctor is not None:
            response.doctor_name = appointment.doctor.full_name
        return response
