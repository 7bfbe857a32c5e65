from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.consultation import ConsultationStatus
from .common import to_naive_utc


class ConsultationCreate(BaseModel):
    appointment_id: int
    # Default to the appointment's participants
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    date_time: Optional[datetime] = None
    diagnosis: str = Field(..., min_length=1)
    treatment: Optional[str] = None
    notes: Optional[str] = None
    status: ConsultationStatus = ConsultationStatus.IN_PROGRESS

    @field_validator("date_time")
    @classmethod
    def normalize_date_time(cls, value):
        return to_naive_utc(value)


class ConsultationUpdate(BaseModel):
    date_time: Optional[datetime] = None
    diagnosis: Optional[str] = Field(None, min_length=1)
    treatment: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[ConsultationStatus] = None

    @field_validator("date_time")
    @classmethod
    def normalize_date_time(cls, value):
        return to_naive_utc(value)


class ConsultationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: int
    doctor_name: Optional[str] = None
    date_time: datetime
    diagnosis: str
    treatment: Optional[str] = None
    notes: Optional[str] = None
    status: ConsultationStatus

    @classmethod
    def from_record(cls, consultation) -> "ConsultationResponse":
        response = cls.model_validate(consultation)
        if consultation.patient is not None:
            response.patient_name = consultation.patient.full_name
        if consultation.doctor is not None:
            response.doctor_name = consultation.doctor.full_name
        return response
