from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..models.prescription import PrescriptionStatus


class MedicationLine(BaseModel):
    # dosage/frequency are checked by the clinical record linker so the
    # error can name the offending line
    medication_id: Optional[Union[int, str]] = None
    medication_name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    notes: Optional[str] = None


class PrescriptionCreate(BaseModel):
    consultation_id: int
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    medications: Optional[List[MedicationLine]] = None
    notes: Optional[str] = None
    status: PrescriptionStatus = PrescriptionStatus.DRAFT


class PrescriptionUpdate(BaseModel):
    medications: Optional[List[MedicationLine]] = None
    notes: Optional[str] = None
    status: Optional[PrescriptionStatus] = None


class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    consultation_id: int
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: int
    doctor_name: Optional[str] = None
    date_created: Optional[datetime] = None
    medications: List[MedicationLine]
    notes: Optional[str] = None
    status: PrescriptionStatus

    @classmethod
    def from_record(cls, prescription) -> "PrescriptionResponse":
        response = cls.model_validate(prescription)
        if prescription.patient is not None:
            response.patient_name = prescription.patient.full_name
        if prescription.doctor is not None:
            response.doctor_name = prescription.doctor.full_name
        return response
