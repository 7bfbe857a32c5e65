from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DoctorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    phone_number: Optional[str] = None
    office_address: Optional[str] = None
    consultation_hours: Optional[str] = None


class PatientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    insurance: Optional[str] = None
    allergies: Optional[str] = None
    medical_history: Optional[str] = None
