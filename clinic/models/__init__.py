from .user import User, RefreshToken
from .patient import Patient
from .doctor import Doctor
from .secretary import Secretary
from .appointment import Appointment, AppointmentStatus
from .consultation import Consultation, ConsultationStatus
from .prescription import Prescription, PrescriptionStatus

__all__ = [
    "User",
    "RefreshToken",
    "Patient",
    "Doctor",
    "Secretary",
    "Appointment",
    "AppointmentStatus",
    "Consultation",
    "ConsultationStatus",
    "Prescription",
    "PrescriptionStatus",
]
