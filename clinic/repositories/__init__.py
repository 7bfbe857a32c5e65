from .base import Repository
from .profiles import (
    DoctorRepository,
    PatientRepository,
    RefreshTokenRepository,
    SecretaryRepository,
    UserRepository,
)
from .records import AppointmentRepository, ConsultationRepository, PrescriptionRepository

__all__ = [
    "Repository",
    "UserRepository",
    "RefreshTokenRepository",
    "PatientRepository",
    "DoctorRepository",
    "SecretaryRepository",
    "AppointmentRepository",
    "ConsultationRepository",
    "PrescriptionRepository",
]
