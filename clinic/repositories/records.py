from ..models import Appointment, Consultation, Prescription
from .base import Repository


class AppointmentRepository(Repository[Appointment]):
    model = Appointment
    sortable_fields = ("date_time", "status", "created_at")


class ConsultationRepository(Repository[Consultation]):
    model = Consultation
    sortable_fields = ("date_time", "status", "created_at")
    conflict_message = "A consultation already exists for this appointment"


class PrescriptionRepository(Repository[Prescription]):
    model = Prescription
    sortable_fields = ("date_created", "status", "created_at")
