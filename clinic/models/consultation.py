from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class ConsultationStatus(str, enum.Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class Consultation(Base):
    __tablename__ = "consultations"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # One consultation per appointment, enforced by the unique index
    appointment_id = Column(
        Integer,
        ForeignKey("appointments.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    
    date_time = Column(DateTime, nullable=False, index=True)
    diagnosis = Column(Text, nullable=False)
    treatment = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(SQLEnum(ConsultationStatus), nullable=False, default=ConsultationStatus.IN_PROGRESS)
    
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    appointment = relationship("Appointment", back_populates="consultation")
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    prescriptions = relationship("Prescription", back_populates="consultation", passive_deletes="all")
    
    def __repr__(self):
        return f"<Consultation(id={self.id}, appointment_id={self.appointment_id})>"
