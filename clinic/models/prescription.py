from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text, JSON, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class PrescriptionStatus(str, enum.Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    COMPLETED = "completed"

class Prescription(Base):
    __tablename__ = "prescriptions"
    
    id = Column(Integer, primary_key=True, index=True)
    consultation_id = Column(
        Integer,
        ForeignKey("consultations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    
    date_created = Column(DateTime, server_default=func.now())
    # List of {medication_id, medication_name, dosage, frequency, duration, notes}
    medications = Column(JSON, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(SQLEnum(PrescriptionStatus), nullable=False, default=PrescriptionStatus.DRAFT, index=True)
    
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    consultation = relationship("Consultation", back_populates="prescriptions")
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    
    def __repr__(self):
        return f"<Prescription(id={self.id}, consultation_id={self.consultation_id})>"
