"""
Patient Model - anonymised registry entry for a tested person.
"""
import enum

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship

from ..core.security import utcnow
from ..database import Base, generate_uuid


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Patient(Base):
    """
    Patient Model - no names or contact details are stored

    Fields:
    - patient_code: Anonymised identifier written on the sample, unique
    - age / gender: Demographics (optional)
    - district / facility_name: Where the patient was registered (optional)
    - created_by_id: Identity that registered the patient
    """
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    patient_code = Column(String, unique=True, index=True, nullable=False)
    age = Column(Integer, nullable=True)
    gender = Column(Enum(Gender, values_callable=lambda enum_cls: [m.value for m in enum_cls]), nullable=True)
    district = Column(String, nullable=True, index=True)
    facility_name = Column(String, nullable=True)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    created_by = relationship("User", foreign_keys=[created_by_id])

    def __repr__(self):
        return f"<Patient(id={self.id}, patient_code='{self.patient_code}')>"
