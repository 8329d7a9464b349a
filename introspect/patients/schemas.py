"""
Patient Schemas - Pydantic models for patient registry data.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..core.security import ensure_utc
from .models import Gender


class PatientCreate(BaseModel):
    """
    Patient Registration Schema

    Fields:
    - patient_code: Anonymised identifier, unique across the registry
    - age: Age in years (optional)
    - gender: male, female or other (optional)
    - district: District of residence (optional)
    - facility_name: Registering facility (optional)
    """
    patient_code: str = Field(..., min_length=1, max_length=64, description="Anonymised patient identifier")
    age: Optional[int] = Field(None, ge=0, le=130)
    gender: Optional[Gender] = None
    district: Optional[str] = None
    facility_name: Optional[str] = None

    @field_validator("patient_code")
    @classmethod
    def strip_patient_code(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Patient code is required")
        return value


class PatientUpdate(BaseModel):
    """Editable patient fields. The patient code is fixed once registered."""
    age: Optional[int] = Field(None, ge=0, le=130)
    gender: Optional[Gender] = None
    district: Optional[str] = None
    facility_name: Optional[str] = None


class PatientSummary(BaseModel):
    """Patient fields embedded in a diagnostic."""
    id: str
    patient_code: str
    age: Optional[int] = None
    gender: Optional[Gender] = None
    district: Optional[str] = None

    class Config:
        """Configuration for Pydantic model to enable ORM mode"""
        from_attributes = True


class PatientResponse(PatientSummary):
    """Patient as returned by the API."""
    facility_name: Optional[str] = None
    created_by_id: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)
