"""
Diagnostic Schemas - Pydantic models for diagnostic submission and review.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.security import ensure_utc
from ..patients.schemas import PatientSummary
from .models import DiagnosticResult, ReviewStatus


class DiagnosticCreate(BaseModel):
    """
    Diagnostic Submission Schema

    The review status is never accepted from the submitter; new records always start as pending.
    """
    subject_id: str = Field(..., min_length=1, description="Id of the registered patient")
    result: DiagnosticResult
    confidence_score: Optional[int] = Field(None, ge=0, le=100, description="Model confidence 0-100")
    parasite_count: Optional[int] = Field(None, ge=0)
    symptoms: Optional[List[str]] = None
    test_date: Optional[datetime] = None


class ReviewRequest(BaseModel):
    """
    Review Transition Schema

    Fields:
    - review_status: Target status, reviewed or verified
    - review_notes: Reviewer notes (optional)
    - expected_status: Status the reviewer last saw; a mismatch is reported as a conflict (optional)
    """
    review_status: ReviewStatus
    review_notes: Optional[str] = None
    expected_status: Optional[ReviewStatus] = None


class DiagnosticResponse(BaseModel):
    """Diagnostic as returned by the API. Timestamps are always UTC with an offset."""
    id: str
    subject_id: str
    submitted_by_id: str
    image_locator: str
    result: DiagnosticResult
    confidence_score: Optional[int] = None
    parasite_count: Optional[int] = None
    symptoms: Optional[List[str]] = None
    test_date: datetime
    review_status: ReviewStatus
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime

    class Config:
        """Configuration for Pydantic model to enable ORM mode"""
        from_attributes = True

    @field_validator("test_date", "reviewed_at", "created_at")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class DiagnosticDetailResponse(DiagnosticResponse):
    """Single diagnostic with the patient it was recorded against."""
    patient: Optional[PatientSummary] = None
