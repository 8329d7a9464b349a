"""
Diagnostic Model - a submitted test result and its review state.
"""
import enum

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from ..core.security import utcnow
from ..database import Base, generate_uuid
from ..patients.models import Patient


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class DiagnosticResult(str, enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    INCONCLUSIVE = "inconclusive"


class ReviewStatus(str, enum.Enum):
    """
    Review status of a diagnostic.

    Statuses only move forward: PENDING -> REVIEWED -> VERIFIED. VERIFIED may
    also be reached directly from PENDING.
    """
    PENDING = "pending"
    REVIEWED = "reviewed"
    VERIFIED = "verified"

    @property
    def rank(self) -> int:
        return REVIEW_ORDER.index(self)


REVIEW_ORDER = (ReviewStatus.PENDING, ReviewStatus.REVIEWED, ReviewStatus.VERIFIED)


class Diagnostic(Base):
    """
    Diagnostic Model - one test submitted by a field worker

    Fields:
    - subject_id: Registered patient the sample was taken from
    - submitted_by_id: Identity that submitted the test
    - image_locator: Object store reference of the sample image, never inspected
    - result: positive, negative or inconclusive
    - confidence_score: Model confidence 0-100 (optional)
    - parasite_count: Counted parasites (optional)
    - symptoms: Reported symptoms as a JSON list (optional)
    - review_status / reviewed_by_id / reviewed_at / review_notes:
      Written together by a single review transition
    """
    __tablename__ = "diagnostics"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    subject_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    submitted_by_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    image_locator = Column(String, nullable=False)
    result = Column(Enum(DiagnosticResult, values_callable=_enum_values), nullable=False, index=True)
    confidence_score = Column(Integer, nullable=True)
    parasite_count = Column(Integer, nullable=True)
    symptoms = Column(JSON, nullable=True)
    test_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    review_status = Column(Enum(ReviewStatus, values_callable=_enum_values),
                           nullable=False, default=ReviewStatus.PENDING, index=True)
    reviewed_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    patient = relationship(Patient, foreign_keys=[subject_id])
    submitted_by = relationship("User", foreign_keys=[submitted_by_id])
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])

    def __repr__(self):
        return f"<Diagnostic(id={self.id}, result='{self.result}', review_status='{self.review_status}')>"
