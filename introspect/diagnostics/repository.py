"""
Diagnostic store. Callers own the transaction.
"""
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from .models import Diagnostic, DiagnosticResult, ReviewStatus


def create_diagnostic(db: Session, **fields: Any) -> Diagnostic:
    diagnostic = Diagnostic(**fields)
    db.add(diagnostic)
    db.flush()
    return diagnostic


def find_diagnostic(db: Session, diagnostic_id: str) -> Optional[Diagnostic]:
    return db.query(Diagnostic).filter(Diagnostic.id == diagnostic_id).first()


def list_diagnostics(
    db: Session,
    subject_id: Optional[str] = None,
    result: Optional[DiagnosticResult] = None,
    review_status: Optional[ReviewStatus] = None,
    limit: int = 20,
) -> List[Diagnostic]:
    query = db.query(Diagnostic)
    if subject_id:
        query = query.filter(Diagnostic.subject_id == subject_id)
    if result:
        query = query.filter(Diagnostic.result == result)
    if review_status:
        query = query.filter(Diagnostic.review_status == review_status)
    return query.order_by(Diagnostic.test_date.desc(), Diagnostic.created_at.desc()).limit(limit).all()


def update_review(
    db: Session,
    diagnostic_id: str,
    expected_status: ReviewStatus,
    new_status: ReviewStatus,
    reviewer_id: str,
    notes: Optional[str],
    reviewed_at: datetime,
) -> bool:
    """
    Write a review transition if the stored status is still ``expected_status``.

    All four review fields are written by one statement.

    Returns:
        bool: False if another writer changed the status first
    """
    updated = (
        db.query(Diagnostic)
        .filter(Diagnostic.id == diagnostic_id, Diagnostic.review_status == expected_status)
        .update(
            {
                Diagnostic.review_status: new_status,
                Diagnostic.reviewed_by_id: reviewer_id,
                Diagnostic.reviewed_at: reviewed_at,
                Diagnostic.review_notes: notes,
            },
            synchronize_session=False,
        )
    )
    return updated == 1
