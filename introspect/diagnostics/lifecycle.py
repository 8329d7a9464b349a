"""
Diagnostic Lifecycle - submission and the review state machine.

A diagnostic starts as ``pending`` and only moves forward through
``reviewed`` to ``verified``. Review writes are compare-and-set on the status
the reviewer observed, so two concurrent reviewers cannot silently overwrite
each other: the loser gets a conflict and can re-read.
"""
import logging
from typing import List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.events import DiagnosticResultAvailable, EventBus, event_bus
from ..core.permissions import REVIEWER_ROLES, authorize
from ..core.security import TokenClaims, utcnow
from ..exceptions import ConflictException, ResourceNotFoundException, ValidationFailedException
from ..patients import repository as patient_repository
from ..patients.exceptions import PatientNotFoundException
from . import repository
from .models import Diagnostic, DiagnosticResult, ReviewStatus
from .schemas import DiagnosticCreate

# Set up logging
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
REVIEW_TARGETS = (ReviewStatus.REVIEWED, ReviewStatus.VERIFIED)


def submit_diagnostic(db: Session, submitter: TokenClaims, data: DiagnosticCreate, image_locator: str) -> Diagnostic:
    """
    Record a new diagnostic.

    Args:
        db: Database session
        submitter: Claims of the submitting identity
        data: Submitted fields
        image_locator: Object store reference of the uploaded image

    Returns:
        Diagnostic: The stored record, always in pending review status

    Raises:
        ValidationFailedException: If no image locator is given
        PatientNotFoundException: If the subject is not a registered patient
    """
    if not image_locator:
        raise ValidationFailedException("Sample image is required")
    if not patient_repository.find_patient(db, data.subject_id):
        logger.warning(f"Diagnostic submission by {submitter.id} rejected: unknown patient {data.subject_id}")
        raise PatientNotFoundException()

    fields = dict(
        subject_id=data.subject_id,
        submitted_by_id=submitter.id,
        image_locator=image_locator,
        result=data.result,
        confidence_score=data.confidence_score,
        parasite_count=data.parasite_count,
        symptoms=data.symptoms,
        review_status=ReviewStatus.PENDING,
    )
    if data.test_date:
        fields["test_date"] = data.test_date

    try:
        diagnostic = repository.create_diagnostic(db, **fields)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(diagnostic)
    logger.info(f"Diagnostic {diagnostic.id} submitted by {submitter.id}: {diagnostic.result.value}")
    return diagnostic


def get_diagnostic(db: Session, diagnostic_id: str) -> Diagnostic:
    """
    Get a diagnostic by ID.

    Raises:
        ResourceNotFoundException: If the diagnostic does not exist
    """
    diagnostic = repository.find_diagnostic(db, diagnostic_id)
    if not diagnostic:
        raise ResourceNotFoundException("Diagnostic not found")
    return diagnostic


def list_diagnostics(
    db: Session,
    subject_id: Optional[str] = None,
    result: Optional[DiagnosticResult] = None,
    review_status: Optional[ReviewStatus] = None,
    limit: Optional[int] = None,
) -> List[Diagnostic]:
    """Newest diagnostics first, optionally filtered."""
    limit = min(limit or 20, MAX_PAGE_SIZE)
    return repository.list_diagnostics(db, subject_id=subject_id, result=result, review_status=review_status, limit=limit)


async def review_diagnostic(
    db: Session,
    diagnostic_id: str,
    reviewer: TokenClaims,
    new_status: ReviewStatus,
    notes: Optional[str] = None,
    expected_status: Optional[ReviewStatus] = None,
    background_tasks: Optional[BackgroundTasks] = None,
    events: EventBus = event_bus,
) -> Diagnostic:
    """
    Apply a review transition.

    Args:
        db: Database session
        diagnostic_id: Diagnostic to review
        reviewer: Claims of the reviewing identity
        new_status: Target status, reviewed or verified
        notes: Review notes
        expected_status: Status the reviewer based the decision on (optional)
        background_tasks: When given, the result event is published after the response is sent
        events: Bus the result event is published on

    Returns:
        Diagnostic: The updated record

    Raises:
        RoleDeniedException: If the reviewer is not an admin or super admin
        ValidationFailedException: If the target status is not a review status
        ResourceNotFoundException: If the diagnostic does not exist
        ConflictException: If the transition does not move forward or the stored status changed
    """
    authorize(reviewer, REVIEWER_ROLES)

    if new_status not in REVIEW_TARGETS:
        raise ValidationFailedException("Review status must be 'reviewed' or 'verified'")

    diagnostic = get_diagnostic(db, diagnostic_id)
    current = ReviewStatus(diagnostic.review_status)

    if expected_status is not None and expected_status != current:
        logger.warning(f"Review of {diagnostic_id} rejected: expected {expected_status.value}, found {current.value}")
        raise ConflictException(f"Diagnostic review status is '{current.value}', not '{expected_status.value}'")

    if new_status.rank <= current.rank:
        logger.warning(f"Review of {diagnostic_id} rejected: {current.value} -> {new_status.value} does not move forward")
        raise ConflictException(f"Diagnostic review status is already '{current.value}', cannot move to '{new_status.value}'")

    try:
        applied = repository.update_review(
            db,
            diagnostic_id,
            expected_status=current,
            new_status=new_status,
            reviewer_id=reviewer.id,
            notes=notes,
            reviewed_at=utcnow(),
        )
        if not applied:
            db.rollback()
            logger.warning(f"Review of {diagnostic_id} lost a concurrent update from '{current.value}'")
            raise ConflictException("Diagnostic was reviewed concurrently; reload and retry")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(diagnostic)
    logger.info(f"Diagnostic {diagnostic_id} reviewed by {reviewer.id}: {current.value} -> {new_status.value}")

    event = DiagnosticResultAvailable(
        diagnostic_id=diagnostic.id,
        subject_id=diagnostic.subject_id,
        submitted_by_id=diagnostic.submitted_by_id,
        result=DiagnosticResult(diagnostic.result).value,
        review_status=new_status.value,
        reviewed_by_id=reviewer.id,
    )
    if background_tasks is not None:
        background_tasks.add_task(events.publish, event)
    else:
        await events.publish(event)

    return diagnostic
