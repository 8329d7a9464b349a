"""
Diagnostic routes - submission, history and review.
"""
import json
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..auth.dependencies import get_active_claims, require_roles
from ..core.permissions import REVIEWER_ROLES
from ..core.security import TokenClaims
from ..core.storage import upload_diagnostic_image
from ..database import get_db
from ..exceptions import ValidationFailedException, success_body
from ..patients import service as patient_service
from . import lifecycle
from .models import Diagnostic, DiagnosticResult, ReviewStatus
from .schemas import DiagnosticCreate, DiagnosticDetailResponse, DiagnosticResponse, ReviewRequest

# Set up logging
logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_IMAGE_BYTES = 10 * 1024 * 1024

router = APIRouter(prefix="/api/diagnostics", tags=["Diagnostics"])


def _diagnostic_data(diagnostic: Diagnostic):
    return DiagnosticResponse.model_validate(diagnostic).model_dump(mode="json")


def _parse_symptoms(raw: Optional[str]) -> Optional[List[str]]:
    """Symptoms arrive as a JSON array, or as a comma separated list from simple forms."""
    if raw is None or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return [part.strip() for part in raw.split(",") if part.strip()]
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise ValidationFailedException("Symptoms must be a list of strings")
    return parsed


@router.post("/submit", status_code=status.HTTP_201_CREATED, summary="Submit Diagnostic")
async def submit_diagnostic_route(
    subject_id: str = Form(...),
    result: DiagnosticResult = Form(...),
    confidence_score: Optional[int] = Form(None),
    parasite_count: Optional[int] = Form(None),
    symptoms: Optional[str] = Form(None),
    test_date: Optional[datetime] = Form(None),
    image: UploadFile = File(...),
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    """
    Submit a diagnostic with its sample image.

    The record always starts in pending review status.
    """
    try:
        data = DiagnosticCreate(
            subject_id=subject_id,
            result=result,
            confidence_score=confidence_score,
            parasite_count=parasite_count,
            symptoms=_parse_symptoms(symptoms),
            test_date=test_date,
        )
    except ValidationError as e:
        raise ValidationFailedException(str(e.errors()[0].get("msg", "Invalid diagnostic data")))

    if image.content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationFailedException("Invalid image type. Only jpg, png, webp allowed.")
    contents = await image.read()
    if not contents:
        raise ValidationFailedException("Sample image is required")
    if len(contents) > MAX_IMAGE_BYTES:
        raise ValidationFailedException("Image too large. Max 10MB allowed.")

    # Unknown patients are rejected before anything is uploaded
    patient_service.get_patient(db, data.subject_id)

    image_locator = upload_diagnostic_image(contents, image.filename, claims.id)
    diagnostic = lifecycle.submit_diagnostic(db, claims, data, image_locator)
    return success_body(_diagnostic_data(diagnostic))


@router.get("/history", summary="List Diagnostics")
async def diagnostic_history_route(
    subject_id: Optional[str] = Query(None),
    result: Optional[DiagnosticResult] = Query(None),
    review_status: Optional[ReviewStatus] = Query(None),
    limit: int = Query(20, ge=1, le=lifecycle.MAX_PAGE_SIZE),
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    diagnostics = lifecycle.list_diagnostics(
        db, subject_id=subject_id, result=result, review_status=review_status, limit=limit
    )
    return success_body([_diagnostic_data(diagnostic) for diagnostic in diagnostics])


@router.get("/{diagnostic_id}", summary="Get Diagnostic")
async def get_diagnostic_route(
    diagnostic_id: str,
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    """Get a diagnostic with a summary of its patient."""
    diagnostic = lifecycle.get_diagnostic(db, diagnostic_id)
    return success_body(DiagnosticDetailResponse.model_validate(diagnostic).model_dump(mode="json"))


@router.put("/{diagnostic_id}/review", summary="Review Diagnostic")
async def review_diagnostic_route(
    diagnostic_id: str,
    review: ReviewRequest,
    background_tasks: BackgroundTasks,
    claims: TokenClaims = Depends(require_roles(REVIEWER_ROLES)),
    db: Session = Depends(get_db),
):
    """
    Move a diagnostic forward to reviewed or verified.

    Send ``expected_status`` to have the change rejected with a conflict if
    someone else reviewed the record in the meantime.
    """
    diagnostic = await lifecycle.review_diagnostic(
        db,
        diagnostic_id,
        claims,
        review.review_status,
        notes=review.review_notes,
        expected_status=review.expected_status,
        background_tasks=background_tasks,
    )
    return success_body(_diagnostic_data(diagnostic))
