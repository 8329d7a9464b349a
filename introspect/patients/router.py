"""
Patient registry routes.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.dependencies import get_active_claims
from ..core.security import TokenClaims
from ..database import get_db
from ..diagnostics import lifecycle
from ..diagnostics.schemas import DiagnosticResponse
from ..exceptions import success_body
from . import service
from .models import Patient
from .schemas import PatientCreate, PatientResponse, PatientUpdate

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["Patients"])


def _patient_data(patient: Patient):
    return PatientResponse.model_validate(patient).model_dump(mode="json")


@router.post("", status_code=status.HTTP_201_CREATED, summary="Register Patient")
async def register_patient_route(
    patient_data: PatientCreate,
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    patient = service.register_patient(db, patient_data, claims)
    return success_body(_patient_data(patient))


@router.get("", summary="List Patients")
async def list_patients_route(
    district: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=service.MAX_PAGE_SIZE),
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    patients = service.list_patients(db, district=district, limit=limit)
    return success_body([_patient_data(patient) for patient in patients])


@router.get("/by-code/{patient_code}", summary="Find Patient by Code")
async def get_patient_by_code_route(
    patient_code: str,
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    return success_body(_patient_data(service.get_patient_by_code(db, patient_code)))


@router.get("/{patient_id}", summary="Get Patient")
async def get_patient_route(
    patient_id: str,
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    """
    Get a patient with their diagnostics, newest first.
    """
    patient = service.get_patient(db, patient_id)
    diagnostics = lifecycle.list_diagnostics(db, subject_id=patient.id, limit=lifecycle.MAX_PAGE_SIZE)

    data = _patient_data(patient)
    data["diagnostics"] = [
        DiagnosticResponse.model_validate(diagnostic).model_dump(mode="json") for diagnostic in diagnostics
    ]
    return success_body(data)


@router.put("/{patient_id}", summary="Update Patient")
async def update_patient_route(
    patient_id: str,
    changes: PatientUpdate,
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    patient = service.update_patient(db, patient_id, changes)
    return success_body(_patient_data(patient))
