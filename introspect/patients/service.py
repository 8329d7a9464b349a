"""
Patient registry service layer.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.security import TokenClaims
from . import repository
from .exceptions import PatientCodeExistsException, PatientNotFoundException
from .models import Patient
from .schemas import PatientCreate, PatientUpdate

# Set up logging
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def register_patient(db: Session, data: PatientCreate, creator: TokenClaims) -> Patient:
    """
    Register an anonymised patient.

    Args:
        db: Database session
        data: Registration payload
        creator: Claims of the registering identity

    Returns:
        Patient: The stored patient

    Raises:
        PatientCodeExistsException: If the patient code is already registered
    """
    if repository.find_patient_by_code(db, data.patient_code):
        logger.warning(f"Patient registration failed: code {data.patient_code} already registered")
        raise PatientCodeExistsException()

    try:
        patient = repository.create_patient(db, created_by_id=creator.id, **data.model_dump())
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Patient registration failed: code {data.patient_code} registered concurrently")
        raise PatientCodeExistsException()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(patient)
    logger.info(f"Patient {patient.id} registered by {creator.id}")
    return patient


def get_patient(db: Session, patient_id: str) -> Patient:
    patient = repository.find_patient(db, patient_id)
    if not patient:
        raise PatientNotFoundException()
    return patient


def get_patient_by_code(db: Session, patient_code: str) -> Patient:
    patient = repository.find_patient_by_code(db, patient_code)
    if not patient:
        raise PatientNotFoundException()
    return patient


def list_patients(db: Session, district: Optional[str] = None, limit: Optional[int] = None) -> List[Patient]:
    """Newest registrations first, optionally for one district."""
    limit = min(limit or 20, MAX_PAGE_SIZE)
    return repository.list_patients(db, district=district, limit=limit)


def update_patient(db: Session, patient_id: str, changes: PatientUpdate) -> Patient:
    patient = get_patient(db, patient_id)
    try:
        repository.update_patient(db, patient, changes.model_dump(exclude_unset=True))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(patient)
    logger.info(f"Patient {patient_id} updated")
    return patient
