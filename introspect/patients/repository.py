"""
Patient store. Callers own the transaction.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .models import Patient


def create_patient(db: Session, **fields: Any) -> Patient:
    patient = Patient(**fields)
    db.add(patient)
    db.flush()
    return patient


def find_patient(db: Session, patient_id: str) -> Optional[Patient]:
    return db.query(Patient).filter(Patient.id == patient_id).first()


def find_patient_by_code(db: Session, patient_code: str) -> Optional[Patient]:
    return db.query(Patient).filter(Patient.patient_code == patient_code).first()


def list_patients(db: Session, district: Optional[str] = None, limit: int = 20) -> List[Patient]:
    query = db.query(Patient)
    if district:
        query = query.filter(Patient.district == district)
    return query.order_by(Patient.created_at.desc()).limit(limit).all()


def update_patient(db: Session, patient: Patient, changes: Dict[str, Any]) -> Patient:
    for field, value in changes.items():
        setattr(patient, field, value)
    db.flush()
    return patient
