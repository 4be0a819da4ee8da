from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from . import repositories as repo
from .auth_service import require_clinician
from .db import db_session
from .errors import AuthenticationMissingError, PatientNotFoundError
from .models import Patient
from .schemas import PatientIn

logger = logging.getLogger(__name__)


def validate_patient_ownership(s: Session, patient_id: int, clinician: str) -> Patient:
    """The patient, if it exists and is treated by ``clinician``."""
    patient = repo.find_patient(s, patient_id, clinician)
    if patient is None:
        raise PatientNotFoundError(patient_id)
    return patient


def create_patient(s: Session, clinician: str, attrs: PatientIn) -> int:
    owner = repo.find_clinician(s, clinician)
    if owner is None or not owner.is_active:
        raise AuthenticationMissingError(f"Clinician '{clinician}' not found")

    p = Patient(
        clinician_id=owner.id,
        first_name=attrs.first_name.strip(),
        last_name=attrs.last_name.strip(),
        birth_date=attrs.birth_date,
        phone=attrs.phone,
        email=attrs.email,
    )
    s.add(p)
    s.flush()
    logger.info("Patient %s created for %s", p.id, clinician)
    return p.id


def create_patient_for_clinician(clinician: str | None, attrs: PatientIn) -> int:
    clinician = require_clinician(clinician)
    with db_session() as s:
        return create_patient(s, clinician, attrs)
