from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from . import repositories as repo
from .auth_service import require_clinician
from .db import db_session
from .errors import TreatmentCycleNotFoundError
from .models import TreatmentCycle
from .patient_service import validate_patient_ownership
from .schemas import TreatmentCycleInfo

logger = logging.getLogger(__name__)


def create_treatment_cycle(s: Session, clinician: str, patient_id: int) -> TreatmentCycle:
    """New empty cycle for a patient of ``clinician``; the caller attaches a visit to it."""
    patient = validate_patient_ownership(s, patient_id, clinician)
    cycle = TreatmentCycle(clinician_id=patient.clinician_id, patient=patient)
    s.add(cycle)
    s.flush()
    logger.info("Treatment cycle %s created for patient %s", cycle.id, patient.id)
    return cycle


def delete_treatment_cycle_if_has_no_visits(s: Session, cycle: TreatmentCycle | None) -> bool:
    """
    Remove an orphaned cycle. Pending changes are flushed first so that a
    visit just deleted or moved elsewhere is no longer counted.
    Returns True when the cycle was deleted; calling it again is a no-op.
    """
    if cycle is None:
        return False

    state = inspect(cycle)
    if state.deleted or state.was_deleted or state.transient:
        return False

    s.flush()
    if repo.count_visits_of_treatment_cycle(s, cycle.id) > 0:
        return False

    s.delete(cycle)
    s.flush()
    logger.info("Treatment cycle %s deleted: no visits left", cycle.id)
    return True


# =========================
# Queries
# =========================
def get_treatment_cycle(clinician: str | None, treatment_cycle_id: int) -> TreatmentCycleInfo:
    clinician = require_clinician(clinician)
    with db_session() as s:
        found = repo.retrieve_treatment_cycles(s, clinician, treatment_cycle_id=treatment_cycle_id)
        if not found:
            raise TreatmentCycleNotFoundError(treatment_cycle_id)
        return found[0]


def get_treatment_cycles_of_patient(clinician: str | None, patient_id: int) -> list[TreatmentCycleInfo]:
    clinician = require_clinician(clinician)
    with db_session() as s:
        validate_patient_ownership(s, patient_id, clinician)
        return repo.retrieve_treatment_cycles(s, clinician, patient_id=patient_id)
