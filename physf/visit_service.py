"""
Visits of a physiotherapy practice: planning, finishing, cancelling and the
calendar queries.

Every use case takes the current clinician username as first argument and
runs in a single ``db_session`` transaction: cycle and visit changes commit
together or roll back together.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from . import repositories as repo
from .auth_service import require_clinician
from .db import db_session
from .errors import (
    CancelFinishedVisitError,
    InvalidArgumentError,
    TreatmentCycleNotFoundError,
    VisitAlreadyFinishedError,
    VisitNotFoundError,
)
from .models import TreatmentCycle, Visit
from .patient_service import create_patient, validate_patient_ownership
from .schemas import (
    CalendarEvent,
    FinishedVisitIn,
    FinishedVisitInfo,
    FinishVisitPayload,
    FirstVisitPlan,
    NewPatientVisitPlan,
    TreatmentCycleIn,
    VisitDateTimeInfo,
    VisitPlan,
    VisitPlanWithTreatmentCycle,
    VisitTimes,
)
from .treatment_cycle_service import create_treatment_cycle, delete_treatment_cycle_if_has_no_visits

logger = logging.getLogger(__name__)

# Clinical fields a finish payload may overwrite; id, state and cycle are handled explicitly.
FINISHED_VISIT_FIELDS = ("interview", "examination", "treatment", "recommendations", "notes")
TREATMENT_CYCLE_FIELDS = ("title", "injury_location", "diagnosis")


# =========================
# Queries
# =========================
def get_finished_visit_info(clinician: str | None, visit_id: int) -> FinishedVisitInfo:
    clinician = require_clinician(clinician)
    with db_session() as s:
        info = repo.retrieve_visit_as_finished_visit(s, visit_id, clinician)
        if info is None:
            raise VisitNotFoundError(visit_id)
        return info


def get_incoming_visits(clinician: str | None, patient_id: int) -> list[VisitPlan]:
    clinician = require_clinician(clinician)
    with db_session() as s:
        validate_patient_ownership(s, patient_id, clinician)
        return repo.find_incoming_visits(s, patient_id, date.today(), clinician)


def get_incoming_visit(clinician: str | None, visit_id: int) -> VisitPlan:
    clinician = require_clinician(clinician)
    with db_session() as s:
        plan = repo.find_incoming_visit(s, visit_id, clinician)
        if plan is None:
            raise VisitNotFoundError(visit_id)
        return plan


def get_calendar_events(clinician: str | None) -> list[CalendarEvent]:
    clinician = require_clinician(clinician)
    with db_session() as s:
        return repo.retrieve_calendar_events(s, clinician)


def get_calendar_event(clinician: str | None, visit_id: int) -> CalendarEvent:
    clinician = require_clinician(clinician)
    with db_session() as s:
        events = repo.retrieve_calendar_events(s, clinician, visit_id=visit_id)
        if not events:
            raise VisitNotFoundError(visit_id)
        return events[0]


def is_visit_planned_in_given_time(clinician: str | None, info: VisitDateTimeInfo) -> bool:
    """True if another visit of the clinician overlaps the candidate slot (double booking)."""
    clinician = require_clinician(clinician)
    if info.date is None or info.start_time is None or info.end_time is None:
        raise InvalidArgumentError("date, startTime and endTime are required to check a slot")
    if info.start_time >= info.end_time:
        raise InvalidArgumentError("startTime must be before endTime")

    with db_session() as s:
        return repo.is_visit_planned_for(s, clinician, info.id, info.date, info.start_time, info.end_time)


def get_all_finished_visits_from_treatment_cycle(
    clinician: str | None, treatment_cycle_id: int
) -> list[FinishedVisitInfo]:
    clinician = require_clinician(clinician)
    with db_session() as s:
        return repo.retrieve_finished_visits_by_treatment_cycle(s, clinician, treatment_cycle_id)


# =========================
# Planning
# =========================
def _apply_times(visit: Visit, times: VisitTimes) -> None:
    # a key missing from the payload clears the field
    visit.date = times.date
    visit.start_time = times.start_time
    visit.end_time = times.end_time


def _load_visit(s: Session, visit_id: int, clinician: str) -> Visit:
    visit = repo.find_visit(s, visit_id, clinician)
    if visit is None:
        raise VisitNotFoundError(visit_id)
    return visit


def plan_first_visit(clinician: str | None, plan: FirstVisitPlan, patient_id: int) -> int:
    """First visit of a new treatment cycle for an existing patient."""
    clinician = require_clinician(clinician)
    with db_session() as s:
        cycle = create_treatment_cycle(s, clinician, patient_id)
        visit = Visit(finished=False, treatment_cycle=cycle)
        _apply_times(visit, plan)
        s.add(visit)
        s.flush()
        logger.info("Visit %s planned in new treatment cycle %s", visit.id, cycle.id)
        return visit.id


def plan_next_visit(clinician: str | None, plan: VisitPlanWithTreatmentCycle) -> int:
    """
    Next visit of an existing treatment cycle. When the cycle does not resolve
    the visit is saved anyway, without a cycle (kept as is, pending a product
    decision; such a visit is invisible to every calendar query).
    """
    clinician = require_clinician(clinician)
    with db_session() as s:
        visit = Visit(finished=False)
        _apply_times(visit, plan)

        cycle = None
        if plan.treatment_cycle_id is not None:
            cycle = repo.find_treatment_cycle(s, plan.treatment_cycle_id, clinician)
        if cycle is not None:
            visit.treatment_cycle = cycle
        else:
            logger.warning(
                "Treatment cycle %s not found for %s: visit saved without a cycle",
                plan.treatment_cycle_id,
                clinician,
            )

        s.add(visit)
        s.flush()
        logger.info("Visit %s planned", visit.id)
        return visit.id


def plan_visit_for_new_patient(clinician: str | None, payload: NewPatientVisitPlan) -> int:
    clinician = require_clinician(clinician)
    with db_session() as s:
        patient_id = create_patient(s, clinician, payload.patient)
        cycle = create_treatment_cycle(s, clinician, patient_id)

        visit = Visit(finished=False, treatment_cycle=cycle)
        _apply_times(visit, payload.visit)
        s.add(visit)
        s.flush()
        logger.info("Visit %s planned for new patient %s", visit.id, patient_id)
        return visit.id


def update_visit_plan(clinician: str | None, visit_id: int, new_plan: VisitPlanWithTreatmentCycle) -> int:
    """
    Reschedule a planned visit and possibly move it to another cycle:
    - treatmentCycleId absent: the visit stays in its cycle
    - treatmentCycleId -1: a new cycle for the same patient
    - another id: that cycle of the clinician, which must exist
    The previous cycle is deleted if the move left it empty.
    """
    clinician = require_clinician(clinician)
    with db_session() as s:
        visit = _load_visit(s, visit_id, clinician)
        if visit.finished:
            raise VisitAlreadyFinishedError(visit_id)

        current_cycle = visit.treatment_cycle
        _apply_times(visit, new_plan)

        moving = "treatment_cycle_id" in new_plan.model_fields_set
        if moving and new_plan.treatment_cycle_id is None:
            visit.treatment_cycle = create_treatment_cycle(s, clinician, current_cycle.patient_id)
        elif moving and new_plan.treatment_cycle_id != current_cycle.id:
            target = repo.find_treatment_cycle(s, new_plan.treatment_cycle_id, clinician)
            if target is None:
                raise TreatmentCycleNotFoundError(new_plan.treatment_cycle_id)
            visit.treatment_cycle = target

        s.flush()
        delete_treatment_cycle_if_has_no_visits(s, current_cycle)
        logger.info("Visit %s rescheduled (cycle %s)", visit.id, visit.treatment_cycle_id)
        return visit.id


def cancel_visit(clinician: str | None, visit_id: int) -> None:
    clinician = require_clinician(clinician)
    with db_session() as s:
        visit = _load_visit(s, visit_id, clinician)
        if visit.finished:
            raise CancelFinishedVisitError(visit_id)

        cycle = visit.treatment_cycle
        s.delete(visit)
        s.flush()
        delete_treatment_cycle_if_has_no_visits(s, cycle)
        logger.info("Visit %s cancelled", visit_id)


# =========================
# Finishing
# =========================
def _merge_finished_visit(visit: Visit, data: FinishedVisitIn) -> None:
    for field in FINISHED_VISIT_FIELDS:
        if field in data.model_fields_set:
            setattr(visit, field, getattr(data, field))


def _merge_treatment_cycle(cycle: TreatmentCycle, data: TreatmentCycleIn) -> None:
    for field in TREATMENT_CYCLE_FIELDS:
        if field in data.model_fields_set:
            setattr(cycle, field, getattr(data, field))
    cycle.injury_date = data.injury_date


def _resolve_cycle_for_finish(s: Session, clinician: str, data: FinishedVisitIn) -> TreatmentCycle:
    if data.treatment_cycle_id is None:
        if data.patient_id is None:
            raise InvalidArgumentError("patientId is required to open a new treatment cycle")
        return create_treatment_cycle(s, clinician, data.patient_id)

    cycle = repo.find_treatment_cycle(s, data.treatment_cycle_id, clinician)
    if cycle is None:
        raise InvalidArgumentError(
            f"Treatment cycle {data.treatment_cycle_id} does not exist",
            {"treatment_cycle_id": data.treatment_cycle_id},
        )
    return cycle


def finish_visit(clinician: str | None, payload: FinishVisitPayload) -> int:
    """
    Record a visit as finished, either a planned one (``visit.id`` set) or
    one that was never planned (``visit.id`` unset). Returns the id of the
    clinician's most recently created visit, which is not necessarily the
    visit just finished (kept as is, pending a product decision).
    """
    clinician = require_clinician(clinician)
    data = payload.visit
    with db_session() as s:
        if data.id is None:
            visit = Visit(finished=False)
            previous_cycle = None
        else:
            visit = _load_visit(s, data.id, clinician)
            if visit.finished:
                raise VisitAlreadyFinishedError(data.id)
            previous_cycle = visit.treatment_cycle

        _merge_finished_visit(visit, data)

        cycle = _resolve_cycle_for_finish(s, clinician, data)
        _merge_treatment_cycle(cycle, payload.treatment_cycle)

        _apply_times(visit, data)
        visit.treatment_cycle = cycle
        visit.finished = True
        s.add(visit)
        s.flush()

        if previous_cycle is not None and previous_cycle is not cycle:
            delete_treatment_cycle_if_has_no_visits(s, previous_cycle)

        logger.info("Visit %s finished in treatment cycle %s", visit.id, cycle.id)

        last_visit_id = repo.get_last_visit_id(s, clinician)
        if last_visit_id != visit.id:
            logger.warning(
                "Finished visit %s but returning last created visit %s for %s",
                visit.id,
                last_visit_id,
                clinician,
            )
        return last_visit_id
