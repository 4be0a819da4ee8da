"""
Scoped queries over visits and treatment cycles.

Every function takes the open session of the calling use case; whatever
involves ownership is filtered on the clinician username. A visit belongs
to the clinician owning its treatment cycle, so visits without a cycle
never show up here.
"""
from __future__ import annotations

import datetime as dt

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import Session

from .auth_models import Clinician
from .models import Patient, TreatmentCycle, Visit
from .schemas import CalendarEvent, FinishedVisitInfo, TreatmentCycleInfo, VisitPlan


# =========================
# Entities
# =========================
def find_clinician(s: Session, username: str) -> Clinician | None:
    return s.execute(select(Clinician).where(Clinician.username == username)).scalar_one_or_none()


def find_patient(s: Session, patient_id: int, username: str) -> Patient | None:
    q = (
        select(Patient)
        .join(Clinician, Clinician.id == Patient.clinician_id)
        .where(Patient.id == patient_id, Clinician.username == username)
    )
    return s.scalars(q).first()


def find_treatment_cycle(s: Session, treatment_cycle_id: int, username: str) -> TreatmentCycle | None:
    q = (
        select(TreatmentCycle)
        .join(Clinician, Clinician.id == TreatmentCycle.clinician_id)
        .where(TreatmentCycle.id == treatment_cycle_id, Clinician.username == username)
    )
    return s.scalars(q).first()


def find_visit(s: Session, visit_id: int, username: str) -> Visit | None:
    q = (
        select(Visit)
        .join(TreatmentCycle, TreatmentCycle.id == Visit.treatment_cycle_id)
        .join(Clinician, Clinician.id == TreatmentCycle.clinician_id)
        .where(Visit.id == visit_id, Clinician.username == username)
    )
    return s.scalars(q).first()


def count_visits_of_treatment_cycle(s: Session, treatment_cycle_id: int) -> int:
    q = select(func.count(Visit.id)).where(Visit.treatment_cycle_id == treatment_cycle_id)
    return s.execute(q).scalar_one()


def get_last_visit_id(s: Session, username: str) -> int | None:
    """Id of the most recently created visit of the clinician."""
    q = (
        select(Visit.id)
        .join(TreatmentCycle, TreatmentCycle.id == Visit.treatment_cycle_id)
        .join(Clinician, Clinician.id == TreatmentCycle.clinician_id)
        .where(Clinician.username == username)
        .order_by(Visit.id.desc())
        .limit(1)
    )
    return s.execute(q).scalar_one_or_none()


# =========================
# Flat projections
# =========================
def _owned_visits(username: str, *columns) -> Select:
    return (
        select(*columns)
        .select_from(Visit)
        .join(TreatmentCycle, TreatmentCycle.id == Visit.treatment_cycle_id)
        .join(Patient, Patient.id == TreatmentCycle.patient_id)
        .join(Clinician, Clinician.id == TreatmentCycle.clinician_id)
        .where(Clinician.username == username)
    )


_PLAN_COLUMNS = (
    Visit.id,
    Visit.date,
    Visit.start_time,
    Visit.end_time,
    Visit.treatment_cycle_id,
    Patient.id.label("patient_id"),
    Patient.first_name,
    Patient.last_name,
)

_FINISHED_COLUMNS = _PLAN_COLUMNS + (
    TreatmentCycle.injury_date,
    TreatmentCycle.title.label("cycle_title"),
    Visit.interview,
    Visit.examination,
    Visit.treatment,
    Visit.recommendations,
    Visit.notes,
)


def _to_plan(r) -> VisitPlan:
    return VisitPlan(
        id=r.id,
        date=r.date,
        start_time=r.start_time,
        end_time=r.end_time,
        treatment_cycle_id=r.treatment_cycle_id,
        patient_id=r.patient_id,
        patient_first_name=r.first_name,
        patient_last_name=r.last_name,
    )


def _to_finished(r) -> FinishedVisitInfo:
    return FinishedVisitInfo(
        id=r.id,
        date=r.date,
        start_time=r.start_time,
        end_time=r.end_time,
        treatment_cycle_id=r.treatment_cycle_id,
        patient_id=r.patient_id,
        patient_first_name=r.first_name,
        patient_last_name=r.last_name,
        injury_date=r.injury_date,
        cycle_title=r.cycle_title,
        interview=r.interview,
        examination=r.examination,
        treatment=r.treatment,
        recommendations=r.recommendations,
        notes=r.notes,
    )


def retrieve_visit_as_finished_visit(s: Session, visit_id: int, username: str) -> FinishedVisitInfo | None:
    q = _owned_visits(username, *_FINISHED_COLUMNS).where(Visit.id == visit_id, Visit.finished.is_(True))
    r = s.execute(q).first()
    return _to_finished(r) if r else None


def retrieve_finished_visits_by_treatment_cycle(
    s: Session, username: str, treatment_cycle_id: int
) -> list[FinishedVisitInfo]:
    q = (
        _owned_visits(username, *_FINISHED_COLUMNS)
        .where(Visit.treatment_cycle_id == treatment_cycle_id, Visit.finished.is_(True))
        .order_by(Visit.date.asc(), Visit.start_time.asc())
    )
    return [_to_finished(r) for r in s.execute(q).all()]


def find_incoming_visits(s: Session, patient_id: int, today: dt.date, username: str) -> list[VisitPlan]:
    q = (
        _owned_visits(username, *_PLAN_COLUMNS)
        .where(Patient.id == patient_id, Visit.date >= today)
        .order_by(Visit.date.asc(), Visit.start_time.asc())
    )
    return [_to_plan(r) for r in s.execute(q).all()]


def find_incoming_visit(s: Session, visit_id: int, username: str) -> VisitPlan | None:
    q = _owned_visits(username, *_PLAN_COLUMNS).where(Visit.id == visit_id, Visit.finished.is_(False))
    r = s.execute(q).first()
    return _to_plan(r) if r else None


def retrieve_calendar_events(s: Session, username: str, visit_id: int | None = None) -> list[CalendarEvent]:
    q = _owned_visits(
        username,
        Visit.id,
        Visit.date,
        Visit.start_time,
        Visit.end_time,
        Visit.finished,
        Patient.id.label("patient_id"),
        Patient.first_name,
        Patient.last_name,
    )
    if visit_id is not None:
        q = q.where(Visit.id == visit_id)
    q = q.order_by(Visit.date.asc(), Visit.start_time.asc())

    return [
        CalendarEvent(
            id=r.id,
            date=r.date,
            start_time=r.start_time,
            end_time=r.end_time,
            finished=r.finished,
            patient_id=r.patient_id,
            title=f"{r.first_name} {r.last_name}",
        )
        for r in s.execute(q).all()
    ]


def is_visit_planned_for(
    s: Session,
    username: str,
    visit_id: int | None,
    date: dt.date,
    start_time: dt.time,
    end_time: dt.time,
) -> bool:
    """
    Half-open overlap [start, end) with any other visit of the clinician on
    the same day: visits that only touch do not collide.
    """
    conditions = [
        Visit.date == date,
        Visit.start_time < end_time,
        Visit.end_time > start_time,
    ]
    if visit_id is not None:
        conditions.append(Visit.id != visit_id)

    q = _owned_visits(username, Visit.id).where(and_(*conditions)).limit(1)
    return s.execute(q).first() is not None


def retrieve_treatment_cycles(
    s: Session,
    username: str,
    patient_id: int | None = None,
    treatment_cycle_id: int | None = None,
) -> list[TreatmentCycleInfo]:
    visit_count = (
        select(func.count(Visit.id))
        .where(Visit.treatment_cycle_id == TreatmentCycle.id)
        .correlate(TreatmentCycle)
        .scalar_subquery()
    )
    q = (
        select(
            TreatmentCycle.id,
            TreatmentCycle.patient_id,
            TreatmentCycle.injury_date,
            TreatmentCycle.title,
            TreatmentCycle.injury_location,
            TreatmentCycle.diagnosis,
            visit_count.label("visit_count"),
        )
        .join(Clinician, Clinician.id == TreatmentCycle.clinician_id)
        .where(Clinician.username == username)
    )
    if patient_id is not None:
        q = q.where(TreatmentCycle.patient_id == patient_id)
    if treatment_cycle_id is not None:
        q = q.where(TreatmentCycle.id == treatment_cycle_id)
    q = q.order_by(TreatmentCycle.created_at.asc(), TreatmentCycle.id.asc())

    return [
        TreatmentCycleInfo(
            id=r.id,
            patient_id=r.patient_id,
            injury_date=r.injury_date,
            title=r.title,
            injury_location=r.injury_location,
            diagnosis=r.diagnosis,
            visit_count=r.visit_count,
        )
        for r in s.execute(q).all()
    ]
