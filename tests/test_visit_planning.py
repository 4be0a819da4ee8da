"""
Planning, rescheduling and cancelling visits.
"""
from datetime import time

import pytest

from physf import visit_service
from physf.db import db_session
from physf.errors import (
    AuthenticationMissingError,
    CancelFinishedVisitError,
    PatientNotFoundError,
    TreatmentCycleNotFoundError,
    VisitAlreadyFinishedError,
    VisitNotFoundError,
)
from physf.models import Patient, Photo, TreatmentCycle, Visit
from physf.schemas import FirstVisitPlan, NewPatientVisitPlan, VisitPlanWithTreatmentCycle
from physf.treatment_cycle_service import get_treatment_cycle


def first_plan(day="2024-05-01", start="09:00", end="09:30"):
    return FirstVisitPlan.model_validate({"date": day, "startTime": start, "endTime": end})


def next_plan(cycle_id, day="2024-05-08", start="09:00", end="09:30"):
    return VisitPlanWithTreatmentCycle.model_validate(
        {"date": day, "startTime": start, "endTime": end, "treatmentCycleId": cycle_id}
    )


def load_visit(visit_id):
    with db_session() as s:
        return s.get(Visit, visit_id)


def mark_finished(visit_id):
    with db_session() as s:
        s.get(Visit, visit_id).finished = True


def cycle_exists(cycle_id):
    with db_session() as s:
        return s.get(TreatmentCycle, cycle_id) is not None


class TestPlanFirstVisit:
    def test_cycle_belongs_to_patient_and_clinician(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)

        with db_session() as s:
            visit = s.get(Visit, visit_id)
            cycle = visit.treatment_cycle
            assert cycle.patient_id == patient_id
            assert cycle.clinician.username == clinician
            assert visit.finished is False

    def test_planned_visit_can_be_read_back(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)

        plan = visit_service.get_incoming_visit(clinician, visit_id)
        assert plan.id == visit_id
        assert plan.date.isoformat() == "2024-05-01"
        assert plan.start_time == time(9, 0)
        assert plan.end_time == time(9, 30)
        assert plan.patient_last_name == "Kowalski"

    def test_patient_of_another_clinician(self, other_clinician, patient_id):
        with pytest.raises(PatientNotFoundError):
            visit_service.plan_first_visit(other_clinician, first_plan(), patient_id)

        with db_session() as s:
            assert s.query(TreatmentCycle).count() == 0
            assert s.query(Visit).count() == 0

    def test_requires_identity(self, patient_id):
        with pytest.raises(AuthenticationMissingError):
            visit_service.plan_first_visit(None, first_plan(), patient_id)
        with pytest.raises(AuthenticationMissingError):
            visit_service.plan_first_visit("  ", first_plan(), patient_id)


class TestPlanNextVisit:
    def test_attached_to_existing_cycle(self, clinician, patient_id):
        first = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        cycle_id = load_visit(first).treatment_cycle_id

        second = visit_service.plan_next_visit(clinician, next_plan(cycle_id))

        assert second != first
        assert load_visit(second).treatment_cycle_id == cycle_id
        assert get_treatment_cycle(clinician, cycle_id).visit_count == 2

    def test_unknown_cycle_saves_unattached_visit(self, clinician):
        visit_id = visit_service.plan_next_visit(clinician, next_plan(999))

        visit = load_visit(visit_id)
        assert visit is not None
        assert visit.treatment_cycle_id is None
        # nobody owns it, so the scoped queries do not see it
        with pytest.raises(VisitNotFoundError):
            visit_service.get_incoming_visit(clinician, visit_id)

    def test_cycle_of_another_clinician_is_not_used(self, clinician, other_clinician, patient_id):
        first = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        cycle_id = load_visit(first).treatment_cycle_id

        visit_id = visit_service.plan_next_visit(other_clinician, next_plan(cycle_id))
        assert load_visit(visit_id).treatment_cycle_id is None


class TestPlanVisitForNewPatient:
    def test_creates_patient_cycle_and_visit(self, clinician):
        payload = NewPatientVisitPlan.model_validate(
            {
                "patient": {"firstName": "Ewa", "lastName": "Lis", "birthDate": "1990-02-03"},
                "visit": {"date": "2024-06-10", "startTime": "14:00", "endTime": "14:45"},
            }
        )
        visit_id = visit_service.plan_visit_for_new_patient(clinician, payload)

        with db_session() as s:
            visit = s.get(Visit, visit_id)
            patient = visit.treatment_cycle.patient
            assert patient.full_name == "Ewa Lis"
            assert patient.clinician.username == clinician
            assert visit.start_time == time(14, 0)

    def test_absent_visit_times_are_none(self, clinician):
        payload = NewPatientVisitPlan.model_validate({"patient": {"firstName": "Ewa", "lastName": "Lis"}})
        visit_id = visit_service.plan_visit_for_new_patient(clinician, payload)

        visit = load_visit(visit_id)
        assert visit.date is None
        assert visit.start_time is None
        assert visit.end_time is None

    def test_unknown_clinician_rolls_back(self):
        payload = NewPatientVisitPlan.model_validate({"patient": {"firstName": "Ewa", "lastName": "Lis"}})
        with pytest.raises(AuthenticationMissingError):
            visit_service.plan_visit_for_new_patient("ghost", payload)

        with db_session() as s:
            assert s.query(Patient).count() == 0


class TestUpdateVisitPlan:
    def test_reschedules_in_place(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        cycle_id = load_visit(visit_id).treatment_cycle_id

        updated = visit_service.update_visit_plan(
            clinician, visit_id, next_plan(cycle_id, day="2024-05-02", start="10:00", end="10:30")
        )

        visit = load_visit(updated)
        assert updated == visit_id
        assert visit.date.isoformat() == "2024-05-02"
        assert visit.start_time == time(10, 0)
        assert visit.treatment_cycle_id == cycle_id

    def test_times_only_keeps_cycle(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        cycle_id = load_visit(visit_id).treatment_cycle_id

        visit_service.update_visit_plan(
            clinician,
            visit_id,
            VisitPlanWithTreatmentCycle.model_validate({"date": "2024-05-03", "startTime": "11:00", "endTime": "11:30"}),
        )

        visit = load_visit(visit_id)
        assert visit.treatment_cycle_id == cycle_id
        assert visit.date.isoformat() == "2024-05-03"
        assert cycle_exists(cycle_id)

    def test_new_cycle_requested_removes_orphan(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        old_cycle_id = load_visit(visit_id).treatment_cycle_id

        visit_service.update_visit_plan(clinician, visit_id, next_plan(-1))

        visit = load_visit(visit_id)
        assert visit.treatment_cycle_id != old_cycle_id
        assert not cycle_exists(old_cycle_id)
        with db_session() as s:
            assert s.get(TreatmentCycle, visit.treatment_cycle_id).patient_id == patient_id

    def test_new_cycle_keeps_old_one_with_other_visits(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        old_cycle_id = load_visit(visit_id).treatment_cycle_id
        visit_service.plan_next_visit(clinician, next_plan(old_cycle_id))

        visit_service.update_visit_plan(clinician, visit_id, next_plan(-1))

        assert cycle_exists(old_cycle_id)
        assert get_treatment_cycle(clinician, old_cycle_id).visit_count == 1

    def test_move_to_another_cycle(self, clinician, patient_id):
        a = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        b = visit_service.plan_first_visit(clinician, first_plan(day="2024-05-03"), patient_id)
        cycle_a = load_visit(a).treatment_cycle_id
        cycle_b = load_visit(b).treatment_cycle_id

        visit_service.update_visit_plan(clinician, a, next_plan(cycle_b))

        assert load_visit(a).treatment_cycle_id == cycle_b
        assert not cycle_exists(cycle_a)

    def test_unknown_target_cycle_keeps_reference(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        cycle_id = load_visit(visit_id).treatment_cycle_id

        with pytest.raises(TreatmentCycleNotFoundError):
            visit_service.update_visit_plan(clinician, visit_id, next_plan(12345, day="2030-01-01"))

        visit = load_visit(visit_id)
        assert visit.treatment_cycle_id == cycle_id
        assert visit.date.isoformat() == "2024-05-01"

    def test_missing_visit(self, clinician):
        with pytest.raises(VisitNotFoundError):
            visit_service.update_visit_plan(clinician, 42, next_plan(-1))

    def test_finished_visit_cannot_be_replanned(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        mark_finished(visit_id)

        with pytest.raises(VisitAlreadyFinishedError):
            visit_service.update_visit_plan(clinician, visit_id, next_plan(-1))


class TestCancelVisit:
    def test_last_visit_deletes_cycle(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        cycle_id = load_visit(visit_id).treatment_cycle_id

        visit_service.cancel_visit(clinician, visit_id)

        assert load_visit(visit_id) is None
        with pytest.raises(TreatmentCycleNotFoundError):
            get_treatment_cycle(clinician, cycle_id)

    def test_cycle_with_other_visits_survives(self, clinician, patient_id):
        first = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        cycle_id = load_visit(first).treatment_cycle_id
        second = visit_service.plan_next_visit(clinician, next_plan(cycle_id))

        visit_service.cancel_visit(clinician, second)

        assert get_treatment_cycle(clinician, cycle_id).visit_count == 1

    def test_finished_visit_is_left_untouched(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        cycle_id = load_visit(visit_id).treatment_cycle_id
        mark_finished(visit_id)

        with pytest.raises(CancelFinishedVisitError):
            visit_service.cancel_visit(clinician, visit_id)

        visit = load_visit(visit_id)
        assert visit.finished is True
        assert visit.treatment_cycle_id == cycle_id
        assert cycle_exists(cycle_id)

    def test_missing_visit(self, clinician):
        with pytest.raises(VisitNotFoundError):
            visit_service.cancel_visit(clinician, 42)

    def test_photos_go_with_the_visit(self, clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)
        with db_session() as s:
            s.add(Photo(visit_id=visit_id, content=b"\x89PNG"))

        visit_service.cancel_visit(clinician, visit_id)

        with db_session() as s:
            assert s.query(Photo).count() == 0

    def test_visit_of_another_clinician(self, clinician, other_clinician, patient_id):
        visit_id = visit_service.plan_first_visit(clinician, first_plan(), patient_id)

        with pytest.raises(VisitNotFoundError):
            visit_service.cancel_visit(other_clinician, visit_id)
        assert load_visit(visit_id) is not None
