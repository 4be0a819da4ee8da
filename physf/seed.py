from __future__ import annotations

from datetime import date, time, timedelta

from sqlalchemy import select

from .auth_models import Clinician
from .auth_security import hash_password
from .db import db_session
from .models import Patient, TreatmentCycle, Visit

DEMO_USERNAME = "demo"
DEMO_PASSWORD = "demo"


def seed_base() -> None:
    """
    Minimal demo data (idempotent):
    - one clinician (demo / demo)
    - two patients
    - one treatment cycle with a finished visit and a planned one
    """
    with db_session() as s:
        clinician = s.execute(select(Clinician).where(Clinician.username == DEMO_USERNAME)).scalar_one_or_none()
        if clinician is None:
            clinician = Clinician(username=DEMO_USERNAME, password_hash=hash_password(DEMO_PASSWORD))
            s.add(clinician)
            s.flush()

        patients = [
            ("Anna", "Nowak", "anna.nowak@example.com"),
            ("Piotr", "Kowalski", None),
        ]
        for first_name, last_name, email in patients:
            exists = s.execute(
                select(Patient).where(
                    Patient.clinician_id == clinician.id,
                    Patient.first_name == first_name,
                    Patient.last_name == last_name,
                )
            ).scalar_one_or_none()
            if exists is None:
                s.add(Patient(clinician_id=clinician.id, first_name=first_name, last_name=last_name, email=email))

        s.flush()

        anna = s.execute(
            select(Patient).where(Patient.clinician_id == clinician.id, Patient.first_name == "Anna")
        ).scalar_one()
        if s.execute(select(TreatmentCycle).where(TreatmentCycle.patient_id == anna.id)).first() is not None:
            return

        today = date.today()
        cycle = TreatmentCycle(
            clinician_id=clinician.id,
            patient=anna,
            title="Knee rehabilitation",
            injury_location="left knee",
            injury_date=today - timedelta(days=21),
        )
        s.add(cycle)
        s.add(
            Visit(
                treatment_cycle=cycle,
                date=today - timedelta(days=7),
                start_time=time(9, 0),
                end_time=time(9, 45),
                finished=True,
                interview="Pain when climbing stairs.",
                treatment="Manual therapy, quadriceps strengthening.",
            )
        )
        s.add(
            Visit(
                treatment_cycle=cycle,
                date=today + timedelta(days=7),
                start_time=time(9, 0),
                end_time=time(9, 45),
            )
        )
