"""
Shared fixtures: every test runs against a fresh SQLite file.
"""
from datetime import date, timedelta

import pytest

from physf.auth_models import Clinician
from physf.db import configure_database, db_session, drop_db, init_db
from physf.patient_service import create_patient_for_clinician
from physf.schemas import PatientIn


@pytest.fixture(autouse=True)
def database(tmp_path):
    """Point the session factory at a throw-away database."""
    engine = configure_database(f"sqlite:///{tmp_path / 'physf_test.sqlite'}")
    init_db()
    yield engine
    drop_db()
    engine.dispose()


def add_clinician(username: str) -> str:
    # bcrypt is not needed below the API layer
    with db_session() as s:
        s.add(Clinician(username=username, password_hash="not-a-real-hash"))
    return username


@pytest.fixture
def clinician():
    return add_clinician("anna.physio")


@pytest.fixture
def other_clinician():
    return add_clinician("marek.physio")


@pytest.fixture
def patient_id(clinician):
    return create_patient_for_clinician(clinician, PatientIn(first_name="Jan", last_name="Kowalski"))


@pytest.fixture
def future_day():
    return (date.today() + timedelta(days=10)).isoformat()
