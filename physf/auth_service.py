from __future__ import annotations

import logging

from sqlalchemy import select

from physf.auth_models import Clinician
from physf.auth_security import hash_password, verify_password
from physf.db import db_session
from physf.errors import AuthenticationMissingError, ClinicianAlreadyExistsError

logger = logging.getLogger(__name__)


def require_clinician(username: str | None) -> str:
    """Normalised identity of the current clinician, or AuthenticationMissingError."""
    if username is None or not username.strip():
        raise AuthenticationMissingError()
    return username.strip().lower()


def create_clinician(username: str, password: str) -> int:
    username = username.strip().lower()
    if not username or not password:
        raise ValueError("Username and password are required.")

    with db_session() as s:
        exists = s.execute(select(Clinician).where(Clinician.username == username)).scalar_one_or_none()
        if exists:
            raise ClinicianAlreadyExistsError(username)

        c = Clinician(username=username, password_hash=hash_password(password), is_active=True)
        s.add(c)
        s.flush()
        logger.info("Clinician %s registered", username)
        return c.id


def authenticate(username: str, password: str) -> Clinician | None:
    username = username.strip().lower()
    with db_session() as s:
        c = s.execute(select(Clinician).where(Clinician.username == username)).scalar_one_or_none()
        if not c or not c.is_active:
            return None
        if not verify_password(password, c.password_hash):
            return None
        return c


def get_clinician_by_username(username: str) -> Clinician | None:
    with db_session() as s:
        return s.execute(select(Clinician).where(Clinician.username == username)).scalar_one_or_none()
