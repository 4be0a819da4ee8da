"""
Domain errors raised by the service layer.

Every error carries a stable ``error_code`` and the HTTP status the API
answers with; services never catch them, the enclosing ``db_session``
rolls the transaction back and the error reaches the caller untouched.
"""
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base domain error."""

    http_status = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or "DOMAIN_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationMissingError(DomainError):
    """No clinician identity could be resolved for the request."""

    http_status = 401

    def __init__(self, message: str = "Current clinician login not found") -> None:
        super().__init__(message, "AUTHENTICATION_MISSING")


class NotFoundError(DomainError):
    http_status = 404


class VisitNotFoundError(NotFoundError):
    def __init__(self, visit_id: int) -> None:
        super().__init__(f"Visit {visit_id} not found", "VISIT_NOT_FOUND", {"visit_id": visit_id})


class PatientNotFoundError(NotFoundError):
    def __init__(self, patient_id: int) -> None:
        super().__init__(f"Patient {patient_id} not found", "PATIENT_NOT_FOUND", {"patient_id": patient_id})


class TreatmentCycleNotFoundError(NotFoundError):
    def __init__(self, treatment_cycle_id: int) -> None:
        super().__init__(
            f"Treatment cycle {treatment_cycle_id} not found",
            "TREATMENT_CYCLE_NOT_FOUND",
            {"treatment_cycle_id": treatment_cycle_id},
        )


class VisitAlreadyFinishedError(DomainError):
    """The visit has already taken place and cannot be started again."""

    http_status = 409

    def __init__(self, visit_id: int) -> None:
        super().__init__(
            "Cannot start a visit that has already been finished.",
            "VISIT_ALREADY_FINISHED",
            {"visit_id": visit_id},
        )


class InvalidArgumentError(DomainError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "INVALID_ARGUMENT", details)


class CancelFinishedVisitError(DomainError):
    def __init__(self, visit_id: int) -> None:
        super().__init__(
            "Cannot cancel a visit that has already taken place.",
            "CANCEL_FINISHED_VISIT",
            {"visit_id": visit_id},
        )


class ClinicianAlreadyExistsError(DomainError):
    def __init__(self, username: str) -> None:
        super().__init__("Username already registered.", "CLINICIAN_EXISTS", {"username": username})
