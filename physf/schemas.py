from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DATE_FORMAT = "%Y-%m-%d"   # yyyy-MM-dd
TIME_FORMAT = "%H:%M"      # HH:mm

# strptime accepts unpadded fields ("2024-5-1", "9:0"); the wire format does not
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
TIME_PATTERN = re.compile(r"\d{2}:\d{2}")

# id value clients send for "not assigned yet / create a new one"
NEW_ID = -1


# =========================
# Parsing helpers
# =========================
def parse_date(value: Any) -> dt.date | None:
    if value is None or isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        raise ValueError(f"expected a yyyy-MM-dd date, got {value!r}")
    return dt.datetime.strptime(value, DATE_FORMAT).date()


def parse_time(value: Any) -> dt.time | None:
    if value is None or isinstance(value, dt.time):
        return value
    if not isinstance(value, str) or not TIME_PATTERN.fullmatch(value):
        raise ValueError(f"expected a HH:mm time, got {value!r}")
    return dt.datetime.strptime(value, TIME_FORMAT).time()


def parse_optional_id(value: int | None) -> int | None:
    """Runs after int coercion, so both -1 and "-1" mean a new id."""
    if value == NEW_ID:
        return None
    return value


# =========================
# Input payloads
# =========================
class Payload(BaseModel):
    """Base for request payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VisitTimes(Payload):
    date: dt.date | None = None
    start_time: dt.time | None = Field(default=None, alias="startTime")
    end_time: dt.time | None = Field(default=None, alias="endTime")

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, value: Any) -> Any:
        return parse_date(value)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def check_times(cls, value: Any) -> Any:
        return parse_time(value)


class FirstVisitPlan(VisitTimes):
    pass


class VisitPlanWithTreatmentCycle(VisitTimes):
    # -1 (None once parsed) asks for a brand new treatment cycle
    treatment_cycle_id: int | None = Field(default=None, alias="treatmentCycleId")

    @field_validator("treatment_cycle_id", mode="after")
    @classmethod
    def check_cycle_id(cls, value: int | None) -> int | None:
        return parse_optional_id(value)


class VisitDateTimeInfo(VisitTimes):
    """Candidate slot; ``id`` is the visit being edited, excluded from the check."""

    id: int | None = None

    @field_validator("id", mode="after")
    @classmethod
    def check_id(cls, value: int | None) -> int | None:
        return parse_optional_id(value)


class PatientIn(Payload):
    first_name: str = Field(..., min_length=1, alias="firstName")
    last_name: str = Field(..., min_length=1, alias="lastName")
    birth_date: dt.date | None = Field(default=None, alias="birthDate")
    phone: str | None = None
    email: str | None = None

    @field_validator("birth_date", mode="before")
    @classmethod
    def check_birth_date(cls, value: Any) -> Any:
        return parse_date(value)


class NewPatientVisitPlan(Payload):
    patient: PatientIn
    visit: VisitTimes = Field(default_factory=VisitTimes)


class FinishedVisitIn(VisitTimes):
    id: int | None = None
    patient_id: int | None = Field(default=None, alias="patientId")
    treatment_cycle_id: int | None = Field(default=None, alias="treatmentCycleId")

    interview: str | None = None
    examination: str | None = None
    treatment: str | None = None
    recommendations: str | None = None
    notes: str | None = None

    @field_validator("id", "treatment_cycle_id", mode="after")
    @classmethod
    def check_ids(cls, value: int | None) -> int | None:
        return parse_optional_id(value)


class TreatmentCycleIn(Payload):
    injury_date: dt.date | None = Field(default=None, alias="injuryDate")
    title: str | None = None
    injury_location: str | None = Field(default=None, alias="injuryLocation")
    diagnosis: str | None = None

    @field_validator("injury_date", mode="before")
    @classmethod
    def check_injury_date(cls, value: Any) -> Any:
        return parse_date(value)


class FinishVisitPayload(Payload):
    visit: FinishedVisitIn
    treatment_cycle: TreatmentCycleIn = Field(default_factory=TreatmentCycleIn, alias="treatmentCycle")


# =========================
# Output records
# =========================
@dataclass(frozen=True)
class VisitPlan:
    id: int
    date: dt.date | None
    start_time: dt.time | None
    end_time: dt.time | None
    treatment_cycle_id: int | None
    patient_id: int
    patient_first_name: str
    patient_last_name: str


@dataclass(frozen=True)
class FinishedVisitInfo:
    id: int
    date: dt.date | None
    start_time: dt.time | None
    end_time: dt.time | None
    treatment_cycle_id: int
    patient_id: int
    patient_first_name: str
    patient_last_name: str
    injury_date: dt.date | None
    cycle_title: str | None
    interview: str | None
    examination: str | None
    treatment: str | None
    recommendations: str | None
    notes: str | None


@dataclass(frozen=True)
class CalendarEvent:
    id: int
    date: dt.date | None
    start_time: dt.time | None
    end_time: dt.time | None
    finished: bool
    patient_id: int
    title: str


@dataclass(frozen=True)
class TreatmentCycleInfo:
    id: int
    patient_id: int
    injury_date: dt.date | None
    title: str | None
    injury_location: str | None
    diagnosis: str | None
    visit_count: int
