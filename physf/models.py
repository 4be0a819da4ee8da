from __future__ import annotations

import datetime as dt

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, LargeBinary, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .auth_models import Clinician
from .db import Base


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id"), nullable=False, index=True)

    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False)
    birth_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, nullable=False)

    clinician: Mapped[Clinician] = relationship()
    treatment_cycles: Mapped[list["TreatmentCycle"]] = relationship(back_populates="patient")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"Patient({self.first_name} {self.last_name})"


class TreatmentCycle(Base):
    """
    Visits of one patient grouped under one injury episode.
    A cycle without visits is an orphan and gets deleted
    (see treatment_cycle_service.delete_treatment_cycle_if_has_no_visits).
    """
    __tablename__ = "treatment_cycles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id"), nullable=False, index=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)

    injury_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    title: Mapped[str | None] = mapped_column(String(120), nullable=True)
    injury_location: Mapped[str | None] = mapped_column(String(120), nullable=True)
    diagnosis: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, nullable=False)

    clinician: Mapped[Clinician] = relationship()
    patient: Mapped["Patient"] = relationship(back_populates="treatment_cycles")

    def __repr__(self) -> str:
        return f"TreatmentCycle({self.id}, patient={self.patient_id})"


class Visit(Base):
    __tablename__ = "visits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # nullable: plan_next_visit keeps a visit whose cycle could not be resolved
    treatment_cycle_id: Mapped[int | None] = mapped_column(
        ForeignKey("treatment_cycles.id"), nullable=True, index=True
    )

    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    start_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    finished: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # filled in when the visit is finished
    interview: Mapped[str | None] = mapped_column(Text, nullable=True)
    examination: Mapped[str | None] = mapped_column(Text, nullable=True)
    treatment: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommendations: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, nullable=False)

    treatment_cycle: Mapped[TreatmentCycle | None] = relationship()
    photos: Mapped[list["Photo"]] = relationship(back_populates="visit", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        state = "finished" if self.finished else "planned"
        return f"Visit({self.id}, {self.date}, {state})"


class Photo(Base):
    __tablename__ = "photos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    visit_id: Mapped[int] = mapped_column(ForeignKey("visits.id"), nullable=False, index=True)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, nullable=False)

    visit: Mapped["Visit"] = relationship(back_populates="photos")
