from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel

from physf import treatment_cycle_service, visit_service
from physf.auth_security import clinician_from_token, create_access_token
from physf.auth_service import authenticate, create_clinician, get_clinician_by_username
from physf.config import setup_logging
from physf.db import init_db
from physf.errors import DomainError
from physf.patient_service import create_patient_for_clinician
from physf.schemas import (
    CalendarEvent,
    FinishedVisitInfo,
    FinishVisitPayload,
    FirstVisitPlan,
    NewPatientVisitPlan,
    PatientIn,
    TreatmentCycleInfo,
    VisitDateTimeInfo,
    VisitPlan,
    VisitPlanWithTreatmentCycle,
)

logger = logging.getLogger(__name__)

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

app = FastAPI(title="Physiotherapy Practice API", version="1.0.0")



# Startup

@app.on_event("startup")
def startup() -> None:
    setup_logging()
    # create the tables (idempotent)
    init_db()



# Errors

@app.exception_handler(DomainError)
def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.error_code, "message": exc.message, "details": exc.details},
    )



# Auth schemas

class RegisterIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MeOut(BaseModel):
    id: int
    username: str
    is_active: bool



# Auth dependencies

def get_current_clinician(token: str = Depends(oauth2_scheme)) -> str:
    username = clinician_from_token(token)
    if not username:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    c = get_clinician_by_username(username)
    if not c or not c.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid clinician")
    return c.username



# AUTH endpoints

@app.post("/api/auth/register", response_model=dict)
def register(payload: RegisterIn) -> dict[str, Any]:
    try:
        clinician_id = create_clinician(payload.username, payload.password)
        return {"ok": True, "clinician_id": clinician_id}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/auth/login", response_model=TokenOut)
def login(form: OAuth2PasswordRequestForm = Depends()) -> TokenOut:
    c = authenticate(form.username, form.password)
    if not c:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    return TokenOut(access_token=create_access_token(c.username))


@app.get("/api/me", response_model=MeOut)
def me(clinician: str = Depends(get_current_clinician)) -> MeOut:
    c = get_clinician_by_username(clinician)
    return MeOut(id=c.id, username=c.username, is_active=c.is_active)



# Patients & treatment cycles

@app.post("/api/patients", status_code=status.HTTP_201_CREATED)
def api_create_patient(payload: PatientIn, clinician: str = Depends(get_current_clinician)) -> dict[str, Any]:
    patient_id = create_patient_for_clinician(clinician, payload)
    return {"ok": True, "patient_id": patient_id}


@app.get("/api/patients/{patient_id}/incoming-visits")
def api_incoming_visits(patient_id: int, clinician: str = Depends(get_current_clinician)) -> list[VisitPlan]:
    return visit_service.get_incoming_visits(clinician, patient_id)


@app.get("/api/patients/{patient_id}/treatment-cycles")
def api_patient_cycles(
    patient_id: int, clinician: str = Depends(get_current_clinician)
) -> list[TreatmentCycleInfo]:
    return treatment_cycle_service.get_treatment_cycles_of_patient(clinician, patient_id)


@app.get("/api/treatment-cycles/{treatment_cycle_id}")
def api_treatment_cycle(
    treatment_cycle_id: int, clinician: str = Depends(get_current_clinician)
) -> TreatmentCycleInfo:
    return treatment_cycle_service.get_treatment_cycle(clinician, treatment_cycle_id)


@app.get("/api/treatment-cycles/{treatment_cycle_id}/finished-visits")
def api_cycle_finished_visits(
    treatment_cycle_id: int, clinician: str = Depends(get_current_clinician)
) -> list[FinishedVisitInfo]:
    return visit_service.get_all_finished_visits_from_treatment_cycle(clinician, treatment_cycle_id)



# Visits: planning

@app.post("/api/visits/first", status_code=status.HTTP_201_CREATED)
def api_plan_first_visit(
    payload: FirstVisitPlan,
    patient_id: int = Query(...),
    clinician: str = Depends(get_current_clinician),
) -> dict[str, Any]:
    return {"ok": True, "visit_id": visit_service.plan_first_visit(clinician, payload, patient_id)}


@app.post("/api/visits/next", status_code=status.HTTP_201_CREATED)
def api_plan_next_visit(
    payload: VisitPlanWithTreatmentCycle, clinician: str = Depends(get_current_clinician)
) -> dict[str, Any]:
    return {"ok": True, "visit_id": visit_service.plan_next_visit(clinician, payload)}


@app.post("/api/visits/new-patient", status_code=status.HTTP_201_CREATED)
def api_plan_visit_for_new_patient(
    payload: NewPatientVisitPlan, clinician: str = Depends(get_current_clinician)
) -> dict[str, Any]:
    return {"ok": True, "visit_id": visit_service.plan_visit_for_new_patient(clinician, payload)}


@app.put("/api/visits/{visit_id}")
def api_update_visit_plan(
    visit_id: int, payload: VisitPlanWithTreatmentCycle, clinician: str = Depends(get_current_clinician)
) -> dict[str, Any]:
    return {"ok": True, "visit_id": visit_service.update_visit_plan(clinician, visit_id, payload)}


@app.delete("/api/visits/{visit_id}")
def api_cancel_visit(visit_id: int, clinician: str = Depends(get_current_clinician)) -> dict[str, Any]:
    visit_service.cancel_visit(clinician, visit_id)
    return {"ok": True}


@app.post("/api/visits/overlap")
def api_visit_overlap(payload: VisitDateTimeInfo, clinician: str = Depends(get_current_clinician)) -> dict[str, Any]:
    return {"planned": visit_service.is_visit_planned_in_given_time(clinician, payload)}



# Visits: finishing & reading

@app.post("/api/visits/finish")
def api_finish_visit(payload: FinishVisitPayload, clinician: str = Depends(get_current_clinician)) -> dict[str, Any]:
    return {"ok": True, "visit_id": visit_service.finish_visit(clinician, payload)}


@app.get("/api/visits/{visit_id}/incoming")
def api_incoming_visit(visit_id: int, clinician: str = Depends(get_current_clinician)) -> VisitPlan:
    return visit_service.get_incoming_visit(clinician, visit_id)


@app.get("/api/visits/{visit_id}/finished")
def api_finished_visit(visit_id: int, clinician: str = Depends(get_current_clinician)) -> FinishedVisitInfo:
    return visit_service.get_finished_visit_info(clinician, visit_id)


@app.get("/api/calendar")
def api_calendar(clinician: str = Depends(get_current_clinician)) -> list[CalendarEvent]:
    return visit_service.get_calendar_events(clinician)


@app.get("/api/calendar/{visit_id}")
def api_calendar_event(visit_id: int, clinician: str = Depends(get_current_clinician)) -> CalendarEvent:
    return visit_service.get_calendar_event(clinician, visit_id)
