"""
Backend of a physiotherapy practice: patients, treatment cycles, visits.

Structure:
- config.py                  : environment settings and logging setup
- db.py                      : SQLAlchemy engine and sessions
- models.py / auth_models.py : ORM models
- schemas.py                 : request payloads (pydantic) and output records
- repositories.py            : queries scoped to the current clinician
- patient_service.py         : patient ownership and creation
- treatment_cycle_service.py : cycle creation and orphan cleanup
- visit_service.py           : planning, finishing, cancelling, calendar
- api_main.py                : FastAPI application
- seed.py / cli.py           : demo data and command line
"""
