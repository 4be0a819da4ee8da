from __future__ import annotations

import argparse
import os

from physf import visit_service
from physf.auth_service import create_clinician
from physf.config import setup_logging
from physf.db import configure_database, init_db
from physf.errors import DomainError
from physf.patient_service import create_patient_for_clinician
from physf.schemas import FirstVisitPlan, PatientIn, VisitDateTimeInfo
from physf.seed import seed_base


def cmd_init(args: argparse.Namespace) -> None:
    seed_base()
    print("DB initialised and demo data loaded.")


def cmd_add_clinician(args: argparse.Namespace) -> None:
    cid = create_clinician(args.username, args.password)
    print(f"Clinician created: {cid}")


def cmd_add_patient(args: argparse.Namespace) -> None:
    attrs = PatientIn(first_name=args.first_name, last_name=args.last_name, email=args.email, phone=args.phone)
    pid = create_patient_for_clinician(args.clinician, attrs)
    print(f"Patient created: {pid}")


def cmd_plan(args: argparse.Namespace) -> None:
    # same formats as the API: yyyy-MM-dd and HH:mm
    plan = FirstVisitPlan.model_validate({"date": args.date, "startTime": args.start, "endTime": args.end})
    slot = VisitDateTimeInfo(date=plan.date, start_time=plan.start_time, end_time=plan.end_time)
    if visit_service.is_visit_planned_in_given_time(args.clinician, slot) and not args.force:
        print("Slot already taken by another visit (use --force to book anyway).")
        return

    vid = visit_service.plan_first_visit(args.clinician, plan, args.patient_id)
    print(f"Visit planned: {vid}")


def cmd_calendar(args: argparse.Namespace) -> None:
    events = visit_service.get_calendar_events(args.clinician)
    if not events:
        print("No visits.")
        return

    for e in events:
        state = "done" if e.finished else "planned"
        start = e.start_time.strftime("%H:%M") if e.start_time else "--:--"
        end = e.end_time.strftime("%H:%M") if e.end_time else "--:--"
        print(f"[{e.id}] {e.date or '-'} {start}-{end} | {state:7} | {e.title}")


def cmd_cancel(args: argparse.Namespace) -> None:
    visit_service.cancel_visit(args.clinician, args.visit_id)
    print("Cancelled.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="physf", description="Physiotherapy practice CLI")
    p.add_argument("--db", default=None, help="SQLAlchemy URL, overrides PHYSF_DATABASE_URL")
    p.add_argument(
        "--clinician",
        default=os.getenv("PHYSF_CLINICIAN"),
        help="Username acting on the data (default: $PHYSF_CLINICIAN)",
    )
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Create the DB and load demo data")
    p_init.set_defaults(func=cmd_init)

    p_addc = sub.add_parser("add-clinician", help="Register a clinician")
    p_addc.add_argument("--username", required=True)
    p_addc.add_argument("--password", required=True)
    p_addc.set_defaults(func=cmd_add_clinician)

    p_addp = sub.add_parser("add-patient", help="Create a patient")
    p_addp.add_argument("--first-name", required=True)
    p_addp.add_argument("--last-name", required=True)
    p_addp.add_argument("--email", default=None)
    p_addp.add_argument("--phone", default=None)
    p_addp.set_defaults(func=cmd_add_patient)

    p_plan = sub.add_parser("plan", help="Plan the first visit of a new treatment cycle")
    p_plan.add_argument("--patient-id", type=int, required=True)
    p_plan.add_argument("--date", required=True, help="yyyy-MM-dd")
    p_plan.add_argument("--start", required=True, help="HH:mm")
    p_plan.add_argument("--end", required=True, help="HH:mm")
    p_plan.add_argument("--force", action="store_true", help="Book even if the slot overlaps another visit")
    p_plan.set_defaults(func=cmd_plan)

    p_cal = sub.add_parser("calendar", help="List the visits of the clinician")
    p_cal.set_defaults(func=cmd_calendar)

    p_cancel = sub.add_parser("cancel", help="Cancel a planned visit")
    p_cancel.add_argument("--visit-id", type=int, required=True)
    p_cancel.set_defaults(func=cmd_cancel)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging()
    if args.db:
        configure_database(args.db)
    init_db()  # make sure the tables exist

    try:
        args.func(args)
    except DomainError as e:
        print(f"Error: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
