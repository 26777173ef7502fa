# tenant_lifecycle/cli/__main__.py
from __future__ import annotations

import argparse
from datetime import datetime

from tenant_lifecycle.db import Base, SessionLocal, engine
from tenant_lifecycle.domain.types import DepartureType
from tenant_lifecycle.logging_config import configure_logging
from tenant_lifecycle.services.offboarding import execute_offboarding, get_offboarding_status

# registers every table on Base.metadata
import tenant_lifecycle.models  # noqa: F401


def _cmd_init_db(args: argparse.Namespace) -> dict:
    Base.metadata.create_all(bind=engine)
    return {"ok": True, "tables": sorted(Base.metadata.tables)}


def _cmd_offboard(args: argparse.Namespace) -> dict:
    db = SessionLocal()
    try:
        res = execute_offboarding(
            db,
            lease_id=args.lease_id,
            departure_type=args.departure_type,
            departure_date=datetime.fromisoformat(args.departure_date),
            notes=args.notes,
            mark_unit_available=args.mark_unit_available,
        )
        return res.as_dict()
    finally:
        db.close()


def _cmd_status(args: argparse.Namespace) -> dict:
    db = SessionLocal()
    try:
        return get_offboarding_status(db, lease_id=args.lease_id).as_dict()
    finally:
        db.close()


def main() -> None:
    p = argparse.ArgumentParser(prog="tenant_lifecycle")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create all tables (local/dev; use alembic elsewhere)")

    off = sub.add_parser("offboard", help="run the offboarding saga for one lease")
    off.add_argument("lease_id", type=int)
    off.add_argument("--departure-type", required=True, choices=[d.value for d in DepartureType])
    off.add_argument("--departure-date", required=True, help="ISO date or datetime")
    off.add_argument("--notes", default=None)
    off.add_argument("--mark-unit-available", action="store_true")

    st = sub.add_parser("status", help="which offboarding records exist for a lease")
    st.add_argument("lease_id", type=int)

    args = p.parse_args()
    configure_logging()

    handlers = {"init-db": _cmd_init_db, "offboard": _cmd_offboard, "status": _cmd_status}
    print(handlers[args.command](args))


if __name__ == "__main__":
    main()
