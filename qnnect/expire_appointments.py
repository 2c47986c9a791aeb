"""Close pending appointments that were never answered.

Usage:
    python -m qnnect.expire_appointments [--timeout-hours N]

Without ``--timeout-hours`` the admin-configured timeout is used.
"""
import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from qnnect.core import config
from qnnect.database import Base, SessionLocal, engine, ensure_schema
from qnnect.models import appointment, setting, topic, user  # noqa: F401  registers tables
from qnnect.services.appointment_workflow import expire_pending_appointments, resolve_timeout_hours


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Mark stale pending appointments as no_response.")
    parser.add_argument("--timeout-hours", type=float, default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL)

    db = SessionLocal()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schema()
        timeout_hours = args.timeout_hours if args.timeout_hours is not None else resolve_timeout_hours(db)
        expired = expire_pending_appointments(db, timeout_hours=timeout_hours)
    except SQLAlchemyError as exc:
        db.rollback()
        print(f"Database error: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(f"{expired} appointment(s) marked as no_response")


if __name__ == "__main__":
    main()
