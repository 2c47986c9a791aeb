"""Create or promote an admin account.

Usage:
    python -m qnnect.create_admin --email admin@example.edu --name "Admin" [--password secret]

A temporary password is generated and printed when ``--password`` is omitted.
"""
import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError

from qnnect.auth.passwords import MIN_PASSWORD_LENGTH, generate_temp_password, hash_password
from qnnect.database import Base, SessionLocal, engine, ensure_schema
from qnnect.models import appointment, setting, topic  # noqa: F401  registers tables
from qnnect.models.user import ROLE_ADMIN, User
from qnnect.scheduling.availability import default_week
from qnnect.services.slugs import assign_slug


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create or promote a Qnnect admin.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Sistem Yöneticisi")
    parser.add_argument("--password", default=None)
    args = parser.parse_args(argv)

    email = args.email.strip().lower()
    password = args.password or generate_temp_password()
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", file=sys.stderr)
        sys.exit(1)

    db = SessionLocal()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schema()
        admin = db.query(User).filter(User.email == email).first()
        if admin is None:
            admin = User(name=args.name.strip(), email=email, availability=default_week())
            db.add(admin)
            db.flush()
        admin.role = ROLE_ADMIN
        admin.is_active = True
        admin.hashed_password = hash_password(password)
        if not admin.slug:
            assign_slug(db, admin)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        print(f"Database error: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(f"Admin ready: {email}")
    if not args.password:
        print(f"Temporary password: {password}")


if __name__ == "__main__":
    main()
