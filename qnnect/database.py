from threading import Lock

from fastapi import HTTPException, status
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from qnnect.core import config


DATABASE_UNAVAILABLE_DETAIL = 'Veritabanına ulaşılamıyor. DATABASE_URL ayarını kontrol edin.'

engine = create_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schema_checked = False


def _add_missing_columns(connection, inspector, table_name: str, migration_steps: list[tuple[str, str]]) -> None:
    existing_columns = {column['name'] for column in inspector.get_columns(table_name)}
    for column_name, statement in migration_steps:
        if column_name not in existing_columns:
            connection.execute(text(statement))


def ensure_schema() -> None:
    global _schema_checked

    if _schema_checked:
        return

    with _schema_lock:
        if _schema_checked:
            return

        inspector = inspect(engine)
        table_names = inspector.get_table_names()

        with engine.begin() as connection:
            if 'users' in table_names:
                _add_missing_columns(connection, inspector, 'users', [
                    ('calendar_id', "ALTER TABLE users ADD COLUMN calendar_id VARCHAR DEFAULT 'primary'"),
                    ('advisor_id', 'ALTER TABLE users ADD COLUMN advisor_id INTEGER'),
                    ('is_first_login', 'ALTER TABLE users ADD COLUMN is_first_login BOOLEAN DEFAULT TRUE'),
                ])
                connection.execute(text('CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)'))
                connection.execute(text('CREATE INDEX IF NOT EXISTS idx_users_department ON users(department)'))

            if 'appointments' in table_names:
                _add_missing_columns(connection, inspector, 'appointments', [
                    ('google_meet_link', 'ALTER TABLE appointments ADD COLUMN google_meet_link VARCHAR'),
                    ('cancelled_by', 'ALTER TABLE appointments ADD COLUMN cancelled_by VARCHAR'),
                    ('cancelled_at', 'ALTER TABLE appointments ADD COLUMN cancelled_at TIMESTAMP'),
                    ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR'),
                ])
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appointments_faculty_date ON appointments(faculty_id, date)')
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status)')
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appointments_student_email ON appointments(student_email)')
                )

        _schema_checked = True


def ensure_database_ready() -> None:
    try:
        ensure_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
