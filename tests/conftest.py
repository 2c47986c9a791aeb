import os
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from qnnect.auth.passwords import hash_password  # noqa: E402
from qnnect.database import Base  # noqa: E402
from qnnect.models.appointment import STATUS_PENDING, Appointment  # noqa: E402
from qnnect.models.setting import SystemSetting  # noqa: E402
from qnnect.models.topic import Topic, seed_default_topics  # noqa: E402
from qnnect.models.user import ROLE_ADMIN, ROLE_FACULTY, ROLE_STUDENT, User  # noqa: E402
from qnnect.scheduling.availability import WEEKDAYS  # noqa: E402

ROUTE_MODULES = (
    'qnnect.routes.admin_routes',
    'qnnect.routes.appointment_routes',
    'qnnect.routes.auth_routes',
    'qnnect.routes.faculty_routes',
    'qnnect.routes.google_routes',
    'qnnect.routes.qr_routes',
)


def full_week(*ranges: tuple[str, str]) -> list[dict]:
    ranges = ranges or (('09:00', '12:00'),)
    return [
        {
            'day': day,
            'isActive': True,
            'timeSlots': [
                {
                    'start': start,
                    'end': end,
                    'isAvailable': True,
                    'manuallyUnavailable': False,
                    'hasConflict': False,
                    'conflictReason': None,
                }
                for start, end in ranges
            ],
        }
        for day in WEEKDAYS
    ]


@pytest.fixture
def appointment_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, Appointment.__table__, SystemSetting.__table__, Topic.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    db = testing_session_local()
    seed_default_topics(db)
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    for module in ROUTE_MODULES:
        monkeypatch.setattr(f'{module}.ensure_database_ready', lambda: None)


@pytest.fixture
def future_date() -> date:
    return date.today() + timedelta(days=7)


@pytest.fixture
def make_user(appointment_db):
    def _make_user(role: str = ROLE_STUDENT, password: str | None = None, **fields) -> User:
        defaults = {
            'name': 'Ali Veli',
            'email': f'{role}{appointment_db.query(User).count() + 1}@uni.edu.tr',
            'role': role,
            'is_active': True,
        }
        if role in (ROLE_FACULTY, ROLE_ADMIN):
            defaults.update({
                'name': 'Ayşe Yılmaz',
                'title': 'Dr. Öğr. Üyesi',
                'department': 'Bilgisayar Mühendisliği',
                'slug': f'faculty-{appointment_db.query(User).count() + 1}',
                'availability': full_week(),
                'slot_duration': 15,
            })
        else:
            defaults['student_number'] = f'2020{appointment_db.query(User).count() + 1:04d}'
        defaults.update(fields)
        if password is not None:
            defaults['hashed_password'] = hash_password(password)

        user = User(**defaults)
        appointment_db.add(user)
        appointment_db.commit()
        appointment_db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def faculty(make_user) -> User:
    return make_user(ROLE_FACULTY, slug='ayse-yilmaz')


@pytest.fixture
def make_appointment(appointment_db, future_date):
    def _make_appointment(faculty: User, **fields) -> Appointment:
        values = {
            'student_name': 'Ali Veli',
            'student_number': '20201234',
            'student_email': 'ali@uni.edu.tr',
            'faculty_id': faculty.id,
            'faculty_name': faculty.full_name,
            'topic': 'Akademik danışmanlık',
            'date': future_date,
            'start_time': '09:00',
            'end_time': '09:15',
            'status': STATUS_PENDING,
            'created_at': datetime.now(),
        }
        values.update(fields)
        appointment = Appointment(**values)
        appointment_db.add(appointment)
        appointment_db.commit()
        appointment_db.refresh(appointment)
        return appointment

    return _make_appointment
