"""User model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from qnnect.database import Base


ROLE_STUDENT = "student"
ROLE_FACULTY = "faculty"
ROLE_ADMIN = "admin"
ROLES = (ROLE_STUDENT, ROLE_FACULTY, ROLE_ADMIN)

DEFAULT_TITLE = "Öğretim Elemanı"


class User(Base):
    """Represents a student, faculty member or admin."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String)
    role = Column(String, default=ROLE_STUDENT)  # student/faculty/admin
    student_number = Column(String, unique=True)
    department = Column(String)
    title = Column(String, default=DEFAULT_TITLE)
    office = Column(String)
    phone = Column(String)
    website = Column(String)
    slug = Column(String, unique=True, index=True)
    picture = Column(String)
    is_active = Column(Boolean, default=True)
    is_first_login = Column(Boolean, default=True)
    last_login = Column(DateTime)

    # Weekly schedule: [{day, isActive, timeSlots: [{start, end, isAvailable, ...}]}]
    availability = Column(JSON, default=list)
    slot_duration = Column(Integer, default=15)
    qr_code_url = Column(String)

    google_id = Column(String, unique=True)
    google_access_token = Column(String)
    google_refresh_token = Column(String)
    google_token_expiry = Column(DateTime)
    calendar_id = Column(String, default="primary")

    advisor_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.now)

    @property
    def full_name(self) -> str:
        return f"{self.title or DEFAULT_TITLE} {self.name}"

    @property
    def google_connected(self) -> bool:
        return bool(self.google_access_token or self.google_id)
