"""Request and response models shared by several routers."""

import math
import re
from datetime import date, datetime

from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.orm import Query, Session

from qnnect.models.user import ROLE_ADMIN, ROLE_FACULTY, User
from qnnect.scheduling.availability import is_valid_hhmm

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MAX_DESCRIPTION_LENGTH = 500
MAX_REASON_LENGTH = 200
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError('Geçerli bir e-posta adresi giriniz')
    return normalized


def normalize_required(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Tüm alanlar zorunludur')
    return normalized


def normalize_optional(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def normalize_reason(value: str | None) -> str | None:
    normalized = normalize_optional(value)
    if normalized and len(normalized) > MAX_REASON_LENGTH:
        raise ValueError(f'Açıklama en fazla {MAX_REASON_LENGTH} karakter olabilir')
    return normalized


def normalize_hhmm(value: str) -> str:
    if not is_valid_hhmm(value):
        raise ValueError('Geçerli bir saat formatı giriniz (HH:MM)')
    hour, minute = value.strip().split(':')
    return f'{int(hour):02d}:{minute}'


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    student_number: str | None = None
    department: str | None = None
    title: str | None = None
    office: str | None = None
    phone: str | None = None
    website: str | None = None
    slug: str | None = None
    picture: str | None = None
    is_active: bool = True
    is_first_login: bool = False
    last_login: datetime | None = None
    slot_duration: int | None = None
    qr_code_url: str | None = None
    google_connected: bool = False
    calendar_id: str | None = None
    advisor_id: int | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class FacultyPublicResponse(BaseModel):
    id: int
    name: str
    full_name: str
    title: str | None = None
    department: str | None = None
    office: str | None = None
    email: str
    phone: str | None = None
    website: str | None = None
    slug: str | None = None
    picture: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AppointmentResponse(BaseModel):
    id: int
    student_name: str
    student_number: str
    student_email: str
    faculty_id: int
    faculty_name: str | None = None
    topic: str
    description: str | None = None
    date: date
    start_time: str
    end_time: str
    status: str
    status_label: str
    rejection_reason: str | None = None
    google_event_id: str | None = None
    google_meet_link: str | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class TopicResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    is_advisor_only: bool = False
    is_active: bool = True
    order: int = 0

    model_config = ConfigDict(from_attributes=True)


class AppointmentPage(BaseModel):
    items: list[AppointmentResponse]
    total: int
    page: int
    limit: int
    pages: int


class UserPage(BaseModel):
    items: list[UserResponse]
    total: int
    page: int
    limit: int
    pages: int


class AvailabilityResponse(BaseModel):
    availability: list[dict]
    slot_duration: int


class UpdateAvailabilityRequest(BaseModel):
    availability: list[dict]
    slot_duration: int | None = None


class CancelRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_reason(value)


class MessageResponse(BaseModel):
    message: str


def paginate(query: Query, page: int, limit: int) -> dict:
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        'items': items,
        'total': total,
        'page': page,
        'limit': limit,
        'pages': math.ceil(total / limit) if total else 0,
    }


def get_faculty_by_slug(db: Session, slug: str) -> User:
    faculty = db.query(User).filter(
        User.slug == slug.strip().lower(),
        User.role.in_((ROLE_FACULTY, ROLE_ADMIN)),
        User.is_active.is_(True),
    ).first()
    if faculty is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Öğretim elemanı bulunamadı')
    return faculty
