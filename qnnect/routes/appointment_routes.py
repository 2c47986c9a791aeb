import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qnnect.auth.dependencies import require_student
from qnnect.core import config
from qnnect.database import database_unavailable, ensure_database_ready, get_db
from qnnect.models.appointment import STATUS_APPROVED, STATUS_CANCELLED, Appointment
from qnnect.models.topic import Topic, active_topics
from qnnect.models.user import ROLE_ADMIN, ROLE_FACULTY, ROLE_STUDENT, User
from qnnect.routes.schemas import (
    MAX_DESCRIPTION_LENGTH,
    AppointmentResponse,
    FacultyPublicResponse,
    TopicResponse,
    get_faculty_by_slug,
    normalize_email,
    normalize_hhmm,
    normalize_reason,
    normalize_required,
)
from qnnect.scheduling.availability import (
    bookable_slots,
    day_display_name,
    generate_day_slots,
    parse_hhmm,
    weekday_name,
)
from qnnect.services import appointment_workflow
from qnnect.services.google_calendar import remove_appointment_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=['appointments'])

NOT_FOUND_DETAIL = 'Randevu bulunamadı'
INVALID_TOPIC_DETAIL = 'Geçersiz görüşme konusu'
ADVISOR_ONLY_DETAIL = 'Bu görüşme konusu için yalnızca kendi danışmanınızdan randevu alabilirsiniz'


class FacultyDetailResponse(FacultyPublicResponse):
    availability: list[dict]
    slot_duration: int
    google_connected: bool


class SlotResponse(BaseModel):
    start_time: str
    end_time: str
    available: bool
    status: str
    is_booked: bool


class DaySlotsResponse(BaseModel):
    date: date
    day: str
    day_name: str
    slot_duration: int
    slots: list[SlotResponse]


class CreateAppointmentRequest(BaseModel):
    faculty_id: int
    student_name: str
    student_number: str
    student_email: str
    topic: str
    description: str | None = None
    date: date
    start_time: str
    end_time: str

    @field_validator('student_name', 'student_number', 'topic')
    @classmethod
    def validate_required(cls, value: str) -> str:
        return normalize_required(value)

    @field_validator('student_email')
    @classmethod
    def validate_student_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f'Açıklama en fazla {MAX_DESCRIPTION_LENGTH} karakter olabilir')

        return normalized

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_hhmm(value)


class StudentCancelRequest(BaseModel):
    student_email: str
    reason: str | None = None

    @field_validator('student_email')
    @classmethod
    def validate_student_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_reason(value)


def taken_ranges(db: Session, faculty_id: int, target_date: date) -> list[tuple[str, str]]:
    rows = db.query(Appointment.start_time, Appointment.end_time).filter(
        Appointment.faculty_id == faculty_id,
        Appointment.date == target_date,
        Appointment.status.in_(appointment_workflow.ACTIVE_STATUSES),
    ).all()
    return [(start_time, end_time) for start_time, end_time in rows]


def public_availability(faculty: User) -> list[dict]:
    return [day for day in faculty.availability or [] if day.get('isActive')]


def faculty_slot_duration(faculty: User) -> int:
    return faculty.slot_duration or config.DEFAULT_SLOT_DURATION_MINUTES


@router.get('/faculty-list', response_model=list[FacultyPublicResponse])
def list_faculty(
    department: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(User).filter(
            User.role == ROLE_FACULTY,
            User.is_active.is_(True),
            User.slug.isnot(None),
        )
        if department:
            query = query.filter(User.department == department.strip())
        return query.order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/faculty/{slug}', response_model=FacultyDetailResponse)
def get_faculty(slug: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        faculty = get_faculty_by_slug(db, slug)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return {
        **FacultyPublicResponse.model_validate(faculty).model_dump(),
        'availability': public_availability(faculty),
        'slot_duration': faculty_slot_duration(faculty),
        'google_connected': faculty.google_connected,
    }


@router.get('/faculty/{slug}/slots', response_model=DaySlotsResponse)
def get_faculty_slots(
    slug: str,
    slot_date: date | None = Query(default=None, alias='date'),
    db: Session = Depends(get_db),
):
    if slot_date is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Tarih parametresi gerekli')

    ensure_database_ready()

    try:
        faculty = get_faculty_by_slug(db, slug)
        slot_duration = faculty_slot_duration(faculty)
        slots = bookable_slots(
            faculty.availability,
            slot_date,
            slot_duration,
            taken_ranges(db, faculty.id, slot_date),
            datetime.now(),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    day = weekday_name(slot_date)
    return {
        'date': slot_date,
        'day': day,
        'day_name': day_display_name(day),
        'slot_duration': slot_duration,
        'slots': slots,
    }


@router.get('/topics', response_model=list[TopicResponse])
def list_topics(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return active_topics(db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/departments', response_model=list[str])
def list_departments(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        rows = db.query(User.department).filter(
            User.role.in_((ROLE_FACULTY, ROLE_ADMIN)),
            User.is_active.is_(True),
            User.slug.isnot(None),
            User.department.isnot(None),
            User.department != '',
        ).distinct().order_by(User.department.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [department for (department,) in rows]


def check_topic(db: Session, topic_name: str, faculty: User, student_email: str) -> Topic:
    """Resolve the requested topic; advisor-only topics need the student's own advisor."""
    topic = db.query(Topic).filter(Topic.name == topic_name, Topic.is_active.is_(True)).first()
    if topic is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_TOPIC_DETAIL)

    if topic.is_advisor_only:
        student = db.query(User).filter(User.email == student_email, User.role == ROLE_STUDENT).first()
        if student is None or student.advisor_id != faculty.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ADVISOR_ONLY_DETAIL)
    return topic


@router.post('/', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    start_at = datetime.combine(data.date, parse_hhmm(data.start_time))
    if parse_hhmm(data.start_time) >= parse_hhmm(data.end_time):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Başlangıç saati bitiş saatinden önce olmalıdır',
        )
    if start_at <= datetime.now():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Randevu saati gelecekte olmalıdır')

    ensure_database_ready()

    try:
        faculty = db.query(User).filter(
            User.id == data.faculty_id,
            User.role.in_((ROLE_FACULTY, ROLE_ADMIN)),
            User.is_active.is_(True),
        ).first()
        if faculty is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Öğretim elemanı bulunamadı')

        check_topic(db, data.topic, faculty, data.student_email)

        offered = generate_day_slots(faculty.availability, data.date, faculty_slot_duration(faculty))
        if (data.start_time, data.end_time) not in offered:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Bu saatte müsait slot bulunmamaktadır',
            )

        collision = appointment_workflow.find_collision(
            db, faculty.id, data.date, data.start_time, data.end_time,
        )
        if collision is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Bu saat için zaten bir randevu talebi bulunmaktadır',
            )

        appointment = Appointment(
            student_name=data.student_name,
            student_number=data.student_number,
            student_email=data.student_email,
            faculty_id=faculty.id,
            faculty_name=faculty.full_name,
            topic=data.topic,
            description=data.description,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Appointment %s requested with faculty %s', appointment.id, faculty.id)
    return appointment


@router.get('/check/{appointment_id}', response_model=AppointmentResponse)
def check_appointment(
    appointment_id: int,
    student_email: str = Query(...),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.student_email == student_email.strip().lower(),
        ).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)
    return appointment


@router.get('/student', response_model=list[AppointmentResponse])
def list_student_appointments(
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return db.query(Appointment).filter(
            Appointment.student_email == current_user.email,
        ).order_by(Appointment.date.desc(), Appointment.start_time.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: StudentCancelRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.student_email == data.student_email,
        ).first()
        if appointment is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)

        if not appointment_workflow.can_transition(appointment.status, STATUS_CANCELLED):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=appointment_workflow.INVALID_TRANSITION_DETAIL,
            )

        if not appointment_workflow.can_student_cancel(appointment):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Randevu iptal edilemez ({config.STUDENT_CANCEL_CUTOFF_HOURS} saatten az kaldı)',
            )

        was_approved = appointment.status == STATUS_APPROVED
        appointment_workflow.transition(
            appointment, STATUS_CANCELLED, appointment_workflow.ACTOR_STUDENT, reason=data.reason,
        )
        if was_approved:
            faculty = db.query(User).filter(User.id == appointment.faculty_id).first()
            if faculty is not None:
                remove_appointment_event(db, faculty, appointment)

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return appointment
