import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qnnect.auth.dependencies import require_faculty
from qnnect.core import config
from qnnect.database import database_unavailable, ensure_database_ready, get_db
from qnnect.models.appointment import (
    ACTIVE_STATUSES,
    STATUS_APPROVED,
    STATUS_CANCELLED,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUSES,
    Appointment,
)
from qnnect.models.user import User
from qnnect.routes.schemas import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    AppointmentPage,
    AppointmentResponse,
    AvailabilityResponse,
    CancelRequest,
    UpdateAvailabilityRequest,
    UserResponse,
    normalize_optional,
    normalize_reason,
    normalize_required,
    paginate,
)
from qnnect.scheduling.availability import (
    AvailabilityError,
    day_display_name,
    default_week,
    get_day,
    ranges_overlap,
    slot_status,
    validate_availability,
    validate_slot_duration,
    weekday_name,
)
from qnnect.services import appointment_workflow
from qnnect.services.google_calendar import add_appointment_event, remove_appointment_event
from qnnect.services.qr_codes import appointment_url, qr_data_url
from qnnect.services.slugs import assign_slug

logger = logging.getLogger(__name__)

router = APIRouter(tags=['faculty'])

NOT_FOUND_DETAIL = 'Randevu bulunamadı'
APPROVED_COLLISION_DETAIL = 'Bu saatte onaylanmış başka bir randevu bulunmaktadır'


class UpdateProfileRequest(BaseModel):
    name: str | None = None
    title: str | None = None
    department: str | None = None
    office: str | None = None
    phone: str | None = None
    website: str | None = None
    picture: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_required(value)

    @field_validator('title', 'department', 'office', 'phone', 'website', 'picture')
    @classmethod
    def validate_optional(cls, value: str | None) -> str | None:
        return normalize_optional(value)


class RejectRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_reason(value)


class FacultyStatsResponse(BaseModel):
    counts: dict[str, int]
    today: int
    upcoming: int


class SlotStatusResponse(BaseModel):
    start: str
    end: str
    status: str
    display: str
    is_bookable: bool
    count: int
    max: int
    has_conflict: bool = False
    conflict_reason: str | None = None


class DaySlotStatusResponse(BaseModel):
    date: date
    day: str
    day_name: str
    is_active: bool
    slot_duration: int
    slots: list[SlotStatusResponse]


class QRCodeResponse(BaseModel):
    url: str
    qr_code: str
    slug: str


def apply_availability_update(user: User, data: UpdateAvailabilityRequest) -> User:
    try:
        availability = validate_availability(data.availability)
        if data.slot_duration is not None:
            user.slot_duration = validate_slot_duration(data.slot_duration)
    except AvailabilityError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={'message': 'Müsaitlik bilgileri geçersiz', 'errors': exc.errors},
        ) from exc

    # Reassign the whole list so the JSON column is flagged dirty.
    user.availability = availability
    return user


def availability_payload(user: User) -> dict:
    return {
        'availability': user.availability or default_week(),
        'slot_duration': user.slot_duration or config.DEFAULT_SLOT_DURATION_MINUTES,
    }


def get_owned_appointment(db: Session, faculty: User, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.faculty_id == faculty.id,
    ).first()
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)
    return appointment


def approve(db: Session, faculty: User, appointment: Appointment, actor: str) -> Appointment:
    """Approve a pending request and put it on the faculty calendar."""
    if appointment.status != STATUS_PENDING:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Bekleyen randevu bulunamadı')

    collision = appointment_workflow.find_collision(
        db,
        appointment.faculty_id,
        appointment.date,
        appointment.start_time,
        appointment.end_time,
        statuses=(STATUS_APPROVED,),
        exclude_id=appointment.id,
    )
    if collision is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=APPROVED_COLLISION_DETAIL)

    appointment_workflow.transition(appointment, STATUS_APPROVED, actor)
    add_appointment_event(db, faculty, appointment)
    return appointment


@router.get('/profile', response_model=UserResponse)
def get_profile(current_user: User = Depends(require_faculty)):
    return current_user


@router.put('/profile', response_model=UserResponse)
def update_profile(
    data: UpdateProfileRequest,
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        updates = data.model_dump(exclude_unset=True)
        if updates.get('name') and updates['name'] != current_user.name:
            assign_slug(db, current_user, updates['name'])
        for field, value in updates.items():
            if field == 'name' and value is None:
                continue
            setattr(current_user, field, value)

        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return current_user


@router.get('/availability', response_model=AvailabilityResponse)
def get_availability(current_user: User = Depends(require_faculty)):
    return availability_payload(current_user)


@router.put('/availability', response_model=AvailabilityResponse)
def update_availability(
    data: UpdateAvailabilityRequest,
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    apply_availability_update(current_user, data)

    ensure_database_ready()

    try:
        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Faculty %s updated availability', current_user.id)
    return availability_payload(current_user)


@router.get('/appointments', response_model=AppointmentPage)
def list_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    appointment_date: date | None = Query(default=None, alias='date'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    if appointment_status is not None and appointment_status not in STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Geçersiz randevu durumu')

    ensure_database_ready()

    try:
        query = db.query(Appointment).filter(Appointment.faculty_id == current_user.id)
        if appointment_status:
            query = query.filter(Appointment.status == appointment_status)
        if appointment_date:
            query = query.filter(Appointment.date == appointment_date)
        query = query.order_by(Appointment.date.desc(), Appointment.start_time.asc())
        return paginate(query, page, limit)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/appointments/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_owned_appointment(db, current_user, appointment_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/appointments/{appointment_id}/approve', response_model=AppointmentResponse)
def approve_appointment(
    appointment_id: int,
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_appointment(db, current_user, appointment_id)
        approve(db, current_user, appointment, appointment_workflow.ACTOR_FACULTY)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Faculty %s approved appointment %s', current_user.id, appointment.id)
    return appointment


@router.put('/appointments/{appointment_id}/reject', response_model=AppointmentResponse)
def reject_appointment(
    appointment_id: int,
    data: RejectRequest,
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_appointment(db, current_user, appointment_id)
        if appointment.status != STATUS_PENDING:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Bekleyen randevu bulunamadı')

        appointment_workflow.transition(
            appointment, STATUS_REJECTED, appointment_workflow.ACTOR_FACULTY, reason=data.reason,
        )
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return appointment


@router.put('/appointments/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelRequest,
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_appointment(db, current_user, appointment_id)
        was_approved = appointment.status == STATUS_APPROVED
        appointment_workflow.transition(
            appointment, STATUS_CANCELLED, appointment_workflow.ACTOR_FACULTY, reason=data.reason,
        )
        if was_approved:
            remove_appointment_event(db, current_user, appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return appointment


@router.get('/stats', response_model=FacultyStatsResponse)
def get_stats(
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        today = date.today()
        now_hhmm = datetime.now().strftime('%H:%M')
        counts = appointment_workflow.status_counts(db, faculty_id=current_user.id)
        today_count = db.query(Appointment).filter(
            Appointment.faculty_id == current_user.id,
            Appointment.date == today,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).count()
        upcoming = db.query(Appointment).filter(
            Appointment.faculty_id == current_user.id,
            Appointment.status == STATUS_APPROVED,
            (Appointment.date > today) | ((Appointment.date == today) & (Appointment.start_time > now_hhmm)),
        ).count()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return {'counts': counts, 'today': today_count, 'upcoming': upcoming}


@router.get('/slots/{slot_date}', response_model=DaySlotStatusResponse)
def get_slot_status(
    slot_date: date,
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    day = weekday_name(slot_date)
    day_entry = get_day(current_user.availability, day) or {'isActive': False, 'timeSlots': []}
    slot_duration = current_user.slot_duration or config.DEFAULT_SLOT_DURATION_MINUTES

    try:
        approved = db.query(Appointment.start_time, Appointment.end_time).filter(
            Appointment.faculty_id == current_user.id,
            Appointment.date == slot_date,
            Appointment.status == STATUS_APPROVED,
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    slots = []
    for slot in day_entry.get('timeSlots') or []:
        confirmed = sum(
            1 for start_time, end_time in approved
            if ranges_overlap(slot['start'], slot['end'], start_time, end_time)
        )
        slots.append({
            'start': slot['start'],
            'end': slot['end'],
            **slot_status(slot, confirmed, slot_duration),
            'has_conflict': bool(slot.get('hasConflict')),
            'conflict_reason': slot.get('conflictReason'),
        })

    return {
        'date': slot_date,
        'day': day,
        'day_name': day_display_name(day),
        'is_active': bool(day_entry.get('isActive')),
        'slot_duration': slot_duration,
        'slots': slots,
    }


@router.get('/qr-code', response_model=QRCodeResponse)
def get_qr_code(
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    return generate_qr_code(current_user=current_user, db=db)


@router.post('/qr-code', response_model=QRCodeResponse)
def generate_qr_code(
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        if not current_user.slug:
            assign_slug(db, current_user)
        url = appointment_url(current_user.slug)
        current_user.qr_code_url = url
        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'url': url, 'qr_code': qr_data_url(url), 'slug': current_user.slug}
