import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qnnect.auth.dependencies import require_admin
from qnnect.auth.passwords import generate_temp_password, hash_password
from qnnect.core import config
from qnnect.database import database_unavailable, ensure_database_ready, get_db
from qnnect.models.appointment import STATUS_APPROVED, STATUS_CANCELLED, STATUSES, Appointment
from qnnect.models.setting import APPOINTMENT_TIMEOUT_HOURS, SLOT_DURATION, get_setting, set_setting
from qnnect.models.topic import (
    MAX_TOPIC_DESCRIPTION_LENGTH,
    MAX_TOPIC_NAME_LENGTH,
    Topic,
    active_topics,
    next_topic_order,
)
from qnnect.models.user import DEFAULT_TITLE, ROLE_ADMIN, ROLE_FACULTY, ROLE_STUDENT, ROLES, User
from qnnect.routes.faculty_routes import apply_availability_update, approve, availability_payload
from qnnect.routes.schemas import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    AppointmentPage,
    AppointmentResponse,
    AvailabilityResponse,
    MessageResponse,
    TopicResponse,
    UpdateAvailabilityRequest,
    UserPage,
    UserResponse,
    normalize_email,
    normalize_optional,
    normalize_reason,
    normalize_required,
    paginate,
)
from qnnect.scheduling.availability import AvailabilityError, default_week, validate_slot_duration
from qnnect.services import appointment_workflow
from qnnect.services.export import appointments_csv
from qnnect.services.google_calendar import remove_appointment_event
from qnnect.services.qr_codes import appointment_url
from qnnect.services.slugs import assign_slug, unique_slug

logger = logging.getLogger(__name__)

router = APIRouter(tags=['admin'])

USER_NOT_FOUND_DETAIL = 'Kullanıcı bulunamadı'
APPOINTMENT_NOT_FOUND_DETAIL = 'Randevu bulunamadı'
DUPLICATE_EMAIL_DETAIL = 'Bu e-posta adresi zaten kayıtlı'
TOPIC_NOT_FOUND_DETAIL = 'Konu bulunamadı'
DUPLICATE_TOPIC_DETAIL = 'Bu isimde bir konu zaten mevcut'

SETTING_DESCRIPTIONS = {
    APPOINTMENT_TIMEOUT_HOURS: 'Bekleyen randevuların otomatik olarak kapatılacağı süre (saat)',
    SLOT_DURATION: 'Yeni öğretim elemanları için varsayılan slot süresi (dakika)',
}


class CreateFacultyRequest(BaseModel):
    name: str
    email: str
    title: str | None = None
    department: str | None = None
    office: str | None = None
    phone: str | None = None
    website: str | None = None
    password: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_required(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('title', 'department', 'office', 'phone', 'website', 'password')
    @classmethod
    def validate_optional(cls, value: str | None) -> str | None:
        return normalize_optional(value)


class CreateFacultyResponse(BaseModel):
    user: UserResponse
    temporary_password: str | None = None


class UpdateUserRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None
    title: str | None = None
    department: str | None = None
    office: str | None = None
    phone: str | None = None
    website: str | None = None
    student_number: str | None = None
    is_active: bool | None = None
    advisor_id: int | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_required(value)

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_email(value)

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in ROLES:
            raise ValueError('Geçersiz rol')
        return normalized

    @field_validator('title', 'department', 'office', 'phone', 'website', 'student_number')
    @classmethod
    def validate_optional(cls, value: str | None) -> str | None:
        return normalize_optional(value)


class ResetPasswordResponse(BaseModel):
    message: str
    temporary_password: str


class StatusUpdateRequest(BaseModel):
    status: str
    reason: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in STATUSES:
            raise ValueError('Geçersiz randevu durumu')
        return normalized

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_reason(value)


class AdminStatsResponse(BaseModel):
    users: dict[str, int]
    appointments: dict[str, int]
    google_connected_faculty: int


class SettingResponse(BaseModel):
    key: str
    value: int | float | str | bool | None = None
    description: str | None = None


class SettingUpdateRequest(BaseModel):
    value: int | float | None = None


class ExpireResponse(BaseModel):
    expired: int
    timeout_hours: float | None = None


def normalize_topic_name(value: str) -> str:
    normalized = normalize_required(value)
    if len(normalized) > MAX_TOPIC_NAME_LENGTH:
        raise ValueError(f'Konu adı en fazla {MAX_TOPIC_NAME_LENGTH} karakter olabilir')
    return normalized


def normalize_topic_description(value: str | None) -> str | None:
    normalized = normalize_optional(value)
    if normalized and len(normalized) > MAX_TOPIC_DESCRIPTION_LENGTH:
        raise ValueError(f'Açıklama en fazla {MAX_TOPIC_DESCRIPTION_LENGTH} karakter olabilir')
    return normalized


class CreateTopicRequest(BaseModel):
    name: str
    description: str | None = None
    is_advisor_only: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_topic_name(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return normalize_topic_description(value)


class UpdateTopicRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    is_advisor_only: bool | None = None
    is_active: bool | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_topic_name(value)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return normalize_topic_description(value)


class TopicOrder(BaseModel):
    id: int
    order: int


class ReorderTopicsRequest(BaseModel):
    topic_orders: list[TopicOrder]


def get_topic_or_404(db: Session, topic_id: int) -> Topic:
    topic = db.query(Topic).filter(Topic.id == topic_id).first()
    if topic is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TOPIC_NOT_FOUND_DETAIL)
    return topic


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND_DETAIL)
    return user


def get_appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=APPOINTMENT_NOT_FOUND_DETAIL)
    return appointment


def get_faculty_or_404(db: Session, faculty_id: int) -> User:
    faculty = db.query(User).filter(User.id == faculty_id, User.role.in_((ROLE_FACULTY, ROLE_ADMIN))).first()
    if faculty is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Öğretim elemanı bulunamadı')
    return faculty


def validate_setting_value(key: str, value):
    if key == APPOINTMENT_TIMEOUT_HOURS:
        if value is not None and value < 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Süre negatif olamaz')
        return value
    if value is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Değer zorunludur')
    try:
        return validate_slot_duration(int(value))
    except AvailabilityError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.errors[0]) from exc


def filtered_appointments(
    db: Session,
    appointment_status: str | None,
    faculty_id: int | None,
    date_from: date | None,
    date_to: date | None,
):
    query = db.query(Appointment)
    if appointment_status:
        query = query.filter(Appointment.status == appointment_status)
    if faculty_id is not None:
        query = query.filter(Appointment.faculty_id == faculty_id)
    if date_from:
        query = query.filter(Appointment.date >= date_from)
    if date_to:
        query = query.filter(Appointment.date <= date_to)
    return query.order_by(Appointment.date.desc(), Appointment.start_time.asc())


@router.get('/users', response_model=UserPage)
def list_users(
    role: str | None = Query(default=None),
    search: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(User)
        if role:
            query = query.filter(User.role == role.strip().lower())
        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.student_number.ilike(pattern),
            ))
        return paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/users/{user_id}', response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_user_or_404(db, user_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/users/faculty', response_model=CreateFacultyResponse, status_code=status.HTTP_201_CREATED)
def create_faculty(
    data: CreateFacultyRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    temporary_password = None if data.password else generate_temp_password()

    try:
        if db.query(User).filter(User.email == data.email).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_EMAIL_DETAIL)

        slug = unique_slug(db, data.name)

        faculty = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password or temporary_password),
            role=ROLE_FACULTY,
            title=data.title or DEFAULT_TITLE,
            department=data.department,
            office=data.office,
            phone=data.phone,
            website=data.website,
            slug=slug,
            qr_code_url=appointment_url(slug),
            availability=default_week(),
            slot_duration=get_setting(db, SLOT_DURATION, config.DEFAULT_SLOT_DURATION_MINUTES),
            is_first_login=True,
        )
        db.add(faculty)
        db.commit()
        db.refresh(faculty)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Admin %s created faculty %s', current_user.id, faculty.id)
    return {'user': faculty, 'temporary_password': temporary_password}


@router.put('/users/{user_id}', response_model=UserResponse)
def update_user(
    user_id: int,
    data: UpdateUserRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        user = get_user_or_404(db, user_id)
        updates = data.model_dump(exclude_unset=True)

        if updates.get('email') and updates['email'] != user.email:
            if db.query(User).filter(User.email == updates['email'], User.id != user.id).first():
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_EMAIL_DETAIL)

        if user.id == current_user.id and (updates.get('role') not in (None, ROLE_ADMIN) or updates.get('is_active') is False):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Kendi yetkinizi veya hesabınızı devre dışı bırakamazsınız',
            )

        if updates.get('advisor_id') is not None:
            advisor = db.query(User).filter(User.id == updates['advisor_id'], User.role == ROLE_FACULTY).first()
            if advisor is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Danışman öğretim elemanı bulunamadı')

        for field in ('name', 'email', 'role', 'is_active'):
            if field in updates and updates[field] is None:
                del updates[field]

        new_role = updates.get('role', user.role)
        if new_role in (ROLE_FACULTY, ROLE_ADMIN):
            if not user.slug or (updates.get('name') and updates['name'] != user.name):
                assign_slug(db, user, updates.get('name'))
            if not user.availability:
                user.availability = default_week()
        elif new_role == ROLE_STUDENT:
            user.slug = None
            user.qr_code_url = None

        for field, value in updates.items():
            setattr(user, field, value)

        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return user


@router.delete('/users/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Kendi hesabınızı silemezsiniz')

    ensure_database_ready()

    try:
        user = get_user_or_404(db, user_id)
        has_appointments = db.query(Appointment.id).filter(
            or_(Appointment.faculty_id == user.id, Appointment.student_email == user.email),
        ).first()
        if has_appointments:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Randevusu bulunan kullanıcı silinemez. Bunun yerine hesabı devre dışı bırakın.',
            )

        db.query(User).filter(User.advisor_id == user.id).update({User.advisor_id: None})
        db.delete(user)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Admin %s deleted user %s', current_user.id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post('/users/{user_id}/reset-password', response_model=ResetPasswordResponse)
def reset_password(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    temporary_password = generate_temp_password()
    try:
        user = get_user_or_404(db, user_id)
        user.hashed_password = hash_password(temporary_password)
        user.is_first_login = True
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'message': 'Şifre sıfırlandı', 'temporary_password': temporary_password}


@router.get('/appointments', response_model=AppointmentPage)
def list_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    faculty_id: int | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = filtered_appointments(db, appointment_status, faculty_id, date_from, date_to)
        return paginate(query, page, limit)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/appointments/expire', response_model=ExpireResponse)
def expire_appointments(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        timeout_hours = appointment_workflow.resolve_timeout_hours(db)
        expired = appointment_workflow.expire_pending_appointments(db, timeout_hours=timeout_hours)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'expired': expired, 'timeout_hours': timeout_hours}


@router.get('/appointments/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_appointment_or_404(db, appointment_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/appointments/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: StatusUpdateRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
        faculty = db.query(User).filter(User.id == appointment.faculty_id).first()

        if not appointment_workflow.can_transition(appointment.status, data.status):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=appointment_workflow.INVALID_TRANSITION_DETAIL,
            )

        if data.status == STATUS_APPROVED and faculty is not None:
            approve(db, faculty, appointment, appointment_workflow.ACTOR_ADMIN)
        else:
            was_approved = appointment.status == STATUS_APPROVED
            appointment_workflow.transition(
                appointment, data.status, appointment_workflow.ACTOR_ADMIN, reason=data.reason,
            )
            if was_approved and data.status == STATUS_CANCELLED and faculty is not None:
                remove_appointment_event(db, faculty, appointment)

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Admin %s set appointment %s to %s', current_user.id, appointment.id, appointment.status)
    return appointment


@router.get('/stats', response_model=AdminStatsResponse)
def get_stats(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        users = {role: 0 for role in ROLES}
        for role, count in db.query(User.role, func.count(User.id)).group_by(User.role).all():
            users[role] = count
        users['total'] = sum(users[role] for role in ROLES)

        google_connected = db.query(User).filter(
            User.role == ROLE_FACULTY,
            User.google_access_token.isnot(None),
        ).count()
        appointments = appointment_workflow.status_counts(db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return {'users': users, 'appointments': appointments, 'google_connected_faculty': google_connected}


@router.get('/export/appointments')
def export_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    faculty_id: int | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointments = filtered_appointments(db, appointment_status, faculty_id, date_from, date_to).all()
        departments = dict(db.query(User.id, User.department).filter(User.role.in_((ROLE_FACULTY, ROLE_ADMIN))).all())
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    filename = f'randevular-{date.today().isoformat()}.csv'
    return Response(
        content=appointments_csv(appointments, departments),
        media_type='text/csv; charset=utf-8',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


@router.get('/settings/{key}', response_model=SettingResponse)
def get_system_setting(
    key: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if key not in SETTING_DESCRIPTIONS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Ayar bulunamadı')

    ensure_database_ready()

    try:
        value = get_setting(db, key)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if value is None and key == SLOT_DURATION:
        value = config.DEFAULT_SLOT_DURATION_MINUTES
    return {'key': key, 'value': value, 'description': SETTING_DESCRIPTIONS[key]}


@router.put('/settings/{key}', response_model=SettingResponse)
def update_system_setting(
    key: str,
    data: SettingUpdateRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if key not in SETTING_DESCRIPTIONS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Ayar bulunamadı')

    value = validate_setting_value(key, data.value)

    ensure_database_ready()

    try:
        setting = set_setting(db, key, value, user_id=current_user.id, description=SETTING_DESCRIPTIONS[key])
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'key': setting.key, 'value': setting.value, 'description': setting.description}


@router.get('/faculty/{faculty_id}/availability', response_model=AvailabilityResponse)
def get_faculty_availability(
    faculty_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        faculty = get_faculty_or_404(db, faculty_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return availability_payload(faculty)


@router.put('/faculty/{faculty_id}/availability', response_model=AvailabilityResponse)
def update_faculty_availability(
    faculty_id: int,
    data: UpdateAvailabilityRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        faculty = get_faculty_or_404(db, faculty_id)
        apply_availability_update(faculty, data)
        db.commit()
        db.refresh(faculty)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Admin %s updated availability of faculty %s', current_user.id, faculty.id)
    return availability_payload(faculty)


@router.get('/topics', response_model=list[TopicResponse])
def list_all_topics(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return db.query(Topic).order_by(Topic.order.asc(), Topic.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/topics', response_model=TopicResponse, status_code=status.HTTP_201_CREATED)
def create_topic(
    data: CreateTopicRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        if db.query(Topic).filter(Topic.name == data.name).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_TOPIC_DETAIL)

        topic = Topic(
            name=data.name,
            description=data.description,
            is_advisor_only=data.is_advisor_only,
            is_active=True,
            order=next_topic_order(db),
        )
        db.add(topic)
        db.commit()
        db.refresh(topic)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Admin %s created topic %s', current_user.id, topic.id)
    return topic


@router.put('/topics/reorder', response_model=list[TopicResponse])
def reorder_topics(
    data: ReorderTopicsRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        for item in data.topic_orders:
            db.query(Topic).filter(Topic.id == item.id).update({Topic.order: item.order})
        db.commit()
        return active_topics(db)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/topics/{topic_id}', response_model=TopicResponse)
def update_topic(
    topic_id: int,
    data: UpdateTopicRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        topic = get_topic_or_404(db, topic_id)
        updates = data.model_dump(exclude_unset=True)

        if updates.get('name') and updates['name'] != topic.name:
            if db.query(Topic).filter(Topic.name == updates['name'], Topic.id != topic.id).first():
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_TOPIC_DETAIL)

        for field, value in updates.items():
            if value is None and field != 'description':
                continue
            setattr(topic, field, value)

        db.commit()
        db.refresh(topic)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return topic


@router.delete('/topics/{topic_id}', response_model=MessageResponse)
def delete_topic(
    topic_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        topic = get_topic_or_404(db, topic_id)
        topic.is_active = False
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Admin %s deactivated topic %s', current_user.id, topic_id)
    return {'message': 'Konu başarıyla silindi'}
