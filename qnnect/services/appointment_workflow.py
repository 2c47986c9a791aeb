"""Appointment status workflow.

The request lifecycle is a small state machine::

    pending  -> approved | rejected | cancelled | no_response
    approved -> cancelled

Every other state is terminal.
"""

import logging
from datetime import date, datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from qnnect.core import config
from qnnect.models.appointment import (
    ACTIVE_STATUSES,
    STATUS_APPROVED,
    STATUS_CANCELLED,
    STATUS_NO_RESPONSE,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUSES,
    Appointment,
)
from qnnect.models.setting import APPOINTMENT_TIMEOUT_HOURS, get_setting
from qnnect.scheduling.availability import parse_hhmm

logger = logging.getLogger(__name__)

ACTOR_STUDENT = 'student'
ACTOR_FACULTY = 'faculty'
ACTOR_ADMIN = 'admin'
ACTOR_SYSTEM = 'system'

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_APPROVED, STATUS_REJECTED, STATUS_CANCELLED, STATUS_NO_RESPONSE},
    STATUS_APPROVED: {STATUS_CANCELLED},
}

INVALID_TRANSITION_DETAIL = 'Bu randevu için geçersiz durum değişikliği'
NO_RESPONSE_REASON = (
    'Öğretim üyesi belirlenen süre içinde yanıt vermediği için '
    'sistem tarafından otomatik olarak kapatıldı.'
)


def can_transition(current_status: str, new_status: str) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(current_status, set())


def transition(
    appointment: Appointment,
    new_status: str,
    actor: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    if not can_transition(appointment.status, new_status):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_TRANSITION_DETAIL)

    now = now or datetime.now()
    appointment.status = new_status

    if new_status == STATUS_REJECTED:
        appointment.rejection_reason = reason
    elif new_status == STATUS_CANCELLED:
        appointment.cancelled_by = actor
        appointment.cancelled_at = now
        appointment.cancellation_reason = reason
    elif new_status == STATUS_NO_RESPONSE:
        appointment.cancelled_by = ACTOR_SYSTEM
        appointment.cancelled_at = now
        appointment.cancellation_reason = reason or NO_RESPONSE_REASON

    appointment.updated_at = now
    return appointment


def appointment_start(appointment: Appointment) -> datetime:
    return datetime.combine(appointment.date, parse_hhmm(appointment.start_time))


def find_collision(
    db: Session,
    faculty_id: int,
    appointment_date: date,
    start_time: str,
    end_time: str,
    statuses=ACTIVE_STATUSES,
    exclude_id: int | None = None,
) -> Appointment | None:
    # HH:MM strings are zero padded, so string order is time order.
    query = db.query(Appointment).filter(
        Appointment.faculty_id == faculty_id,
        Appointment.date == appointment_date,
        Appointment.status.in_(statuses),
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first()


def can_student_cancel(appointment: Appointment, now: datetime | None = None) -> bool:
    if appointment.status not in ACTIVE_STATUSES:
        return False
    now = now or datetime.now()
    cutoff = timedelta(hours=config.STUDENT_CANCEL_CUTOFF_HOURS)
    return appointment_start(appointment) - now > cutoff


def resolve_timeout_hours(db: Session) -> float | None:
    value = get_setting(db, APPOINTMENT_TIMEOUT_HOURS)
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return None
    return hours if hours > 0 else None


def is_expired(appointment: Appointment, now: datetime, timeout_hours: float | None) -> bool:
    if appointment_start(appointment) <= now:
        return True
    if timeout_hours and appointment.created_at is not None:
        return appointment.created_at <= now - timedelta(hours=timeout_hours)
    return False


def expire_pending_appointments(
    db: Session,
    now: datetime | None = None,
    timeout_hours: float | None = None,
) -> int:
    """Close pending requests nobody answered in time. Returns how many were closed."""
    now = now or datetime.now()
    pending = db.query(Appointment).filter(Appointment.status == STATUS_PENDING).all()

    expired = 0
    for appointment in pending:
        if is_expired(appointment, now, timeout_hours):
            transition(appointment, STATUS_NO_RESPONSE, ACTOR_SYSTEM, now=now)
            expired += 1

    if expired:
        db.commit()
        logger.info('Marked %s pending appointment(s) as no_response', expired)
    return expired


def status_counts(db: Session, faculty_id: int | None = None) -> dict[str, int]:
    query = db.query(Appointment.status, func.count(Appointment.id))
    if faculty_id is not None:
        query = query.filter(Appointment.faculty_id == faculty_id)

    counts = {appointment_status: 0 for appointment_status in STATUSES}
    for appointment_status, count in query.group_by(Appointment.status).all():
        counts[appointment_status] = count
    counts['total'] = sum(counts[appointment_status] for appointment_status in STATUSES)
    return counts
