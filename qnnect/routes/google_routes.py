import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import jwt
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qnnect.auth.dependencies import require_faculty
from qnnect.core import config
from qnnect.database import database_unavailable, ensure_database_ready, get_db
from qnnect.models.user import User
from qnnect.scheduling.overlap import resolve_conflicts, sample_events, week_start, weekly_overview
from qnnect.services.google_calendar import GoogleCalendarError, fetch_events
from qnnect.services.google_oauth import (
    GoogleAuthExpiredError,
    GoogleOAuthError,
    clear_tokens,
    google_oauth_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=['google'])

NOT_CONNECTED_DETAIL = 'Google Calendar bağlı değil'
SAMPLE_WARNING = 'Google Calendar bağlantısı yok. Örnek veriler gösteriliyor.'
REAUTH_DETAIL = {
    'message': 'Google Calendar yetkisi sona erdi. Lütfen hesabınızı yeniden bağlayın.',
    'requires_reauth': True,
}
CALLBACK_PATH = '/faculty/dashboard'


class AuthUrlResponse(BaseModel):
    auth_url: str


class GoogleStatusResponse(BaseModel):
    connected: bool
    calendar_id: str | None = None
    token_expiry: datetime | None = None


class CalendarEventsResponse(BaseModel):
    events: list[dict]
    time_min: datetime
    time_max: datetime


class LoadAvailabilityRequest(BaseModel):
    acknowledged_conflicts: list[str] = []
    week_start: date | None = None


class LoadAvailabilityResponse(BaseModel):
    availability: list[dict]
    conflicts: list[dict]
    conflict_count: int
    events_count: int


class OverviewResponse(BaseModel):
    days: list[dict]
    is_sample: bool
    warning: str | None = None


def reauth_required(db: Session, user: User) -> HTTPException:
    """Forget the dead grant and tell the client to reconnect."""
    clear_tokens(user)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Could not clear Google tokens for user %s', user.id)
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=REAUTH_DETAIL)


def redirect_to_frontend(result: str) -> RedirectResponse:
    return RedirectResponse(url=f'{config.FRONTEND_URL}{CALLBACK_PATH}?google={result}')


@router.get('/auth-url', response_model=AuthUrlResponse)
def get_auth_url(current_user: User = Depends(require_faculty)):
    if not google_oauth_service.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Google OAuth yapılandırılmamış',
        )
    return {'auth_url': google_oauth_service.get_authorization_url(current_user.id)}


@router.get('/callback')
def oauth_callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if error or not code or not state:
        logger.warning('Google OAuth callback without a code: %s', error)
        return redirect_to_frontend('error')

    ensure_database_ready()

    try:
        user = google_oauth_service.handle_callback(db, code, state)
    except (GoogleOAuthError, jwt.InvalidTokenError):
        logger.exception('Google OAuth callback failed')
        return redirect_to_frontend('error')
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('User %s connected Google Calendar', user.id)
    return redirect_to_frontend('connected')


@router.get('/status', response_model=GoogleStatusResponse)
def get_status(current_user: User = Depends(require_faculty)):
    return {
        'connected': current_user.google_connected,
        'calendar_id': current_user.calendar_id,
        'token_expiry': current_user.google_token_expiry,
    }


@router.delete('/disconnect', response_model=GoogleStatusResponse)
def disconnect(
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    token = current_user.google_refresh_token or current_user.google_access_token
    if token:
        google_oauth_service.revoke(token)

    try:
        clear_tokens(current_user)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'connected': False, 'calendar_id': current_user.calendar_id, 'token_expiry': None}


@router.get('/calendar/events', response_model=CalendarEventsResponse)
def list_calendar_events(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    if not current_user.google_connected:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NOT_CONNECTED_DETAIL)

    time_min = start or datetime.combine(week_start(date.today()), datetime.min.time())
    time_max = end or time_min + timedelta(days=7)

    try:
        events = fetch_events(db, current_user, time_min, time_max)
    except GoogleAuthExpiredError as exc:
        raise reauth_required(db, current_user) from exc
    except (GoogleCalendarError, GoogleOAuthError) as exc:
        logger.exception('Fetching Google Calendar events failed for user %s', current_user.id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail='Google Calendar etkinlikleri alınamadı',
        ) from exc

    return {'events': events, 'time_min': time_min, 'time_max': time_max}


@router.post('/calendar/load-availability', response_model=LoadAvailabilityResponse)
def load_availability(
    data: LoadAvailabilityRequest,
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    if not current_user.google_connected:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NOT_CONNECTED_DETAIL)

    monday = week_start(data.week_start or date.today())
    time_min = datetime.combine(monday, datetime.min.time())

    try:
        events = fetch_events(db, current_user, time_min, time_min + timedelta(days=7))
    except GoogleAuthExpiredError as exc:
        raise reauth_required(db, current_user) from exc
    except (GoogleCalendarError, GoogleOAuthError) as exc:
        logger.exception('Loading availability from Google failed for user %s', current_user.id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail='Google Calendar etkinlikleri alınamadı',
        ) from exc

    availability, conflicts = resolve_conflicts(
        current_user.availability,
        events,
        ZoneInfo(config.TIMEZONE),
        acknowledged=data.acknowledged_conflicts,
    )

    ensure_database_ready()

    try:
        current_user.availability = availability
        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('User %s recalculated availability: %s conflict(s)', current_user.id, len(conflicts))
    return {
        'availability': availability,
        'conflicts': conflicts,
        'conflict_count': len(conflicts),
        'events_count': len(events),
    }


@router.get('/calendar/overview', response_model=OverviewResponse)
def calendar_overview(
    start: date | None = Query(default=None),
    current_user: User = Depends(require_faculty),
    db: Session = Depends(get_db),
):
    tz = ZoneInfo(config.TIMEZONE)
    monday = week_start(start or date.today())
    time_min = datetime.combine(monday, datetime.min.time())

    warning = None
    is_sample = False
    if current_user.google_connected:
        try:
            events = fetch_events(db, current_user, time_min, time_min + timedelta(days=7))
        except GoogleAuthExpiredError as exc:
            raise reauth_required(db, current_user) from exc
        except (GoogleCalendarError, GoogleOAuthError) as exc:
            if not config.GOOGLE_CALENDAR_SAMPLE_FALLBACK:
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail='Google Calendar etkinlikleri alınamadı',
                ) from exc
            logger.warning('Google Calendar unavailable for user %s, showing sample events: %s', current_user.id, exc)
            events, is_sample, warning = sample_events(monday), True, SAMPLE_WARNING
    elif config.GOOGLE_CALENDAR_SAMPLE_FALLBACK:
        events, is_sample, warning = sample_events(monday), True, SAMPLE_WARNING
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NOT_CONNECTED_DETAIL)

    days = weekly_overview(
        events,
        tz,
        monday,
        config.WORKDAY_START,
        config.WORKDAY_END,
        min_gap=config.MIN_GAP_MINUTES,
    )
    return {'days': days, 'is_sample': is_sample, 'warning': warning}
