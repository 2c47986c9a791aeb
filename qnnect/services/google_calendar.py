"""Google Calendar API access for faculty calendars.

Reads busy events for the Overlap Resolver and writes one event, with a Meet
link, when an appointment is approved.
"""

import logging
import uuid
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from qnnect.core import config
from qnnect.models.appointment import Appointment
from qnnect.models.user import User
from qnnect.scheduling.availability import parse_hhmm
from qnnect.services.google_oauth import (
    GoogleAuthExpiredError,
    GoogleOAuthError,
    GoogleOAuthService,
    google_oauth_service,
)

logger = logging.getLogger(__name__)

MAX_EVENT_RESULTS = 250
APPOINTMENT_EVENT_PREFIX = 'Randevu:'


class GoogleCalendarError(Exception):
    """Raised when a Google Calendar API call fails."""


def _map_http_error(exc: HttpError, action: str) -> Exception:
    status_code = getattr(exc.resp, 'status', None)
    if status_code == 401 or 'invalid_grant' in str(exc):
        return GoogleAuthExpiredError('Google Calendar access was revoked')
    return GoogleCalendarError(f'Failed to {action}: {exc}')


class GoogleCalendarClient:
    def __init__(self, access_token: str, refresh_token: str | None = None, calendar_id: str = 'primary', service=None) -> None:
        if service is None:
            credentials = Credentials(
                token=access_token,
                refresh_token=refresh_token,
                token_uri=GoogleOAuthService.TOKEN_URL,
                client_id=config.GOOGLE_CLIENT_ID,
                client_secret=config.GOOGLE_CLIENT_SECRET,
                scopes=list(GoogleOAuthService.SCOPES),
            )
            service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)
        self.service = service
        self.calendar_id = calendar_id or 'primary'
        self.tz = ZoneInfo(config.TIMEZONE)

    def _rfc3339(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=self.tz)
        return value.isoformat()

    def list_events(self, time_min: datetime, time_max: datetime, max_results: int = MAX_EVENT_RESULTS) -> list[dict[str, Any]]:
        try:
            response = self.service.events().list(
                calendarId=self.calendar_id,
                timeMin=self._rfc3339(time_min),
                timeMax=self._rfc3339(time_max),
                singleEvents=True,
                orderBy='startTime',
                maxResults=max_results,
            ).execute()
        except HttpError as exc:
            raise _map_http_error(exc, 'list calendar events') from exc
        except RefreshError as exc:
            raise GoogleAuthExpiredError('Google Calendar access was revoked') from exc
        return response.get('items', [])

    def insert_appointment_event(self, appointment: Appointment, faculty: User) -> dict[str, Any]:
        start = datetime.combine(appointment.date, parse_hhmm(appointment.start_time))
        end = datetime.combine(appointment.date, parse_hhmm(appointment.end_time))
        description_lines = [
            f'Öğrenci: {appointment.student_name} ({appointment.student_number})',
            f'E-posta: {appointment.student_email}',
            f'Konu: {appointment.topic}',
        ]
        if appointment.description:
            description_lines.append(f'Açıklama: {appointment.description}')

        body = {
            'summary': f'{APPOINTMENT_EVENT_PREFIX} {appointment.topic}',
            'description': '\n'.join(description_lines),
            'location': faculty.office or '',
            'start': {'dateTime': start.isoformat(), 'timeZone': config.TIMEZONE},
            'end': {'dateTime': end.isoformat(), 'timeZone': config.TIMEZONE},
            'attendees': [{'email': appointment.student_email}],
            'conferenceData': {
                'createRequest': {
                    'requestId': uuid.uuid4().hex,
                    'conferenceSolutionKey': {'type': 'hangoutsMeet'},
                },
            },
            'reminders': {
                'useDefault': False,
                'overrides': [
                    {'method': 'email', 'minutes': 24 * 60},
                    {'method': 'popup', 'minutes': 30},
                ],
            },
        }
        try:
            event = self.service.events().insert(
                calendarId=self.calendar_id,
                body=body,
                conferenceDataVersion=1,
                sendUpdates='all',
            ).execute()
        except HttpError as exc:
            raise _map_http_error(exc, 'create calendar event') from exc
        except RefreshError as exc:
            raise GoogleAuthExpiredError('Google Calendar access was revoked') from exc

        logger.info('Created Google Calendar event %s for appointment %s', event.get('id'), appointment.id)
        return event

    def delete_event(self, event_id: str) -> None:
        try:
            self.service.events().delete(calendarId=self.calendar_id, eventId=event_id, sendUpdates='all').execute()
        except HttpError as exc:
            raise _map_http_error(exc, 'delete calendar event') from exc
        except RefreshError as exc:
            raise GoogleAuthExpiredError('Google Calendar access was revoked') from exc


def client_for_user(db: Session, user: User, oauth_service: GoogleOAuthService | None = None) -> GoogleCalendarClient:
    oauth_service = oauth_service or google_oauth_service
    access_token = oauth_service.ensure_fresh_access_token(db, user)
    return GoogleCalendarClient(access_token, user.google_refresh_token, user.calendar_id)


def fetch_events(db: Session, user: User, start: datetime, end: datetime) -> list[dict[str, Any]]:
    return client_for_user(db, user).list_events(start, end)


def add_appointment_event(db: Session, faculty: User, appointment: Appointment) -> None:
    """Put an approved appointment on the faculty calendar.

    Failures are logged and never propagate; approval does not depend on
    Google.
    """
    if not faculty.google_connected:
        return
    try:
        event = client_for_user(db, faculty).insert_appointment_event(appointment, faculty)
    except (GoogleCalendarError, GoogleOAuthError):
        logger.exception('Could not add appointment %s to Google Calendar', appointment.id)
        return

    appointment.google_event_id = event.get('id')
    appointment.google_meet_link = event.get('hangoutLink')
    for entry_point in (event.get('conferenceData') or {}).get('entryPoints', []):
        if entry_point.get('entryPointType') == 'video' and not appointment.google_meet_link:
            appointment.google_meet_link = entry_point.get('uri')


def remove_appointment_event(db: Session, faculty: User, appointment: Appointment) -> None:
    if not appointment.google_event_id or not faculty.google_connected:
        return
    try:
        client_for_user(db, faculty).delete_event(appointment.google_event_id)
    except (GoogleCalendarError, GoogleOAuthError):
        logger.exception('Could not remove Google Calendar event for appointment %s', appointment.id)
