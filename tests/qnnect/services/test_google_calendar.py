import json
from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from googleapiclient.errors import HttpError

from qnnect.models.appointment import STATUS_APPROVED
from qnnect.models.user import ROLE_FACULTY
from qnnect.routes.faculty_routes import approve_appointment
from qnnect.services import google_calendar
from qnnect.services.google_calendar import (
    GoogleCalendarClient,
    GoogleCalendarError,
    add_appointment_event,
    client_for_user,
    remove_appointment_event,
)
from qnnect.services.google_oauth import GoogleAuthExpiredError


def http_error(status: int, message: str) -> HttpError:
    response = Mock()
    response.status = status
    response.reason = message
    return HttpError(response, json.dumps({'error': {'message': message}}).encode('utf-8'))


@pytest.fixture
def calendar_service() -> Mock:
    return Mock()


@pytest.fixture
def calendar_client(calendar_service: Mock) -> GoogleCalendarClient:
    return GoogleCalendarClient('access-token', calendar_id='faculty@uni.edu.tr', service=calendar_service)


@pytest.fixture
def connected_faculty(make_user):
    return make_user(ROLE_FACULTY, google_access_token='access-token', office='B-204')


def test_list_events_expands_recurring_events(calendar_client: GoogleCalendarClient, calendar_service: Mock) -> None:
    calendar_service.events.return_value.list.return_value.execute.return_value = {'items': [{'id': 'e1'}]}

    events = calendar_client.list_events(datetime(2026, 10, 19), datetime(2026, 10, 26))

    assert events == [{'id': 'e1'}]
    kwargs = calendar_service.events.return_value.list.call_args.kwargs
    assert kwargs['calendarId'] == 'faculty@uni.edu.tr'
    assert kwargs['singleEvents'] is True
    assert kwargs['orderBy'] == 'startTime'
    assert kwargs['timeMin'] == '2026-10-19T00:00:00+03:00'


def test_list_events_without_items(calendar_client: GoogleCalendarClient, calendar_service: Mock) -> None:
    calendar_service.events.return_value.list.return_value.execute.return_value = {}

    assert calendar_client.list_events(datetime(2026, 10, 19), datetime(2026, 10, 26)) == []


@pytest.mark.parametrize(
    ('error', 'expected'),
    [
        (http_error(401, 'Invalid Credentials'), GoogleAuthExpiredError),
        (http_error(400, 'invalid_grant'), GoogleAuthExpiredError),
        (http_error(500, 'Backend Error'), GoogleCalendarError),
    ],
)
def test_list_events_maps_http_errors(
    calendar_client: GoogleCalendarClient, calendar_service: Mock, error: HttpError, expected: type,
) -> None:
    calendar_service.events.return_value.list.return_value.execute.side_effect = error

    with pytest.raises(expected):
        calendar_client.list_events(datetime(2026, 10, 19), datetime(2026, 10, 26))


def test_insert_event_requests_meet_link(
    calendar_client: GoogleCalendarClient, calendar_service: Mock, connected_faculty, make_appointment,
) -> None:
    appointment = make_appointment(connected_faculty, description='Yaz stajı')
    calendar_service.events.return_value.insert.return_value.execute.return_value = {'id': 'event-1'}

    assert calendar_client.insert_appointment_event(appointment, connected_faculty) == {'id': 'event-1'}

    kwargs = calendar_service.events.return_value.insert.call_args.kwargs
    body = kwargs['body']
    assert kwargs['conferenceDataVersion'] == 1
    assert body['summary'] == 'Randevu: Akademik danışmanlık'
    assert body['conferenceData']['createRequest']['conferenceSolutionKey'] == {'type': 'hangoutsMeet'}
    assert body['start']['dateTime'] == f'{appointment.date.isoformat()}T09:00:00'
    assert body['start']['timeZone'] == 'Europe/Istanbul'
    assert body['attendees'] == [{'email': 'ali@uni.edu.tr'}]
    assert body['location'] == 'B-204'
    assert 'Açıklama: Yaz stajı' in body['description']


def test_add_appointment_event_stores_meet_entry_point(
    appointment_db, calendar_client, calendar_service, connected_faculty, make_appointment, monkeypatch,
) -> None:
    appointment = make_appointment(connected_faculty)
    calendar_service.events.return_value.insert.return_value.execute.return_value = {
        'id': 'event-2',
        'conferenceData': {'entryPoints': [
            {'entryPointType': 'phone', 'uri': 'tel:+90-212'},
            {'entryPointType': 'video', 'uri': 'https://meet.google.com/xyz'},
        ]},
    }
    monkeypatch.setattr(google_calendar, 'client_for_user', lambda db, user: calendar_client)

    add_appointment_event(appointment_db, connected_faculty, appointment)

    assert appointment.google_event_id == 'event-2'
    assert appointment.google_meet_link == 'https://meet.google.com/xyz'


def test_approval_commits_when_calendar_rejects_the_event(
    appointment_db, skip_schema_check, calendar_client, calendar_service, connected_faculty, make_appointment, monkeypatch,
) -> None:
    appointment = make_appointment(connected_faculty)
    calendar_service.events.return_value.insert.return_value.execute.side_effect = http_error(403, 'Forbidden')
    monkeypatch.setattr(google_calendar, 'client_for_user', lambda db, user: calendar_client)

    result = approve_appointment(appointment_id=appointment.id, current_user=connected_faculty, db=appointment_db)

    assert result.status == STATUS_APPROVED
    assert result.google_event_id is None


def test_remove_appointment_event(
    appointment_db, calendar_client, calendar_service, connected_faculty, make_appointment, monkeypatch,
) -> None:
    appointment = make_appointment(connected_faculty, google_event_id='event-3')
    monkeypatch.setattr(google_calendar, 'client_for_user', lambda db, user: calendar_client)

    remove_appointment_event(appointment_db, connected_faculty, appointment)

    assert calendar_service.events.return_value.delete.call_args.kwargs['eventId'] == 'event-3'


def test_remove_appointment_event_logs_failures(
    appointment_db, calendar_client, calendar_service, connected_faculty, make_appointment, monkeypatch,
) -> None:
    appointment = make_appointment(connected_faculty, google_event_id='event-3')
    calendar_service.events.return_value.delete.return_value.execute.side_effect = http_error(410, 'Gone')
    monkeypatch.setattr(google_calendar, 'client_for_user', lambda db, user: calendar_client)

    remove_appointment_event(appointment_db, connected_faculty, appointment)

    assert appointment.google_event_id == 'event-3'


def test_client_for_user_uses_fresh_token(appointment_db, connected_faculty) -> None:
    oauth_service = Mock()
    oauth_service.ensure_fresh_access_token.return_value = 'fresh-token'

    with patch('qnnect.services.google_calendar.build', autospec=True) as mock_build:
        client = client_for_user(appointment_db, connected_faculty, oauth_service=oauth_service)

    oauth_service.ensure_fresh_access_token.assert_called_once_with(appointment_db, connected_faculty)
    assert client.service is mock_build.return_value
    assert client.calendar_id == 'primary'
    assert mock_build.call_args.kwargs['credentials'].token == 'fresh-token'
