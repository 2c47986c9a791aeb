from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
import pytest

from qnnect.auth import jwt_handler
from qnnect.models.user import ROLE_FACULTY
from qnnect.services import google_oauth
from qnnect.services.google_oauth import GoogleAuthExpiredError, GoogleOAuthService

NOW = datetime(2026, 10, 19, 12, 0)


@pytest.fixture
def oauth_service() -> GoogleOAuthService:
    return GoogleOAuthService(
        client_id='client-id',
        client_secret='client-secret',
        redirect_uri='http://localhost:5000/google/callback',
    )


def mock_token_endpoint(monkeypatch: pytest.MonkeyPatch, status_code: int, payload: dict) -> None:
    real_client = httpx.Client

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    monkeypatch.setattr(
        google_oauth.httpx,
        'Client',
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler)),
    )


def test_authorization_url_requests_offline_calendar_access(oauth_service) -> None:
    url = urlparse(oauth_service.get_authorization_url(42))
    params = parse_qs(url.query)

    assert params['access_type'] == ['offline']
    assert params['prompt'] == ['consent']
    assert 'https://www.googleapis.com/auth/calendar.events' in params['scope'][0].split(' ')
    assert jwt_handler.read_oauth_state(params['state'][0]) == 42


def test_oauth_state_rejects_access_tokens() -> None:
    with pytest.raises(jwt.InvalidTokenError):
        jwt_handler.read_oauth_state(jwt_handler.create_access_token('42'))


def test_invalid_grant_maps_to_expired_error(monkeypatch: pytest.MonkeyPatch, oauth_service) -> None:
    mock_token_endpoint(monkeypatch, 400, {'error': 'invalid_grant'})

    with pytest.raises(GoogleAuthExpiredError):
        oauth_service.refresh_access_token('refresh-token')


def test_other_token_failures_map_to_oauth_error(monkeypatch: pytest.MonkeyPatch, oauth_service) -> None:
    mock_token_endpoint(monkeypatch, 500, {'error': 'backend_error'})

    with pytest.raises(google_oauth.GoogleOAuthError) as exception_info:
        oauth_service.refresh_access_token('refresh-token')

    assert not isinstance(exception_info.value, GoogleAuthExpiredError)


def test_fresh_token_is_reused(appointment_db, make_user, oauth_service, monkeypatch: pytest.MonkeyPatch) -> None:
    user = make_user(ROLE_FACULTY, google_access_token='access', google_token_expiry=NOW + timedelta(hours=1))
    monkeypatch.setattr(oauth_service, 'refresh_access_token', lambda token: pytest.fail('refresh not expected'))

    assert oauth_service.ensure_fresh_access_token(appointment_db, user, now=NOW) == 'access'


def test_expired_token_is_refreshed_and_stored(appointment_db, make_user, oauth_service, monkeypatch: pytest.MonkeyPatch) -> None:
    user = make_user(
        ROLE_FACULTY,
        google_access_token='old',
        google_refresh_token='refresh',
        google_token_expiry=NOW - timedelta(minutes=5),
    )
    monkeypatch.setattr(oauth_service, 'refresh_access_token', lambda token: {'access_token': 'new', 'expires_in': 3600})

    assert oauth_service.ensure_fresh_access_token(appointment_db, user, now=NOW) == 'new'

    appointment_db.refresh(user)
    assert user.google_access_token == 'new'
    assert user.google_refresh_token == 'refresh'
    assert user.google_token_expiry == NOW + timedelta(hours=1)


def test_revoked_grant_clears_tokens(appointment_db, make_user, oauth_service, monkeypatch: pytest.MonkeyPatch) -> None:
    user = make_user(
        ROLE_FACULTY,
        google_access_token='old',
        google_refresh_token='refresh',
        google_token_expiry=NOW - timedelta(minutes=5),
    )

    def revoked(token: str) -> dict:
        raise GoogleAuthExpiredError('revoked')

    monkeypatch.setattr(oauth_service, 'refresh_access_token', revoked)

    with pytest.raises(GoogleAuthExpiredError):
        oauth_service.ensure_fresh_access_token(appointment_db, user, now=NOW)

    appointment_db.refresh(user)
    assert user.google_access_token is None
    assert user.google_refresh_token is None
    assert user.google_connected is False
