import logging
import urllib.parse
from datetime import datetime, timedelta
from typing import Any

import httpx
from sqlalchemy.orm import Session

from qnnect.auth import jwt_handler
from qnnect.core import config
from qnnect.models.user import User

logger = logging.getLogger(__name__)

GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
)

# Refresh a little before Google's expiry so requests never race it.
TOKEN_EXPIRY_MARGIN = timedelta(minutes=1)


class GoogleOAuthError(Exception):
    """Raised when Google rejects an OAuth request."""


class GoogleAuthExpiredError(GoogleOAuthError):
    """The stored grant was revoked or expired; the user must reconnect."""


class GoogleOAuthService:
    """Google OAuth2 flow for faculty calendar access."""

    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    SCOPES = GOOGLE_SCOPES

    def __init__(self, client_id: str | None = None, client_secret: str | None = None, redirect_uri: str | None = None) -> None:
        self.client_id = client_id or config.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or config.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or config.GOOGLE_REDIRECT_URI

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_authorization_url(self, user_id: int) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.SCOPES),
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": jwt_handler.create_oauth_state(user_id),
        }
        return f"{self.AUTH_URL}?{urllib.parse.urlencode(params)}"

    def _post_token(self, data: dict[str, str]) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=config.GOOGLE_HTTP_TIMEOUT_SECONDS) as client:
                response = client.post(self.TOKEN_URL, data=data)
        except httpx.HTTPError as exc:
            raise GoogleOAuthError(f"Google token request failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                error = response.json().get("error")
            except ValueError:
                error = None
            if error == "invalid_grant":
                raise GoogleAuthExpiredError("Google grant is no longer valid")
            raise GoogleOAuthError(f"Google token request failed with status {response.status_code}")
        return response.json()

    def exchange_code_for_tokens(self, code: str) -> dict[str, Any]:
        return self._post_token({
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        })

    def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        return self._post_token({
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })

    def get_user_info(self, access_token: str) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=config.GOOGLE_HTTP_TIMEOUT_SECONDS) as client:
                response = client.get(self.USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise GoogleOAuthError(f"Google user info request failed: {exc}") from exc
        return response.json()

    def revoke(self, token: str) -> None:
        try:
            with httpx.Client(timeout=config.GOOGLE_HTTP_TIMEOUT_SECONDS) as client:
                client.post(self.REVOKE_URL, params={"token": token})
        except httpx.HTTPError:
            logger.warning("Revoking Google token failed; local tokens are cleared anyway")

    def handle_callback(self, db: Session, code: str, state: str) -> User:
        """Exchange ``code`` and store the tokens on the user the signed ``state`` names."""
        user_id = jwt_handler.read_oauth_state(state)
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise GoogleOAuthError(f"User {user_id} from OAuth state does not exist")

        token_data = self.exchange_code_for_tokens(code)
        user_info = self.get_user_info(token_data["access_token"])
        store_tokens(user, token_data, user_info)
        db.commit()
        db.refresh(user)
        return user

    def ensure_fresh_access_token(self, db: Session, user: User, now: datetime | None = None) -> str:
        """Return a usable access token, refreshing and persisting it when it has expired."""
        if not user.google_access_token and not user.google_refresh_token:
            raise GoogleAuthExpiredError("Google Calendar is not connected")

        now = now or datetime.now()
        expiry = user.google_token_expiry
        if user.google_access_token and (expiry is None or expiry - TOKEN_EXPIRY_MARGIN > now):
            return user.google_access_token

        if not user.google_refresh_token:
            raise GoogleAuthExpiredError("Google access token expired and no refresh token is stored")

        try:
            token_data = self.refresh_access_token(user.google_refresh_token)
        except GoogleAuthExpiredError:
            clear_tokens(user)
            db.commit()
            raise

        store_tokens(user, token_data, now=now)
        db.commit()
        return user.google_access_token


def store_tokens(user: User, token_data: dict[str, Any], user_info: dict[str, Any] | None = None, now: datetime | None = None) -> None:
    now = now or datetime.now()
    user.google_access_token = token_data["access_token"]
    # Google only sends a refresh token on the first consent.
    if token_data.get("refresh_token"):
        user.google_refresh_token = token_data["refresh_token"]
    if token_data.get("expires_in"):
        user.google_token_expiry = now + timedelta(seconds=int(token_data["expires_in"]))
    if user_info:
        user.google_id = user_info.get("id") or user.google_id
        if user_info.get("picture") and not user.picture:
            user.picture = user_info["picture"]


def clear_tokens(user: User) -> None:
    user.google_id = None
    user.google_access_token = None
    user.google_refresh_token = None
    user.google_token_expiry = None


google_oauth_service = GoogleOAuthService()
