from datetime import datetime, timedelta, timezone

import jwt

from qnnect.core import config

OAUTH_STATE_PURPOSE = "google_oauth_state"


def create_access_token(subject: str, role: str | None = None, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {"sub": subject, "exp": issued_at + timedelta(minutes=expire_minutes), "iat": issued_at}
    if role:
        payload["role"] = role
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def create_oauth_state(user_id: int) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "purpose": OAUTH_STATE_PURPOSE,
        "exp": issued_at + timedelta(minutes=config.OAUTH_STATE_EXPIRES_MINUTES),
        "iat": issued_at,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def read_oauth_state(state: str) -> int:
    """Return the user id carried by a signed OAuth ``state``.

    Raises ``jwt.InvalidTokenError`` when the state is forged, expired or was
    issued for another purpose.
    """
    payload = jwt.decode(state, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    if payload.get("purpose") != OAUTH_STATE_PURPOSE:
        raise jwt.InvalidTokenError("State was not issued for Google OAuth")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("State subject is not a user id") from exc
