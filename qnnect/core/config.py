import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./qnnect.db")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:8081").rstrip("/")
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000").rstrip("/")
CORS_ALLOW_ORIGINS = _get_list(
    os.getenv("CORS_ALLOW_ORIGINS"),
    ["http://localhost:8081", "http://localhost:5173", "http://localhost:3000"],
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(7 * 24 * 60)))
OAUTH_STATE_EXPIRES_MINUTES = int(os.getenv("OAUTH_STATE_EXPIRES_MINUTES", "10"))

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{API_BASE_URL}/google/callback")
GOOGLE_HTTP_TIMEOUT_SECONDS = float(os.getenv("GOOGLE_HTTP_TIMEOUT_SECONDS", "10"))
GOOGLE_CALENDAR_SAMPLE_FALLBACK = _get_bool(os.getenv("GOOGLE_CALENDAR_SAMPLE_FALLBACK"), default=True)

TIMEZONE = os.getenv("TIMEZONE", "Europe/Istanbul")
WORKDAY_START = os.getenv("WORKDAY_START", "09:00")
WORKDAY_END = os.getenv("WORKDAY_END", "17:00")
MIN_GAP_MINUTES = int(os.getenv("MIN_GAP_MINUTES", "15"))

DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "15"))
STUDENT_CANCEL_CUTOFF_HOURS = int(os.getenv("STUDENT_CANCEL_CUTOFF_HOURS", "2"))

PDF_FONT_PATH = os.getenv("PDF_FONT_PATH", "")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if APP_ENV.lower() == "production" and not GOOGLE_CLIENT_SECRET:
        raise RuntimeError("GOOGLE_CLIENT_SECRET must be set in production.")
