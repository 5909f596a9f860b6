import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:5173"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "").strip() or None

DEFAULT_SESSION_DURATION_MINUTES = int(os.getenv("DEFAULT_SESSION_DURATION_MINUTES", "50"))
MAX_SESSION_DURATION_MINUTES = int(os.getenv("MAX_SESSION_DURATION_MINUTES", "480"))
MAX_BUFFER_MINUTES = int(os.getenv("MAX_BUFFER_MINUTES", "240"))
PUBLIC_BOOKING_HORIZON_DAYS = int(os.getenv("PUBLIC_BOOKING_HORIZON_DAYS", "90"))
MAX_DAY_RANGE_DAYS = int(os.getenv("MAX_DAY_RANGE_DAYS", "62"))

# Stored datetimes are naive wall-clock times in this zone.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/Sao_Paulo")

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if DEFAULT_SESSION_DURATION_MINUTES <= 0:
        raise RuntimeError("DEFAULT_SESSION_DURATION_MINUTES must be positive.")
    try:
        ZoneInfo(CLINIC_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"CLINIC_TIMEZONE {CLINIC_TIMEZONE!r} is not a known time zone.") from exc
