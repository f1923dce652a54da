import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

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
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scheduling.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:3000"])

# Wall-clock times entered in the calendar are interpreted in this zone.
DISPLAY_TIMEZONE = os.getenv("DISPLAY_TIMEZONE", "UTC")

# Caps for series that never end on their own.
RECURRENCE_MAX_OCCURRENCES = int(os.getenv("RECURRENCE_MAX_OCCURRENCES", "52"))
RECURRENCE_MAX_DAYS = int(os.getenv("RECURRENCE_MAX_DAYS", "365"))

SCHEDULING_HORIZON_DAYS = int(os.getenv("SCHEDULING_HORIZON_DAYS", "365"))


def validate_runtime_config() -> None:
    try:
        ZoneInfo(DISPLAY_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"DISPLAY_TIMEZONE {DISPLAY_TIMEZONE!r} is not a known timezone.") from exc

    if RECURRENCE_MAX_OCCURRENCES < 1 or RECURRENCE_MAX_DAYS < 1:
        raise RuntimeError("RECURRENCE_MAX_OCCURRENCES and RECURRENCE_MAX_DAYS must be positive.")

    if SCHEDULING_HORIZON_DAYS < 1:
        raise RuntimeError("SCHEDULING_HORIZON_DAYS must be positive.")
