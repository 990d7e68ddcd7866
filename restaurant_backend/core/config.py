import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


DATABASE_URL = os.getenv("DATABASE_URL")
APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:5173"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

DEFAULT_RESTAURANT_NAME = os.getenv("DEFAULT_RESTAURANT_NAME", "My Restaurant")
DEFAULT_OPENING_HOURS = os.getenv("DEFAULT_OPENING_HOURS", "12:00 - 23:00")
DEFAULT_BOOKING_TIME_MARGIN = int(os.getenv("DEFAULT_BOOKING_TIME_MARGIN", "90"))
DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "60"))
DEFAULT_BOOKING_DURATION_MINUTES = int(os.getenv("DEFAULT_BOOKING_DURATION_MINUTES", "120"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if DEFAULT_BOOKING_TIME_MARGIN < 0:
        raise RuntimeError("DEFAULT_BOOKING_TIME_MARGIN must not be negative.")
    if DEFAULT_SLOT_DURATION_MINUTES <= 0 or DEFAULT_BOOKING_DURATION_MINUTES <= 0:
        raise RuntimeError("Slot and booking durations must be positive.")
