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

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:3000"])

# Shared secret for backend-to-backend callers (X-API-Key header).
INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY", "")
API_KEY_HEADER = "X-API-Key"

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# "memory" keeps buckets per process; "redis" shares them between instances.
RATE_LIMIT_BACKEND = os.getenv("RATE_LIMIT_BACKEND", "memory").strip().lower()
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
INTERNAL_READ_RATE_LIMIT = int(os.getenv("INTERNAL_READ_RATE_LIMIT", "100"))
INTERNAL_WRITE_RATE_LIMIT = int(os.getenv("INTERNAL_WRITE_RATE_LIMIT", "50"))

FIRST_SLOT_START = os.getenv("FIRST_SLOT_START", "07:00")
LAST_SLOT_START = os.getenv("LAST_SLOT_START", "18:30")
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "30"))
SLOT_CAPACITY = int(os.getenv("SLOT_CAPACITY", "2"))

MAX_RANGE_DAYS = int(os.getenv("MAX_RANGE_DAYS", "62"))
NEXT_AVAILABLE_HORIZON_DAYS = int(os.getenv("NEXT_AVAILABLE_HORIZON_DAYS", "60"))
CLAIM_LOCK_DAYS = int(os.getenv("CLAIM_LOCK_DAYS", "30"))

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_REASON_LENGTH = 500


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_CAPACITY < 1:
        raise RuntimeError("SLOT_CAPACITY must be at least 1.")
    if RATE_LIMIT_BACKEND not in {"memory", "redis"}:
        raise RuntimeError("RATE_LIMIT_BACKEND must be 'memory' or 'redis'.")

    # Imported here to keep config free of service imports at module load.
    from clinic_scheduler.services.slot_grid import build_configured_grid

    build_configured_grid()
