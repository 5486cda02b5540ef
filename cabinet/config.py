import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Local SQLite file unless a real transactional store is configured
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cabinet.db")

# Redis (preference persistence). REDIS_URL wins over host/port settings.
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = "HS256"

# Calendar grid: 8h to 20h = 720 minutes
GRID_START_HOUR = int(os.getenv("GRID_START_HOUR", "8"))
GRID_END_HOUR = int(os.getenv("GRID_END_HOUR", "20"))

# IANA zone of the practice; stored times are naive wall-clock times in it
PRACTICE_TIMEZONE = os.getenv("PRACTICE_TIMEZONE", "UTC")

# Appointment rules
ALLOWED_DURATIONS = tuple(
    int(d) for d in os.getenv("ALLOWED_DURATIONS", "15,30,45,60").split(",") if d.strip()
)
MAX_APPOINTMENT_MINUTES = int(os.getenv("MAX_APPOINTMENT_MINUTES", "240"))
NOTES_MAX_LENGTH = int(os.getenv("NOTES_MAX_LENGTH", "500"))
APPOINTMENT_TYPES = tuple(
    t.strip()
    for t in os.getenv("APPOINTMENT_TYPES", "First consultation,Follow-up,Emergency").split(",")
    if t.strip()
)

# Dashboard: number of upcoming appointments shown
UPCOMING_APPOINTMENTS_LIMIT = int(os.getenv("UPCOMING_APPOINTMENTS_LIMIT", "5"))

# Calendar preferences are stored under "<prefix>:<user_id>"
PREFERENCES_KEY_PREFIX = os.getenv("PREFERENCES_KEY_PREFIX", "calendar-preferences")

# Frontend origin for CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
