"""
Practice wall-clock time.

Appointments are stored as naive datetimes in the practice's local time
(PRACTICE_TIMEZONE). Offset-aware input is converted on the way in.
"""

from datetime import datetime, tzinfo
from typing import Optional

from dateutil import tz

from ..config import PRACTICE_TIMEZONE


def get_practice_tz(name: Optional[str] = None) -> tzinfo:
    name = name or PRACTICE_TIMEZONE
    zone = tz.gettz(name)
    if zone is None:
        raise RuntimeError(f"Unknown PRACTICE_TIMEZONE: {name}")
    return zone


def now_local() -> datetime:
    """Current practice wall-clock time, naive"""
    return datetime.now(get_practice_tz()).replace(tzinfo=None)


def to_local_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert an aware datetime to practice wall-clock time and strip tzinfo.
    Naive datetimes are assumed to be practice time already and returned as-is.
    """
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(get_practice_tz()).replace(tzinfo=None)
