"""Shared validation utilities"""

import uuid
from datetime import datetime
from typing import Optional

from ..config import ALLOWED_DURATIONS, APPOINTMENT_TYPES, MAX_APPOINTMENT_MINUTES, NOTES_MAX_LENGTH
from .timezone import to_local_naive


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError):
        return False


def validate_booking_duration(duration: int) -> int:
    """
    Validate a duration picked when booking.

    Raises:
        ValueError: If the duration is not one of the offered lengths
    """
    if duration not in ALLOWED_DURATIONS:
        choices = ", ".join(str(d) for d in ALLOWED_DURATIONS)
        raise ValueError(f"Please choose a duration ({choices} min)")
    return duration


def validate_duration_range(duration: int) -> int:
    """
    Validate a duration used when rescheduling (existing rows may hold any length).

    Raises:
        ValueError: If the duration is outside 1..MAX_APPOINTMENT_MINUTES
    """
    if duration < 1 or duration > MAX_APPOINTMENT_MINUTES:
        raise ValueError(f"Invalid duration (1 to {MAX_APPOINTMENT_MINUTES} min)")
    return duration


def validate_appointment_type(value: str) -> str:
    if value not in APPOINTMENT_TYPES:
        raise ValueError("Please choose a consultation type")
    return value


def validate_notes(notes: Optional[str]) -> Optional[str]:
    """
    Normalize optional notes: blank becomes None.

    Raises:
        ValueError: If notes exceed NOTES_MAX_LENGTH characters
    """
    if notes is None:
        return None
    notes = notes.strip()
    if not notes:
        return None
    if len(notes) > NOTES_MAX_LENGTH:
        raise ValueError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")
    return notes


def validate_wall_clock(value: Optional[datetime]) -> Optional[datetime]:
    """Offset-aware times become naive practice time so they compare with stored rows"""
    return to_local_naive(value)
