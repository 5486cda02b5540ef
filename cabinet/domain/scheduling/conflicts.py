"""
Overlap Detection

Two half-open intervals [a0, a1) and [b0, b1) overlap iff a0 < b1 and a1 > b0,
so back-to-back appointments (a1 == b0) never conflict. Cancelled appointments
do not hold their slot.

The check is read-then-write: it is correct for the non-racing case only.
Strict guarantees need an exclusion constraint in the store.
"""

import logging
from datetime import datetime
from typing import Iterable, NamedTuple, Optional

from ...models import Appointment, AppointmentStatus
from .repository import AppointmentRepository

logger = logging.getLogger(__name__)


class ConflictCheck(NamedTuple):
    conflict: bool
    with_appointment: Optional[Appointment] = None


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def find_conflict(
    appointments: Iterable[Appointment],
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
) -> Optional[Appointment]:
    """
    Return the earliest appointment in ``appointments`` that blocks [start, end).

    Works on any snapshot, so callers can test it without a store. Ties on
    start time are broken by id to keep the answer deterministic.
    """
    blocking = [
        appt
        for appt in appointments
        if appt.status != AppointmentStatus.CANCELLED.value
        and (exclude_id is None or appt.id != exclude_id)
        and intervals_overlap(appt.start_time, appt.end_time, start, end)
    ]
    if not blocking:
        return None
    return min(blocking, key=lambda appt: (appt.start_time, appt.id))


class ConflictDetector:
    """Checks a candidate interval against the stored schedule"""

    def __init__(self, repository: AppointmentRepository):
        self.repository = repository

    def has_conflict(
        self, start: datetime, end: datetime, exclude_id: Optional[str] = None
    ) -> ConflictCheck:
        snapshot = self.repository.find_overlapping(start, end, exclude_id)
        match = find_conflict(snapshot, start, end, exclude_id)
        if match is None:
            return ConflictCheck(conflict=False)

        logger.info(f"⚠️ Slot {start:%Y-%m-%d %H:%M}-{end:%H:%M} conflicts with appointment {match.id}")
        return ConflictCheck(conflict=True, with_appointment=match)
