"""
Calendar view state.

One instance per practitioner session, owned by whoever owns the session
and passed to consumers. It tracks the pivot date, the view granularity and
the cancelled filter, and keeps fetched appointment windows keyed by
view-key:

    day   -> YYYY-MM-DD
    week  -> YYYY-Www   (ISO year and week, Monday first)
    month -> YYYY-MM

The cache holds raw windows, cancelled appointments included. The
``show_cancelled`` flag is applied when reading, so toggling it never
invalidates anything. Any write to the schedule must call ``clear_cache``.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Union

from dateutil.relativedelta import relativedelta

from ...models import Appointment, AppointmentStatus
from ...shared.timezone import now_local, to_local_naive
from .schemas import CalendarPreferences, ViewGranularity
from .time_grid import GridPlacement, grid_placement

logger = logging.getLogger(__name__)

STEPS = {
    ViewGranularity.DAY: relativedelta(days=1),
    ViewGranularity.WEEK: relativedelta(weeks=1),
    ViewGranularity.MONTH: relativedelta(months=1),
}


def start_of_day(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        value = to_local_naive(value)
    return datetime(value.year, value.month, value.day)


def get_cache_key_for_view(pivot: Union[date, datetime], granularity: Union[ViewGranularity, str]) -> str:
    granularity = ViewGranularity(granularity)
    if granularity is ViewGranularity.WEEK:
        iso_year, iso_week, _ = pivot.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if granularity is ViewGranularity.MONTH:
        return f"{pivot:%Y-%m}"
    return f"{pivot:%Y-%m-%d}"


def window_for_view(
    pivot: Union[date, datetime], granularity: Union[ViewGranularity, str]
) -> tuple[datetime, datetime]:
    """Start (inclusive) and end (exclusive) of the period shown for ``pivot``"""
    granularity = ViewGranularity(granularity)
    day = start_of_day(pivot)
    if granularity is ViewGranularity.WEEK:
        start = day - timedelta(days=day.weekday())
    elif granularity is ViewGranularity.MONTH:
        start = day.replace(day=1)
    else:
        start = day
    return start, start + STEPS[granularity]


class CalendarViewState:
    def __init__(
        self,
        granularity: Union[ViewGranularity, str] = ViewGranularity.WEEK,
        show_cancelled: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.clock = clock or now_local
        self.pivot_date = start_of_day(self.clock())
        self.granularity = ViewGranularity(granularity)
        self.show_cancelled = show_cancelled
        self.window_cache: dict[str, list[Appointment]] = {}

    @classmethod
    def from_preferences(
        cls,
        preferences: Optional[Union[CalendarPreferences, dict]],
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "CalendarViewState":
        """Restore persisted preferences; pivot and cache always start fresh"""
        if preferences is None:
            prefs = CalendarPreferences()
        elif isinstance(preferences, CalendarPreferences):
            prefs = preferences
        else:
            prefs = CalendarPreferences.model_validate(preferences)
        return cls(granularity=prefs.granularity, show_cancelled=prefs.show_cancelled, clock=clock)

    def to_preferences(self) -> CalendarPreferences:
        return CalendarPreferences(granularity=self.granularity, show_cancelled=self.show_cancelled)

    # Navigation

    def go_to_next(self) -> None:
        self.pivot_date = self.pivot_date + STEPS[self.granularity]

    def go_to_previous(self) -> None:
        self.pivot_date = self.pivot_date - STEPS[self.granularity]

    def go_to_today(self) -> None:
        self.pivot_date = start_of_day(self.clock())

    def set_date(self, value: Union[date, datetime]) -> None:
        self.pivot_date = start_of_day(value)

    # View filters

    def set_granularity(self, granularity: Union[ViewGranularity, str]) -> None:
        self.granularity = ViewGranularity(granularity)

    def toggle_show_cancelled(self) -> None:
        self.show_cancelled = not self.show_cancelled

    # Window cache

    def set_appointments(self, key: str, appointments: list[Appointment]) -> None:
        # A newer fetch for the same window replaces the older one
        self.window_cache[key] = list(appointments)

    def get_appointments(self, key: str) -> Optional[list[Appointment]]:
        """Cached window, or None when it was never fetched (distinct from [])"""
        return self.window_cache.get(key)

    def clear_cache(self) -> None:
        if self.window_cache:
            logger.debug(f"Clearing {len(self.window_cache)} cached calendar window(s)")
        self.window_cache = {}

    # Current view

    def cache_key(self) -> str:
        return get_cache_key_for_view(self.pivot_date, self.granularity)

    def visible_window(self) -> tuple[datetime, datetime]:
        return window_for_view(self.pivot_date, self.granularity)

    def load_visible(self, service) -> list[Appointment]:
        """Appointments of the current window, fetched once then served from cache"""
        key = self.cache_key()
        cached = self.get_appointments(key)
        if cached is not None:
            return cached

        start, end = self.visible_window()
        appointments = service.list_in_range(start, end, include_cancelled=True)
        self.set_appointments(key, appointments)
        return appointments

    def visible_appointments(self, service) -> list[Appointment]:
        appointments = self.load_visible(service)
        if self.show_cancelled:
            return appointments
        return [a for a in appointments if a.status != AppointmentStatus.CANCELLED.value]

    def grid_layout(self, service) -> list[tuple[Appointment, GridPlacement]]:
        """Visible appointments with their vertical grid coordinates"""
        return [(a, grid_placement(a.start_time, a.end_time)) for a in self.visible_appointments(service)]
