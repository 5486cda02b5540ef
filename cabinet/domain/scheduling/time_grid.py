"""
Calendar grid geometry.

Maps times of day onto the vertical axis of the day grid, which spans
GRID_START_HOUR to GRID_END_HOUR (8h = 0%, 20h = 100% by default).
These helpers feed the renderer, so they clamp instead of raising.
"""

import math
from datetime import datetime, time
from typing import NamedTuple, Union

from ...config import GRID_END_HOUR, GRID_START_HOUR


class GridPlacement(NamedTuple):
    top: float
    height: float


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def grid_total_minutes(start_hour: int = GRID_START_HOUR, end_hour: int = GRID_END_HOUR) -> int:
    return max(0, (end_hour - start_hour) * 60)


def grid_top(
    moment: Union[datetime, time],
    start_hour: int = GRID_START_HOUR,
    end_hour: int = GRID_END_HOUR,
) -> float:
    """Vertical position of ``moment`` as a percentage of the grid height"""
    total = grid_total_minutes(start_hour, end_hour)
    if total == 0:
        return 0.0
    offset = (moment.hour - start_hour) * 60 + moment.minute
    return _clamp(offset / total * 100)


def grid_height(
    duration: float,
    start_hour: int = GRID_START_HOUR,
    end_hour: int = GRID_END_HOUR,
) -> float:
    """Height of a ``duration``-minute block; capped at the full grid"""
    total = grid_total_minutes(start_hour, end_hour)
    if total == 0:
        return 0.0
    return _clamp(duration / total * 100)


def duration_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two datetimes, half-up rounding (30.5 -> 31)"""
    minutes = (end - start).total_seconds() / 60
    return max(0, math.floor(minutes + 0.5))


def grid_placement(
    start: datetime,
    end: datetime,
    start_hour: int = GRID_START_HOUR,
    end_hour: int = GRID_END_HOUR,
) -> GridPlacement:
    return GridPlacement(
        top=grid_top(start, start_hour, end_hour),
        height=grid_height(duration_minutes(start, end), start_hour, end_hour),
    )
