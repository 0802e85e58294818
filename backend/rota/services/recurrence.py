"""
Recurrence generator: expands one source shift into a batch of future drafts.

Patterns
--------
``daily_week``
    every day from the day after the source through the end (Sunday) of the
    week currently being viewed.
``custom``
    every day from the day after the source through ``cutoff`` (inclusive)
    whose weekday (0=Sunday..6=Saturday) is selected; no selection means all
    seven.
``weekly``
    the same weekday for each of the next ``weeks`` weeks.

Each clone keeps the source's time of day, role, location and exact duration,
so overnight shifts stay overnight.
"""

from datetime import date, timedelta, tzinfo
from typing import Iterable, List, Optional, Tuple

from rota.models.shift import ScheduleShift
from rota.services.errors import PreconditionError
from rota.utils.timeutils import at_time, get_zone, local_date, sunday_first_weekday, time_of_day, week_start

DAILY_WEEK = "daily_week"
CUSTOM = "custom"
WEEKLY = "weekly"

ALL_WEEKDAYS = frozenset(range(7))
MAX_WEEKS = 52


def _days_between(first: date, last: date) -> Iterable[date]:
    day = first
    while day <= last:
        yield day
        day += timedelta(days=1)


def recurrence_dates(
    source_day: date,
    pattern: str,
    view_date: Optional[date] = None,
    cutoff: Optional[date] = None,
    weekdays: Optional[Iterable[int]] = None,
    weeks: Optional[int] = None,
) -> Tuple[List[date], List[str]]:
    """Target dates for ``pattern`` plus any operator warnings."""
    warnings: List[str] = []

    if pattern == DAILY_WEEK:
        week_end = week_start(view_date or source_day) + timedelta(days=6)
        dates = list(_days_between(source_day + timedelta(days=1), week_end))
        if not dates:
            raise PreconditionError("There are no days left in this week after the shift date")
        return dates, warnings

    if pattern == CUSTOM:
        if cutoff is None:
            raise PreconditionError("An end date is required for a custom repeat")
        if cutoff <= source_day:
            raise PreconditionError("End date must be after the shift date")
        selected = set(weekdays or ())
        if not selected:
            warnings.append("No weekdays selected; repeating on every day")
            selected = set(ALL_WEEKDAYS)
        if not selected <= ALL_WEEKDAYS:
            raise PreconditionError("Weekdays must be between 0 (Sunday) and 6 (Saturday)")
        dates = [d for d in _days_between(source_day + timedelta(days=1), cutoff)
                 if sunday_first_weekday(d) in selected]
        if not dates:
            raise PreconditionError("No dates before the end date fall on the selected weekdays")
        return dates, warnings

    if pattern == WEEKLY:
        if not weeks or weeks < 1 or weeks > MAX_WEEKS:
            raise PreconditionError(f"Weeks must be between 1 and {MAX_WEEKS}")
        return [source_day + timedelta(days=7 * i) for i in range(1, weeks + 1)], warnings

    raise PreconditionError(f"Unknown repeat pattern: {pattern}")


def plan_recurrence(
    source: ScheduleShift,
    pattern: str,
    view_date: Optional[date] = None,
    cutoff: Optional[date] = None,
    weekdays: Optional[Iterable[int]] = None,
    weeks: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> Tuple[List[ScheduleShift], List[str]]:
    """Draft clones of ``source`` for every date the pattern selects."""
    tz = tz or get_zone()
    source_day = local_date(source.startTime, tz)
    hour, minute = time_of_day(source.startTime, tz)
    dates, warnings = recurrence_dates(source_day, pattern, view_date, cutoff, weekdays, weeks)
    clones = [source.clone_to(at_time(day, hour, minute, tz), index=i) for i, day in enumerate(dates, 1)]
    return clones, warnings
