"""
Duplication / copy-paste engine.

Every function here is pure: it takes existing shifts and returns new draft
clones (or new start/end times) without touching the store.
"""

from datetime import date, tzinfo
from typing import List, Optional, Tuple

from rota.models.shift import ScheduleShift
from rota.services.errors import PreconditionError
from rota.services.grouping import shifts_for_day
from rota.utils.timeutils import at_time, get_zone, start_of_day, time_of_day, week_range, week_start


def duplicate_in_place(shift: ScheduleShift) -> ScheduleShift:
    """Another slot in the same collection: identical start and end."""
    return shift.clone_to(shift.startTime, shift.endTime)


def paste_onto_date(shift: ScheduleShift, target_day: date, tz: Optional[tzinfo] = None) -> ScheduleShift:
    tz = tz or get_zone()
    hour, minute = time_of_day(shift.startTime, tz)
    return shift.clone_to(at_time(target_day, hour, minute, tz))


def copy_day(shifts: List[ScheduleShift], source_day: date, target_day: date,
             tz: Optional[tzinfo] = None) -> List[ScheduleShift]:
    """Clone every shift starting on ``source_day`` onto ``target_day``."""
    tz = tz or get_zone()
    source_shifts = shifts_for_day(shifts, source_day, tz)
    if not source_shifts:
        raise PreconditionError("There are no shifts on this day to copy")
    clones = []
    for i, shift in enumerate(source_shifts, 1):
        hour, minute = time_of_day(shift.startTime, tz)
        clones.append(shift.clone_to(at_time(target_day, hour, minute, tz), index=i))
    return clones


def week_offset(source_ref: date, target_ref: date, tz: Optional[tzinfo] = None) -> int:
    tz = tz or get_zone()
    return start_of_day(week_start(target_ref), tz) - start_of_day(week_start(source_ref), tz)


def copy_week(shifts: List[ScheduleShift], source_ref: date, target_ref: date,
              tz: Optional[tzinfo] = None) -> List[ScheduleShift]:
    """Shift the whole source week onto the target week by a fixed offset."""
    tz = tz or get_zone()
    lo, hi = week_range(source_ref, tz)
    source_shifts = sorted((s for s in shifts if lo <= s.startTime <= hi), key=lambda s: s.startTime)
    if not source_shifts:
        raise PreconditionError("There are no shifts in the source week to copy")
    offset = week_offset(source_ref, target_ref, tz)
    return [s.clone_to(s.startTime + offset, s.endTime + offset, index=i)
            for i, s in enumerate(source_shifts, 1)]


def relocation_span(shift: ScheduleShift, target_day: date, tz: Optional[tzinfo] = None) -> Tuple[int, int]:
    """New start/end when dropping ``shift`` onto ``target_day`` at its own time of day."""
    tz = tz or get_zone()
    hour, minute = time_of_day(shift.startTime, tz)
    offset = at_time(target_day, hour, minute, tz) - shift.startTime
    return shift.startTime + offset, shift.endTime + offset


def drag_copy(shift: ScheduleShift, target_day: date, tz: Optional[tzinfo] = None) -> ScheduleShift:
    start, end = relocation_span(shift, target_day, tz)
    return shift.clone_to(start, end)
