"""
Grouping engine.

Shifts sharing role, start, end and location are interchangeable slots of one
"collection": the rota shows them as a single card (``2/3 Bar Staff``) that
expands into the individual slots.
"""

from datetime import date, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional

from rota.models.company import StaffMember
from rota.models.shift import DEFAULT_ROLE, ScheduleShift, ShiftStatus, group_key
from rota.utils.timeutils import end_of_day, from_millis, start_of_day, week_start

FULL = "full"
PARTIAL = "partial"
EMPTY = "empty"

# Roles every staff member may see on the open-shift board
UNRESTRICTED_ROLES = ("", DEFAULT_ROLE, "Open")


def group_shifts(shifts: Iterable[ScheduleShift]) -> Dict[str, List[ScheduleShift]]:
    """Partition ``shifts`` by group key, keeping encounter order."""
    groups: Dict[str, List[ScheduleShift]] = {}
    for shift in shifts:
        groups.setdefault(group_key(shift), []).append(shift)
    return groups


def group_state(shifts: List[ScheduleShift]) -> str:
    assigned = sum(1 for s in shifts if s.userId is not None)
    if assigned == 0:
        return EMPTY
    if assigned == len(shifts):
        return FULL
    return PARTIAL


def summarize_group(key: str, shifts: List[ScheduleShift]) -> dict:
    first = shifts[0]
    return {
        "key": key,
        "role": first.role,
        "startTime": first.startTime,
        "endTime": first.endTime,
        "locationId": first.locationId,
        "locationName": first.locationName,
        "assignedCount": sum(1 for s in shifts if s.userId is not None),
        "totalCount": len(shifts),
        "state": group_state(shifts),
        "draftCount": sum(1 for s in shifts if s.status == ShiftStatus.DRAFT),
        "bidCount": sum(len(s.bids) for s in shifts),
        "shifts": shifts,
    }


def shifts_for_day(shifts: Iterable[ScheduleShift], day: date, tz: Optional[tzinfo] = None) -> List[ScheduleShift]:
    """Shifts starting on ``day``, sorted by start time."""
    lo, hi = start_of_day(day, tz), end_of_day(day, tz)
    return sorted((s for s in shifts if lo <= s.startTime <= hi), key=lambda s: s.startTime)


def grouped_week(shifts: List[ScheduleShift], ref: date, tz: Optional[tzinfo] = None) -> List[dict]:
    """Monday..Sunday of the week holding ``ref``, each day with its collections."""
    monday = week_start(ref)
    days = []
    for offset in range(7):
        day = monday + timedelta(days=offset)
        day_shifts = shifts_for_day(shifts, day, tz)
        days.append({
            "date": day.isoformat(),
            "shiftCount": len(day_shifts),
            "groups": [summarize_group(k, v) for k, v in group_shifts(day_shifts).items()],
        })
    return days


def can_see_role(shift: ScheduleShift, viewer: StaffMember) -> bool:
    if not shift.role or shift.role in UNRESTRICTED_ROLES:
        return True
    return shift.role in viewer.known_roles


def is_open_for(shift: ScheduleShift, viewer: StaffMember) -> bool:
    """Open to ``viewer``: unassigned, or offered up by someone else."""
    if shift.userId is None:
        return True
    return shift.userId != viewer.id and shift.isOffered


def is_biddable_by(shift: ScheduleShift, viewer: StaffMember) -> bool:
    """Published, open to ``viewer`` and in a role they can see."""
    return shift.status == ShiftStatus.PUBLISHED and is_open_for(shift, viewer) and can_see_role(shift, viewer)


def open_shift_board(shifts: Iterable[ScheduleShift], viewer: StaffMember,
                     tz: Optional[tzinfo] = None) -> List[dict]:
    """Published open shifts the viewer may bid on, grouped by day then collection."""
    visible = sorted((s for s in shifts if is_biddable_by(s, viewer)), key=lambda s: s.startTime)
    by_day: Dict[str, List[ScheduleShift]] = {}
    for shift in visible:
        by_day.setdefault(from_millis(shift.startTime, tz).date().isoformat(), []).append(shift)

    board = []
    for day, day_shifts in by_day.items():
        groups = []
        for key, members in group_shifts(day_shifts).items():
            summary = summarize_group(key, members)
            summary["shiftIds"] = [s.id for s in members]
            summary["isSwap"] = any(s.userId is not None for s in members)
            summary["hasBid"] = any(viewer.id in s.bids for s in members)
            summary["slotsLeft"] = sum(1 for s in members if s.userId is None)
            groups.append(summary)
        board.append({"date": day, "groups": groups})
    return board
