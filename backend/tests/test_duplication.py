from datetime import date, timedelta

import pytest

from rota.models.shift import ScheduleShift, ShiftStatus, new_shift_id
from rota.services import duplication
from rota.services.errors import PreconditionError
from rota.utils.timeutils import at_time, local_date, time_of_day

MONDAY = date(2024, 1, 1)
HOUR = 60 * 60 * 1000


def shift(day=MONDAY, start=(9, 0), end=(17, 0), role="Server", **fields):
    end_day = day + timedelta(days=1) if end <= start else day
    return ScheduleShift(
        _id=new_shift_id(), companyId="cmp", role=role,
        startTime=at_time(day, *start), endTime=at_time(end_day, *end), **fields
    )


def assert_clean_clone(clone, source):
    assert clone.id != source.id
    assert clone.status == ShiftStatus.DRAFT
    assert clone.userId is None and clone.userName is None
    assert clone.bids == [] and clone.isOffered is False
    assert clone.duration == source.duration
    assert clone.role == source.role


def test_duplicate_adds_another_identical_slot():
    src = shift(userId="u1", userName="Bella", status=ShiftStatus.PUBLISHED)
    clone = duplication.duplicate_in_place(src)
    assert_clean_clone(clone, src)
    assert (clone.startTime, clone.endTime) == (src.startTime, src.endTime)


def test_paste_keeps_time_of_day():
    src = shift(start=(18, 30), end=(2, 0), bids=["u3"])
    clone = duplication.paste_onto_date(src, date(2024, 2, 14))
    assert_clean_clone(clone, src)
    assert local_date(clone.startTime) == date(2024, 2, 14)
    assert time_of_day(clone.startTime) == (18, 30)


def test_copy_day_moves_all_shifts_including_overnight():
    day_shifts = [
        shift(start=(9, 0), end=(17, 0)),
        shift(start=(12, 0), end=(20, 0)),
        shift(start=(18, 0), end=(2, 0), role="Security", userId="u2"),
    ]
    other_day = shift(MONDAY + timedelta(days=1))
    target = MONDAY + timedelta(days=7)

    clones = duplication.copy_day(day_shifts + [other_day], MONDAY, target)

    assert len(clones) == 3
    for clone, src in zip(clones, day_shifts):
        assert_clean_clone(clone, src)
        assert local_date(clone.startTime) == target
    security = clones[2]
    assert local_date(security.endTime) == target + timedelta(days=1)
    assert time_of_day(security.endTime) == (2, 0)


def test_copy_day_with_nothing_to_copy():
    with pytest.raises(PreconditionError):
        duplication.copy_day([shift()], MONDAY + timedelta(days=1), MONDAY + timedelta(days=2))


def test_copy_week_applies_a_fixed_offset():
    sunday_late = shift(MONDAY + timedelta(days=6), start=(23, 0), end=(3, 0))
    shifts = [shift(), shift(MONDAY + timedelta(days=3)), sunday_late, shift(MONDAY + timedelta(days=7))]
    # any day inside the target week works
    clones = duplication.copy_week(shifts, MONDAY + timedelta(days=2), date(2024, 1, 18))

    assert len(clones) == 3
    offset = 14 * 24 * HOUR
    assert [c.startTime for c in clones] == [s.startTime + offset for s in shifts[:3]]
    assert [c.endTime for c in clones] == [s.endTime + offset for s in shifts[:3]]


def test_copy_empty_week():
    with pytest.raises(PreconditionError):
        duplication.copy_week([], MONDAY, MONDAY + timedelta(days=7))


def test_drag_move_and_copy_use_the_same_offset():
    src = shift(start=(22, 0), end=(6, 0), userId="u1", status=ShiftStatus.PUBLISHED)
    target = MONDAY + timedelta(days=3)

    start, end = duplication.relocation_span(src, target)
    assert start - src.startTime == 3 * 24 * HOUR
    assert end - start == src.duration

    clone = duplication.drag_copy(src, target)
    assert_clean_clone(clone, src)
    assert (clone.startTime, clone.endTime) == (start, end)
