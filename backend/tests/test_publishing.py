from asyncio import run
from datetime import date, timedelta

import pytest

from rota.db import ACTIVITY_LOGS, NOTIFICATIONS, SHIFTS, TIME_OFF
from rota.models.company import Company
from rota.models.shift import ScheduleShift, ShiftStatus
from rota.schemas.shift import RepeatRequest, ShiftCreate, ShiftUpdate
from rota.services.errors import ConfirmationRequiredError, PreconditionError
from rota.services.schedule_service import ScheduleService
from rota.utils.timeutils import local_date, time_of_day, week_range

MONDAY = date(2024, 1, 1)
HOUR = 60 * 60 * 1000


def all_shifts(store):
    return [ScheduleShift(**d) for d in run(store.query(SHIFTS))]


def test_scoped_publish_leaves_other_drafts_alone(store, company, make_shift):
    inside = [make_shift(MONDAY + timedelta(days=i), userId="usr_bella", userName="Bella Smith") for i in range(4)]
    outside = [make_shift(MONDAY + timedelta(days=7 + i)) for i in range(6)]
    service = ScheduleService()
    start, end = week_range(MONDAY)

    assert run(service.get_global_draft_count(company)) == 10
    assert run(service.count_drafts(company, start, end)) == 4

    with pytest.raises(ConfirmationRequiredError) as exc:
        run(service.publish(company, start, end))
    assert exc.value.affected == 4
    assert run(service.get_global_draft_count(company)) == 10

    assert run(service.publish(company, start, end, confirmed=True)) == 4
    assert run(service.get_global_draft_count(company)) == 6

    by_id = {s.id: s for s in all_shifts(store)}
    assert all(by_id[s.id].status == ShiftStatus.PUBLISHED for s in inside)
    assert all(by_id[s.id].status == ShiftStatus.DRAFT for s in outside)

    # one summary per assigned staff member
    notes = run(store.query(NOTIFICATIONS))
    assert len(notes) == 1
    assert notes[0]["userId"] == "usr_bella"


def test_global_publish_and_nothing_to_publish(store, company, make_shift):
    make_shift(MONDAY)
    make_shift(MONDAY + timedelta(days=30))
    service = ScheduleService()
    assert run(service.publish(company, confirmed=True)) == 2
    assert run(service.publish(company)) == 0


def test_scope_needs_both_ends(store, company):
    with pytest.raises(PreconditionError):
        run(ScheduleService().count_drafts(company, start=0))


def test_clear_drafts_requires_confirmation_and_keeps_published(store, company, make_shift):
    make_shift(MONDAY)
    make_shift(MONDAY, status=ShiftStatus.PUBLISHED)
    service = ScheduleService()

    with pytest.raises(ConfirmationRequiredError):
        run(service.clear_drafts(company))
    assert len(all_shifts(store)) == 2

    assert run(service.clear_drafts(company, confirmed=True)) == 1
    assert [s.status for s in all_shifts(store)] == ["published"]


def test_mutations_return_shifts_to_draft(store, company, make_shift):
    published = make_shift(MONDAY, status=ShiftStatus.PUBLISHED)
    other = make_shift(MONDAY + timedelta(days=1), status=ShiftStatus.PUBLISHED)
    settings = Company(_id=company)
    service = ScheduleService()

    moved = run(service.move_shift(company, published.id, MONDAY + timedelta(days=2)))
    assert moved.id == published.id
    assert moved.status == ShiftStatus.DRAFT
    assert local_date(moved.startTime) == MONDAY + timedelta(days=2)

    edited, _ = run(service.update_shift(settings, other.id, ShiftUpdate(role="Security")))
    assert edited.status == ShiftStatus.DRAFT
    assert edited.role == "Security"
    assert edited.startTime == other.startTime


def test_drag_copy_leaves_original(store, company, make_shift):
    original = make_shift(MONDAY, status=ShiftStatus.PUBLISHED, userId="usr_tom", userName="Tom Jones")
    clone = run(ScheduleService().move_shift(company, original.id, MONDAY + timedelta(days=1), copy=True))
    assert clone.id != original.id
    assert clone.userId is None and clone.status == ShiftStatus.DRAFT
    stored = {s.id: s for s in all_shifts(store)}
    assert stored[original.id].status == ShiftStatus.PUBLISHED
    assert stored[original.id].startTime == original.startTime


def test_create_and_edit_snapshots(store, company):
    settings = Company(_id=company)
    service = ScheduleService()
    shift, _ = run(service.create_shift(settings, ShiftCreate(
        date="2024-01-01", startTime="18:00", endTime="02:00", role="Security",
        userId="usr_tom", locationId="loc_main",
    )))
    assert shift.userName == "Tom Jones"
    assert shift.locationName == "Main Bar"
    assert shift.duration == 8 * HOUR
    assert shift.status == ShiftStatus.DRAFT

    unassigned, _ = run(service.update_shift(settings, shift.id, ShiftUpdate(userId=None, endTime="23:00")))
    assert unassigned.userId is None and unassigned.userName is None
    assert unassigned.duration == 5 * HOUR
    doc = run(store.get(SHIFTS, shift.id))
    assert "userName" not in doc and "userId" not in doc


def test_hidden_finish_times_default_to_eight_hours(store, company):
    settings = Company(_id=company, settings={"rotaShowFinishTimes": False})
    shift, _ = run(ScheduleService().create_shift(
        settings, ShiftCreate(date="2024-01-01", startTime="10:00", endTime="12:00")
    ))
    assert time_of_day(shift.endTime) == (18, 0)


def test_repeat_and_copy_week_write_drafts(store, company, make_shift):
    source = make_shift(MONDAY, role="Bar Staff", status=ShiftStatus.PUBLISHED, userId="usr_bella")
    service = ScheduleService()

    clones, _ = run(service.repeat_shift(company, source.id, RepeatRequest(pattern="daily_week", viewDate="2024-01-03")))
    assert len(clones) == 6
    assert len(all_shifts(store)) == 7

    copied = run(service.copy_week(company, MONDAY, MONDAY + timedelta(days=7)))
    assert len(copied) == 7
    assert all(c.userId is None and c.status == ShiftStatus.DRAFT for c in copied)

    day = run(service.copy_day(company, MONDAY, MONDAY + timedelta(days=21)))
    assert len(day) == 1

    actions = [log["action"] for log in run(store.query(ACTIVITY_LOGS))]
    assert {"shifts_repeated", "week_copied", "day_copied"} <= set(actions)


def test_time_off_overlap_is_a_warning(store, company, make_shift):
    run(store.create(TIME_OFF, {
        "_id": "tor_1", "userId": "usr_bella", "userName": "Bella Smith", "companyId": company,
        "startDate": 0, "endDate": 10 ** 13, "type": "holiday", "status": "approved", "createdAt": 0,
    }))
    slot = make_shift(MONDAY)
    shift, warnings = run(ScheduleService().assign(company, slot.id, "usr_bella", confirmed=True))
    assert shift.userId == "usr_bella"
    assert len(warnings) == 1
