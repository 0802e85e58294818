from datetime import date, timedelta

from rota.models.company import StaffMember
from rota.models.shift import ScheduleShift, ShiftStatus, group_key, new_shift_id
from rota.services.grouping import (
    EMPTY, FULL, PARTIAL, group_shifts, group_state, grouped_week, open_shift_board,
)
from rota.utils.timeutils import at_time

MONDAY = date(2024, 1, 1)


def shift(day=MONDAY, start=9, end=17, role="Bar Staff", **fields):
    return ScheduleShift(
        _id=new_shift_id(), companyId="cmp", role=role,
        startTime=at_time(day, start, 0), endTime=at_time(day, end, 0), **fields
    )


def test_group_key_uses_nil_for_missing_location():
    s = shift()
    assert group_key(s) == f"Bar Staff_{s.startTime}_{s.endTime}_nil"
    assert group_key(s.copy(update={"locationId": "loc_1"})).endswith("_loc_1")


def test_identical_slots_share_a_group_and_differences_split_it():
    a, b = shift(), shift(userId="u1")
    other_role = shift(role="Security")
    other_time = shift(end=18)
    groups = group_shifts([a, b, other_role, other_time])
    assert len(groups) == 3
    assert groups[group_key(a)] == [a, b]


def test_group_state():
    assert group_state([shift(), shift()]) == EMPTY
    assert group_state([shift(userId="u1"), shift()]) == PARTIAL
    assert group_state([shift(userId="u1"), shift(userId="u2")]) == FULL


def test_grouped_week_lists_seven_days_with_counts():
    wednesday = MONDAY + timedelta(days=2)
    shifts = [shift(wednesday, userId="u1"), shift(wednesday), shift(wednesday, role="Security")]
    days = grouped_week(shifts, wednesday)
    assert [d["date"] for d in days][0] == "2024-01-01"
    assert len(days) == 7
    wed = days[2]
    assert wed["shiftCount"] == 3
    bar = next(g for g in wed["groups"] if g["role"] == "Bar Staff")
    assert (bar["assignedCount"], bar["totalCount"], bar["state"]) == (1, 2, PARTIAL)


def test_open_board_hides_drafts_other_roles_and_own_shifts():
    viewer = StaffMember(_id="u1", name="Bella", roles=["Bar Staff"])
    published = ShiftStatus.PUBLISHED
    visible = shift(status=published)
    staff_role = shift(role="Staff", status=published)
    draft = shift()
    security = shift(role="Security", status=published)
    mine_offered = shift(userId="u1", isOffered=True, status=published)
    swap = shift(userId="u2", isOffered=True, status=published, bids=["u1"])

    board = open_shift_board([visible, staff_role, draft, security, mine_offered, swap], viewer)
    assert len(board) == 1
    ids = [i for g in board[0]["groups"] for i in g["shiftIds"]]
    assert set(ids) == {visible.id, staff_role.id, swap.id}
    bar = next(g for g in board[0]["groups"] if g["role"] == "Bar Staff")
    assert bar["isSwap"] is True
    assert bar["hasBid"] is True
    assert bar["slotsLeft"] == 1


def test_position_is_used_when_roles_are_missing():
    viewer = StaffMember(_id="u9", name="Tom", position="Security")
    board = open_shift_board([shift(role="Security", status=ShiftStatus.PUBLISHED)], viewer)
    assert board[0]["groups"][0]["role"] == "Security"
