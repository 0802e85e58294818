"""
Bidding & assignment state machine.

    Open --bid--> Bid-Pending --assign--> Assigned
                                   |
                                   +-- swap-request bids / isOffered

The functions here compute the changes an action makes; ``ScheduleService``
writes them.
"""

from typing import Any, Dict, Iterable, List, Tuple

from rota.models.company import StaffMember
from rota.models.shift import ScheduleShift, ShiftStatus, group_key
from rota.services.errors import PreconditionError
from rota.services.store import ArrayRemove, ArrayUnion

OPEN = "open"
BID_PENDING = "bid_pending"
ASSIGNED = "assigned"


def shift_state(shift: ScheduleShift) -> str:
    if shift.userId is not None:
        return ASSIGNED
    if shift.bids:
        return BID_PENDING
    return OPEN


def bid_changes(shift: ScheduleShift, user_id: str) -> Dict[str, Any]:
    if shift.userId == user_id:
        raise PreconditionError("You are already assigned to this shift")
    return {"bids": ArrayUnion(user_id)}


def cancel_bid_changes(user_id: str) -> Dict[str, Any]:
    return {"bids": ArrayRemove(user_id)}


def assignment_changes(member: StaffMember) -> Dict[str, Any]:
    """Changes applied to the target shift of an assignment.

    Assignment is a schedule mutation, so the shift goes back to draft.
    """
    return {
        "userId": member.id,
        "userName": member.name,
        "bids": [],
        "isOffered": False,
        "status": ShiftStatus.DRAFT.value,
    }


def sibling_bid_cleanup(target: ScheduleShift, candidates: Iterable[ScheduleShift],
                        user_id: str) -> List[Tuple[str, Dict[str, Any]]]:
    """Drop ``user_id`` from the bids of every other slot in the target's collection."""
    key = group_key(target)
    return [
        (s.id, {"bids": ArrayRemove(user_id)})
        for s in candidates
        if s.id != target.id and group_key(s) == key and user_id in s.bids
    ]


def offer_changes(shift: ScheduleShift, user_id: str, offer: bool) -> Dict[str, Any]:
    if shift.userId != user_id:
        raise PreconditionError("Only the assigned staff member can offer this shift")
    return {"isOffered": offer}
