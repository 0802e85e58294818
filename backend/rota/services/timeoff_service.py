"""
Time-off requests.

The rota core only reads these to warn about conflicts; staff create them
and managers approve or reject them.
"""

import logging
import time
from uuid import uuid4
from typing import Iterable, List, Optional

from rota.db import TIME_OFF, get_db
from rota.models.company import Company, StaffMember
from rota.models.timeoff import TimeOffRequest, TimeOffStatus
from rota.schemas.timeoff import TimeOffCreate
from rota.services.errors import NotFoundError, PreconditionError
from rota.services.store import DocumentStore, Filter
from rota.utils.logger import EventTypes, log_event
from rota.utils.timeutils import end_of_day, parse_iso_date, start_of_day

logger = logging.getLogger(__name__)

BLOCKING_STATUSES = (TimeOffStatus.APPROVED.value, TimeOffStatus.PENDING.value)


def find_time_off_conflicts(user_id: str, start: int, end: int,
                            requests: Iterable[TimeOffRequest]) -> List[TimeOffRequest]:
    """Approved or pending requests of ``user_id`` overlapping [start, end]."""
    return [
        r for r in requests
        if r.userId == user_id and r.status in BLOCKING_STATUSES and r.overlaps(start, end)
    ]


def conflict_warnings(user_name: str, conflicts: List[TimeOffRequest]) -> List[str]:
    return [f"{user_name} has {r.status} time off ({r.type}) overlapping this shift" for r in conflicts]


class TimeOffService:
    def __init__(self, store: Optional[DocumentStore] = None):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store or get_db()

    async def list_pending(self, company_id: str) -> List[TimeOffRequest]:
        docs = await self.store.query(
            TIME_OFF,
            [Filter("companyId", "==", company_id), Filter("status", "==", TimeOffStatus.PENDING.value)],
            order_by=("createdAt", "desc"),
        )
        return [TimeOffRequest(**d) for d in docs]

    async def list_for_user(self, user_id: str) -> List[TimeOffRequest]:
        docs = await self.store.query(TIME_OFF, [Filter("userId", "==", user_id)], order_by=("createdAt", "desc"))
        return [TimeOffRequest(**d) for d in docs]

    async def conflicts_for(self, company_id: str, user_id: str, start: int, end: int) -> List[TimeOffRequest]:
        docs = await self.store.query(
            TIME_OFF,
            [Filter("companyId", "==", company_id), Filter("userId", "==", user_id)],
        )
        return find_time_off_conflicts(user_id, start, end, [TimeOffRequest(**d) for d in docs])

    async def create(self, company: Company, user: StaffMember, data: TimeOffCreate) -> TimeOffRequest:
        try:
            start_day, end_day = parse_iso_date(data.startDate), parse_iso_date(data.endDate)
        except ValueError:
            raise PreconditionError("Dates must be in YYYY-MM-DD format")
        if end_day < start_day:
            raise PreconditionError("Time off must end on or after its start date")
        now = int(time.time() * 1000)
        status = TimeOffStatus.PENDING if company.settings.requireTimeOffApproval else TimeOffStatus.APPROVED
        request = TimeOffRequest(
            _id=f"tor_{now}_{uuid4().hex[:6]}",
            userId=user.id,
            userName=user.name,
            companyId=company.id,
            startDate=start_of_day(start_day),
            endDate=end_of_day(end_day),
            type=data.type,
            reason=data.reason,
            status=status,
            createdAt=now,
        )
        await self.store.create(TIME_OFF, request.dict(by_alias=True, exclude_none=True))
        await log_event(EventTypes.TIME_OFF_REQUEST_CREATED, {"request_id": request.id, "status": request.status},
                        user_id=user.id, company_id=company.id)
        return request

    async def _get(self, company_id: str, request_id: str) -> TimeOffRequest:
        doc = await self.store.get(TIME_OFF, request_id)
        if not doc or doc.get("companyId") != company_id:
            raise NotFoundError("Time off request not found")
        return TimeOffRequest(**doc)

    async def review(self, company_id: str, request_id: str, status: str, reviewer_id: str) -> TimeOffRequest:
        request = await self._get(company_id, request_id)
        if request.status != TimeOffStatus.PENDING.value:
            raise PreconditionError(f"Request has already been {request.status}")
        changes = {"status": status, "reviewedBy": reviewer_id, "reviewedAt": int(time.time() * 1000)}
        await self.store.update(TIME_OFF, request_id, changes)
        await log_event(EventTypes.TIME_OFF_REQUEST_REVIEWED, {"request_id": request_id, "status": status},
                        user_id=reviewer_id, company_id=company_id)
        return request.copy(update=changes)

    async def delete(self, company_id: str, request_id: str, user_id: str) -> None:
        request = await self._get(company_id, request_id)
        if request.userId != user_id:
            raise NotFoundError("Time off request not found")
        if request.status != TimeOffStatus.PENDING.value:
            raise PreconditionError("Only pending requests can be withdrawn")
        await self.store.delete(TIME_OFF, request_id)
        await log_event(EventTypes.TIME_OFF_REQUEST_DELETED, {"request_id": request_id},
                        user_id=user_id, company_id=company_id)
