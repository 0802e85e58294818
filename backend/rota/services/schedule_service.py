"""
Schedule service: the rota operations an operator or staff member performs.

The engines in ``grouping``, ``recurrence``, ``duplication``, ``bidding`` and
``importer`` are pure. This service loads shifts from the document store, runs
an engine over them and writes the result back, logging every schedule-altering
action to the activity log.

Any write that alters the schedule forces ``status`` back to draft; only
``publish`` moves shifts to published.
"""

import logging
from datetime import date, datetime, tzinfo
from typing import Any, Dict, List, Optional, Tuple

from rota.db import COMPANIES, LOCATIONS, SHIFTS, USERS, get_db
from rota.models.company import Company, Location, StaffMember
from rota.models.import_row import ImportRow
from rota.models.shift import ScheduleShift, ShiftStatus, new_shift_id
from rota.schemas.shift import RepeatRequest, ShiftCreate, ShiftUpdate
from rota.services import bidding, duplication, importer, recurrence
from rota.services.errors import (
    ConfirmationRequiredError,
    FeatureDisabledError,
    NotFoundError,
    PreconditionError,
    RotaDisabledError,
)
from rota.services.grouping import grouped_week, is_biddable_by, open_shift_board
from rota.services.notification_service import notify_assigned, notify_published
from rota.services.store import DELETE_FIELD, DocumentStore, Filter, apply_changes
from rota.services.timeoff_service import TimeOffService, conflict_warnings
from rota.utils.logger import EventTypes, log_event, log_warning
from rota.utils.timeutils import (
    compute_span,
    end_of_day,
    from_millis,
    get_zone,
    parse_iso_date,
    start_of_day,
    week_range,
)

logger = logging.getLogger(__name__)

DRAFT = ShiftStatus.DRAFT.value
PUBLISHED = ShiftStatus.PUBLISHED.value


def parse_day(value: str, label: str = "date") -> date:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise PreconditionError(f"Invalid {label} '{value}', expected YYYY-MM-DD")


class ScheduleService:
    def __init__(self, store: Optional[DocumentStore] = None, tz: Optional[tzinfo] = None):
        self._store = store
        self.tz = tz or get_zone()
        self.time_off = TimeOffService(store)

    @property
    def store(self) -> DocumentStore:
        return self._store or get_db()

    # ------------------------------------------------------------------
    # Read-only collaborators: company settings, roster, locations
    # ------------------------------------------------------------------

    async def get_company(self, company_id: str) -> Company:
        doc = await self.store.get(COMPANIES, company_id)
        if not doc:
            raise NotFoundError("Company not found")
        return Company(**doc)

    async def ensure_rota_enabled(self, company_id: str) -> Company:
        company = await self.get_company(company_id)
        if not company.settings.rotaEnabled:
            raise RotaDisabledError()
        return company

    async def get_roster(self, company_id: str) -> List[StaffMember]:
        docs = await self.store.query(
            USERS,
            [Filter("currentCompanyId", "==", company_id), Filter("role", "==", "staff")],
            order_by=("name", "asc"),
        )
        return [StaffMember(**d) for d in docs]

    async def get_member(self, company_id: str, user_id: str) -> StaffMember:
        doc = await self.store.get(USERS, user_id)
        if not doc or doc.get("currentCompanyId") != company_id:
            raise NotFoundError("Staff member not found")
        return StaffMember(**doc)

    async def get_locations(self, company_id: str) -> List[Location]:
        docs = await self.store.query(LOCATIONS, [Filter("companyId", "==", company_id)])
        return [Location(**d) for d in docs]

    async def get_location(self, company_id: str, location_id: str) -> Location:
        doc = await self.store.get(LOCATIONS, location_id)
        if not doc or doc.get("companyId") != company_id:
            raise NotFoundError("Location not found")
        return Location(**doc)

    # ------------------------------------------------------------------
    # Shift reads
    # ------------------------------------------------------------------

    async def get_shift(self, company_id: str, shift_id: str) -> ScheduleShift:
        doc = await self.store.get(SHIFTS, shift_id)
        if not doc or doc.get("companyId") != company_id:
            raise NotFoundError("Shift not found")
        return ScheduleShift(**doc)

    async def get_schedule_in_range(self, company_id: str, start: int, end: int,
                                    status: Optional[str] = None) -> List[ScheduleShift]:
        """Shifts whose start falls inside [start, end], earliest first."""
        filters = [
            Filter("companyId", "==", company_id),
            Filter("startTime", ">=", start),
            Filter("startTime", "<=", end),
        ]
        if status:
            filters.append(Filter("status", "==", status))
        docs = await self.store.query(SHIFTS, filters, order_by=("startTime", "asc"))
        return [ScheduleShift(**d) for d in docs]

    async def get_grouped_week(self, company_id: str, ref: date) -> List[dict]:
        start, end = week_range(ref, self.tz)
        shifts = await self.get_schedule_in_range(company_id, start, end)
        return grouped_week(shifts, ref, self.tz)

    async def get_open_board(self, company_id: str, viewer: StaffMember, start: int, end: int) -> List[dict]:
        shifts = await self.get_schedule_in_range(company_id, start, end, status=PUBLISHED)
        return open_shift_board(shifts, viewer, self.tz)

    async def get_my_shifts(self, company_id: str, user_id: str, start: int, end: int) -> List[ScheduleShift]:
        shifts = await self.get_schedule_in_range(company_id, start, end, status=PUBLISHED)
        return [s for s in shifts if s.userId == user_id]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _span(self, company: Company, day: date, start: str, end: Optional[str]) -> Tuple[int, int]:
        if not company.settings.rotaShowFinishTimes:
            end = None
        try:
            return compute_span(day, start, end, self.tz)
        except (TypeError, ValueError):
            raise PreconditionError(f"Invalid shift times '{start}' to '{end}', expected HH:mm")

    async def _time_off_warnings(self, shift: ScheduleShift) -> List[str]:
        if not shift.userId:
            return []
        conflicts = await self.time_off.conflicts_for(shift.companyId, shift.userId, shift.startTime, shift.endTime)
        warnings = conflict_warnings(shift.userName or shift.userId, conflicts)
        for warning in warnings:
            log_warning(warning, user_id=shift.userId)
        return warnings

    async def _insert(self, shifts: List[ScheduleShift]) -> int:
        return await self.store.batch_create(SHIFTS, [s.to_document() for s in shifts])

    async def _apply(self, shift: ScheduleShift, changes: Dict[str, Any]) -> ScheduleShift:
        """Write ``changes`` and return the shift as stored afterwards."""
        doc = shift.to_document()
        apply_changes(doc, changes)
        try:
            updated = ScheduleShift(**doc)
        except ValueError as e:
            raise PreconditionError(str(e))
        await self.store.update(SHIFTS, shift.id, changes)
        return updated

    # ------------------------------------------------------------------
    # Manual CRUD
    # ------------------------------------------------------------------

    async def create_shift(self, company: Company, data: ShiftCreate,
                           actor_id: Optional[str] = None) -> Tuple[ScheduleShift, List[str]]:
        start, end = self._span(company, parse_day(data.date), data.startTime, data.endTime)
        member = await self.get_member(company.id, data.userId) if data.userId else None
        location = await self.get_location(company.id, data.locationId) if data.locationId else None

        shift = ScheduleShift(
            _id=new_shift_id(),
            companyId=company.id,
            locationId=location.id if location else None,
            locationName=location.name if location else None,
            userId=member.id if member else None,
            userName=member.name if member else None,
            role=data.role.strip() or "Staff",
            startTime=start,
            endTime=end,
            notes=data.notes,
            status=ShiftStatus.DRAFT,
        )
        await self.store.create(SHIFTS, shift.to_document())
        await log_event(EventTypes.SHIFT_CREATED, {"shift_id": shift.id}, user_id=actor_id, company_id=company.id)
        return shift, await self._time_off_warnings(shift)

    async def update_shift(self, company: Company, shift_id: str, data: ShiftUpdate,
                           actor_id: Optional[str] = None) -> Tuple[ScheduleShift, List[str]]:
        shift = await self.get_shift(company.id, shift_id)
        updates = data.dict(exclude_unset=True)
        changes: Dict[str, Any] = {"status": DRAFT}
        assignee: Optional[str] = None

        if {"date", "startTime", "endTime"} & updates.keys():
            current_start = from_millis(shift.startTime, self.tz)
            current_end = from_millis(shift.endTime, self.tz)
            day = parse_day(updates["date"]) if updates.get("date") else current_start.date()
            start = updates.get("startTime") or current_start.strftime("%H:%M")
            end = updates["endTime"] if "endTime" in updates else current_end.strftime("%H:%M")
            changes["startTime"], changes["endTime"] = self._span(company, day, start, end)

        if updates.get("role"):
            changes["role"] = updates["role"].strip()

        if "userId" in updates:
            if updates["userId"] is None:
                changes.update({"userId": DELETE_FIELD, "userName": DELETE_FIELD, "isOffered": False})
            else:
                member = await self.get_member(company.id, updates["userId"])
                changes.update({"userId": member.id, "userName": member.name})
                if member.id != shift.userId:
                    changes.update({"isOffered": False, "bids": []})
                    assignee = member.id

        if "locationId" in updates:
            if updates["locationId"] is None:
                changes.update({"locationId": DELETE_FIELD, "locationName": DELETE_FIELD})
            else:
                location = await self.get_location(company.id, updates["locationId"])
                changes.update({"locationId": location.id, "locationName": location.name})

        if "notes" in updates:
            changes["notes"] = updates["notes"] if updates["notes"] else DELETE_FIELD

        updated = await self._apply(shift, changes)
        if assignee:
            await self._prune_sibling_bids(shift, assignee)
            await notify_assigned(updated)
        await log_event(EventTypes.SHIFT_UPDATED, {"shift_id": shift_id, "fields": sorted(updates)},
                        user_id=actor_id, company_id=company.id)
        return updated, await self._time_off_warnings(updated)

    async def delete_shift(self, company_id: str, shift_id: str, actor_id: Optional[str] = None) -> None:
        await self.get_shift(company_id, shift_id)
        await self.store.delete(SHIFTS, shift_id)
        await log_event(EventTypes.SHIFT_DELETED, {"shift_id": shift_id}, user_id=actor_id, company_id=company_id)

    # ------------------------------------------------------------------
    # Cloning: duplicate, repeat, paste, copy day/week, drag
    # ------------------------------------------------------------------

    async def duplicate_shift(self, company_id: str, shift_id: str, actor_id: Optional[str] = None) -> ScheduleShift:
        source = await self.get_shift(company_id, shift_id)
        clone = duplication.duplicate_in_place(source)
        await self.store.create(SHIFTS, clone.to_document())
        await log_event(EventTypes.SHIFT_DUPLICATED, {"source_id": shift_id, "shift_id": clone.id},
                        user_id=actor_id, company_id=company_id)
        return clone

    async def repeat_shift(self, company_id: str, shift_id: str, request: RepeatRequest,
                           actor_id: Optional[str] = None) -> Tuple[List[ScheduleShift], List[str]]:
        source = await self.get_shift(company_id, shift_id)
        clones, warnings = recurrence.plan_recurrence(
            source,
            request.pattern,
            view_date=parse_day(request.viewDate, "view date") if request.viewDate else None,
            cutoff=parse_day(request.cutoffDate, "end date") if request.cutoffDate else None,
            weekdays=request.weekdays,
            weeks=request.weeks,
            tz=self.tz,
        )
        await self._insert(clones)
        await log_event(
            EventTypes.SHIFTS_REPEATED,
            {"source_id": shift_id, "pattern": request.pattern, "count": len(clones)},
            user_id=actor_id, company_id=company_id,
        )
        return clones, warnings

    async def paste_shift(self, company_id: str, shift_id: str, target: date,
                          actor_id: Optional[str] = None) -> ScheduleShift:
        source = await self.get_shift(company_id, shift_id)
        clone = duplication.paste_onto_date(source, target, self.tz)
        await self.store.create(SHIFTS, clone.to_document())
        await log_event(EventTypes.SHIFT_PASTED, {"source_id": shift_id, "target": target.isoformat()},
                        user_id=actor_id, company_id=company_id)
        return clone

    async def copy_day(self, company_id: str, source: date, target: date,
                       actor_id: Optional[str] = None) -> List[ScheduleShift]:
        shifts = await self.get_schedule_in_range(company_id, start_of_day(source, self.tz), end_of_day(source, self.tz))
        clones = duplication.copy_day(shifts, source, target, self.tz)
        await self._insert(clones)
        await log_event(
            EventTypes.DAY_COPIED,
            {"source": source.isoformat(), "target": target.isoformat(), "count": len(clones)},
            user_id=actor_id, company_id=company_id,
        )
        return clones

    async def copy_week(self, company_id: str, source_ref: date, target_ref: date,
                        actor_id: Optional[str] = None) -> List[ScheduleShift]:
        start, end = week_range(source_ref, self.tz)
        shifts = await self.get_schedule_in_range(company_id, start, end)
        clones = duplication.copy_week(shifts, source_ref, target_ref, self.tz)
        await self._insert(clones)
        await log_event(
            EventTypes.WEEK_COPIED,
            {"source": source_ref.isoformat(), "target": target_ref.isoformat(), "count": len(clones)},
            user_id=actor_id, company_id=company_id,
        )
        return clones

    async def move_shift(self, company_id: str, shift_id: str, target: date, copy: bool = False,
                         actor_id: Optional[str] = None) -> ScheduleShift:
        """Drop a shift onto ``target``: relocate it, or leave it and create a draft clone."""
        shift = await self.get_shift(company_id, shift_id)
        if copy:
            clone = duplication.drag_copy(shift, target, self.tz)
            await self.store.create(SHIFTS, clone.to_document())
            result = clone
        else:
            start, end = duplication.relocation_span(shift, target, self.tz)
            result = await self._apply(shift, {"startTime": start, "endTime": end, "status": DRAFT})
        await log_event(
            EventTypes.SHIFT_MOVED,
            {"shift_id": shift_id, "target": target.isoformat(), "copy": copy, "result_id": result.id},
            user_id=actor_id, company_id=company_id,
        )
        return result

    # ------------------------------------------------------------------
    # Bidding & assignment
    # ------------------------------------------------------------------

    async def _load_many(self, company_id: str, shift_ids: List[str]) -> List[ScheduleShift]:
        # dict.fromkeys keeps order and drops repeats
        return [await self.get_shift(company_id, shift_id) for shift_id in dict.fromkeys(shift_ids)]

    async def bid(self, company: Company, shift_ids: List[str], user: StaffMember) -> int:
        """Add ``user`` to the bid set of every listed shift."""
        if not company.settings.allowShiftBidding:
            raise FeatureDisabledError("Shift bidding is disabled for this company")
        shifts = await self._load_many(company.id, shift_ids)
        updates = []
        for shift in shifts:
            if shift.userId == user.id:
                raise PreconditionError("You are already assigned to this shift")
            if not is_biddable_by(shift, user):
                raise PreconditionError("This shift is no longer open for bids")
            updates.append((shift.id, bidding.bid_changes(shift, user.id)))
        written = await self.store.batch_update(SHIFTS, updates)
        await log_event(EventTypes.SHIFT_BID, {"shift_ids": [s.id for s in shifts]},
                        user_id=user.id, company_id=company.id)
        return written

    async def cancel_bid(self, company: Company, shift_ids: List[str], user: StaffMember) -> int:
        shifts = await self._load_many(company.id, shift_ids)
        updates = [(s.id, bidding.cancel_bid_changes(user.id)) for s in shifts]
        written = await self.store.batch_update(SHIFTS, updates)
        await log_event(EventTypes.SHIFT_BID_CANCELLED, {"shift_ids": [s.id for s in shifts]},
                        user_id=user.id, company_id=company.id)
        return written

    async def _prune_sibling_bids(self, shift: ScheduleShift, user_id: str) -> int:
        """Remove ``user_id`` from the bids of the other slots in ``shift``'s collection."""
        filters = [
            Filter("companyId", "==", shift.companyId),
            Filter("role", "==", shift.role),
            Filter("startTime", "==", shift.startTime),
            Filter("endTime", "==", shift.endTime),
            Filter("bids", "array_contains", user_id),
        ]
        siblings = [ScheduleShift(**d) for d in await self.store.query(SHIFTS, filters)]
        cleanup = bidding.sibling_bid_cleanup(shift, siblings, user_id)
        if cleanup:
            await self.store.batch_update(SHIFTS, cleanup)
        return len(cleanup)

    async def assign(self, company_id: str, shift_id: str, user_id: str, confirmed: bool = False,
                     actor_id: Optional[str] = None) -> Tuple[ScheduleShift, List[str]]:
        """Give ``shift_id`` to ``user_id`` and drop their bids on the other slots of its collection."""
        shift = await self.get_shift(company_id, shift_id)
        member = await self.get_member(company_id, user_id)
        if not confirmed:
            raise ConfirmationRequiredError(
                "assign", 1, f"Assign {member.name} to this shift? The shift will return to draft.",
            )

        updated = await self._apply(shift, bidding.assignment_changes(member))
        cleaned = await self._prune_sibling_bids(shift, member.id)

        await log_event(
            EventTypes.SHIFT_ASSIGNED,
            {"shift_id": shift_id, "assignee": member.id, "siblings_cleaned": cleaned},
            user_id=actor_id, company_id=company_id,
        )
        await notify_assigned(updated)
        return updated, await self._time_off_warnings(updated)

    async def set_offer_status(self, company_id: str, shift_id: str, user_id: str, offer: bool) -> ScheduleShift:
        shift = await self.get_shift(company_id, shift_id)
        updated = await self._apply(shift, bidding.offer_changes(shift, user_id, offer))
        event = EventTypes.SHIFT_OFFERED if offer else EventTypes.SHIFT_OFFER_RETRACTED
        await log_event(event, {"shift_id": shift_id}, user_id=user_id, company_id=company_id)
        return updated

    # ------------------------------------------------------------------
    # Draft / publish lifecycle
    # ------------------------------------------------------------------

    def _draft_filters(self, company_id: str, start: Optional[int], end: Optional[int]) -> List[Filter]:
        if (start is None) != (end is None):
            raise PreconditionError("A scope needs both start and end, or neither")
        filters = [Filter("companyId", "==", company_id), Filter("status", "==", DRAFT)]
        if start is not None:
            filters += [Filter("startTime", ">=", start), Filter("startTime", "<=", end)]
        return filters

    async def count_drafts(self, company_id: str, start: Optional[int] = None, end: Optional[int] = None) -> int:
        return await self.store.count(SHIFTS, self._draft_filters(company_id, start, end))

    async def get_global_draft_count(self, company_id: str) -> int:
        return await self.count_drafts(company_id)

    async def publish(self, company_id: str, start: Optional[int] = None, end: Optional[int] = None,
                      confirmed: bool = False, actor_id: Optional[str] = None) -> int:
        """Publish every draft in scope (all of the company's drafts when unscoped)."""
        docs = await self.store.query(SHIFTS, self._draft_filters(company_id, start, end))
        if not docs:
            return 0
        if not confirmed:
            scope = "all drafts" if start is None else "drafts in this range"
            raise ConfirmationRequiredError(
                "publish", len(docs), f"Publish {len(docs)} shift(s) ({scope})? Staff will be able to see them.",
            )

        shifts = [ScheduleShift(**d) for d in docs]
        published = await self.store.batch_update(SHIFTS, [(s.id, {"status": PUBLISHED}) for s in shifts])
        notified = await notify_published(shifts)
        await log_event(
            EventTypes.SHIFTS_PUBLISHED,
            {"count": published, "scoped": start is not None, "notified": notified},
            user_id=actor_id, company_id=company_id,
        )
        return published

    async def clear_drafts(self, company_id: str, start: Optional[int] = None, end: Optional[int] = None,
                           confirmed: bool = False, actor_id: Optional[str] = None) -> int:
        """Delete every draft in scope. Irreversible."""
        docs = await self.store.query(SHIFTS, self._draft_filters(company_id, start, end))
        if not docs:
            return 0
        if not confirmed:
            raise ConfirmationRequiredError(
                "clear_drafts", len(docs), f"Permanently delete {len(docs)} draft shift(s)? This cannot be undone.",
            )
        deleted = await self.store.batch_delete(SHIFTS, [d["_id"] for d in docs])
        await log_event(EventTypes.DRAFTS_CLEARED, {"count": deleted, "scoped": start is not None},
                        user_id=actor_id, company_id=company_id)
        return deleted

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    async def commit_import(self, company_id: str, rows: List[ImportRow], location_id: Optional[str] = None,
                            actor_id: Optional[str] = None) -> List[ScheduleShift]:
        roster = await self.get_roster(company_id)
        location = await self.get_location(company_id, location_id) if location_id else None
        shifts = importer.build_import_shifts(
            rows,
            company_id,
            roster,
            location_id=location.id if location else None,
            location_name=location.name if location else None,
            tz=self.tz,
        )
        await self._insert(shifts)
        unregistered = sum(1 for s in shifts if s.userId is None and s.userName)
        await log_event(
            EventTypes.IMPORT_COMMITTED,
            {"count": len(shifts), "unregistered": unregistered},
            user_id=actor_id, company_id=company_id,
        )
        return shifts

    def day_bounds(self, day: date) -> Tuple[int, int]:
        return start_of_day(day, self.tz), end_of_day(day, self.tz)

    def today(self) -> date:
        return datetime.now(self.tz).date()
