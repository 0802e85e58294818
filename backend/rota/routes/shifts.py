from fastapi import APIRouter, Depends, Query
from typing import Optional
from rota.models.company import Company
from rota.schemas.shift import (
    AssignRequest, CopyDayRequest, CopyWeekRequest, MoveRequest, PasteRequest,
    RepeatRequest, ScopeRequest, ShiftBatchOut, ShiftCreate, ShiftUpdate,
)
from rota.services.schedule_service import ScheduleService, parse_day
from rota.utils.auth import require_admin, require_rota_enabled
from rota.utils.timeutils import week_range

router = APIRouter()


def _range(service: ScheduleService, start: Optional[str], end: Optional[str], week: Optional[str]):
    """Millisecond window from ``start``/``end`` dates, or the week holding ``week`` (default: this week)."""
    if start and end:
        return service.day_bounds(parse_day(start, "start date"))[0], service.day_bounds(parse_day(end, "end date"))[1]
    ref = parse_day(week, "week") if week else service.today()
    return week_range(ref, service.tz)


@router.get("/shifts", response_model=dict)
async def list_shifts(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    week: Optional[str] = Query(None),
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    service = ScheduleService()
    start, end = _range(service, start_date, end_date, week)
    shifts = await service.get_schedule_in_range(company.id, start, end)
    return {"items": shifts, "total": len(shifts), "start": start, "end": end}


@router.get("/shifts/grouped", response_model=dict)
async def grouped_shifts(
    week: Optional[str] = Query(None),
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    service = ScheduleService()
    ref = parse_day(week, "week") if week else service.today()
    return {"week": ref.isoformat(), "days": await service.get_grouped_week(company.id, ref)}


@router.post("/shifts", response_model=dict, status_code=201)
async def create_shift(
    data: ShiftCreate,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    shift, warnings = await ScheduleService().create_shift(company, data, actor_id=current_user["_id"])
    return {"shift": shift, "warnings": warnings}


@router.put("/shifts/{shift_id}", response_model=dict)
async def update_shift(
    shift_id: str,
    data: ShiftUpdate,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    shift, warnings = await ScheduleService().update_shift(company, shift_id, data, actor_id=current_user["_id"])
    return {"shift": shift, "warnings": warnings}


@router.delete("/shifts/{shift_id}", status_code=200)
async def delete_shift(
    shift_id: str,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    await ScheduleService().delete_shift(company.id, shift_id, actor_id=current_user["_id"])
    return {"message": "Shift deleted"}


@router.post("/shifts/{shift_id}/duplicate", response_model=dict, status_code=201)
async def duplicate_shift(
    shift_id: str,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    shift = await ScheduleService().duplicate_shift(company.id, shift_id, actor_id=current_user["_id"])
    return {"shift": shift}


@router.post("/shifts/{shift_id}/repeat", response_model=ShiftBatchOut, status_code=201)
async def repeat_shift(
    shift_id: str,
    request: RepeatRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    clones, warnings = await ScheduleService().repeat_shift(company.id, shift_id, request, actor_id=current_user["_id"])
    return ShiftBatchOut(created=clones, count=len(clones), warnings=warnings)


@router.post("/shifts/{shift_id}/paste", response_model=dict, status_code=201)
async def paste_shift(
    shift_id: str,
    request: PasteRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    target = parse_day(request.targetDate, "target date")
    shift = await ScheduleService().paste_shift(company.id, shift_id, target, actor_id=current_user["_id"])
    return {"shift": shift}


@router.post("/shifts/{shift_id}/move", response_model=dict)
async def move_shift(
    shift_id: str,
    request: MoveRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    target = parse_day(request.targetDate, "target date")
    shift = await ScheduleService().move_shift(
        company.id, shift_id, target, copy=request.copy_, actor_id=current_user["_id"]
    )
    return {"shift": shift, "copied": request.copy_}


@router.post("/shifts/{shift_id}/assign", response_model=dict)
async def assign_shift(
    shift_id: str,
    request: AssignRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    shift, warnings = await ScheduleService().assign(
        company.id, shift_id, request.userId, confirmed=request.confirm, actor_id=current_user["_id"]
    )
    return {"shift": shift, "warnings": warnings}


@router.post("/days/copy", response_model=ShiftBatchOut, status_code=201)
async def copy_day(
    request: CopyDayRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    clones = await ScheduleService().copy_day(
        company.id,
        parse_day(request.sourceDate, "source date"),
        parse_day(request.targetDate, "target date"),
        actor_id=current_user["_id"],
    )
    return ShiftBatchOut(created=clones, count=len(clones))


@router.post("/weeks/copy", response_model=ShiftBatchOut, status_code=201)
async def copy_week(
    request: CopyWeekRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    clones = await ScheduleService().copy_week(
        company.id,
        parse_day(request.sourceWeek, "source week"),
        parse_day(request.targetWeek, "target week"),
        actor_id=current_user["_id"],
    )
    return ShiftBatchOut(created=clones, count=len(clones))


@router.get("/drafts/count", response_model=dict)
async def count_drafts(
    start: int = Query(...),
    end: int = Query(...),
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    return {"count": await ScheduleService().count_drafts(company.id, start, end)}


@router.get("/drafts/global-count", response_model=dict)
async def global_draft_count(
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    return {"count": await ScheduleService().get_global_draft_count(company.id)}


@router.post("/publish", response_model=dict)
async def publish(
    request: ScopeRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    published = await ScheduleService().publish(
        company.id, request.start, request.end, confirmed=request.confirm, actor_id=current_user["_id"]
    )
    return {"published": published}


@router.post("/drafts/clear", response_model=dict)
async def clear_drafts(
    request: ScopeRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    deleted = await ScheduleService().clear_drafts(
        company.id, request.start, request.end, confirmed=request.confirm, actor_id=current_user["_id"]
    )
    return {"deleted": deleted}
