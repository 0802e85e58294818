from fastapi import APIRouter, Depends, Query
from typing import Optional
from rota.models.company import Company
from rota.schemas.shift import BidRequest, OfferRequest
from rota.services.schedule_service import ScheduleService, parse_day
from rota.utils.auth import as_member, get_current_user, require_rota_enabled
from rota.utils.timeutils import DAY_MS, week_range

router = APIRouter()


def _window(service: ScheduleService, week: Optional[str], weeks: int):
    ref = parse_day(week, "week") if week else service.today()
    start, end = week_range(ref, service.tz)
    # extend by whole weeks so the board can look ahead
    return start, end + (weeks - 1) * 7 * DAY_MS


@router.get("/open-shifts", response_model=dict)
async def open_shifts(
    week: Optional[str] = Query(None),
    weeks: int = Query(4, ge=1, le=12),
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(get_current_user),
):
    service = ScheduleService()
    start, end = _window(service, week, weeks)
    board = await service.get_open_board(company.id, as_member(current_user), start, end)
    return {"days": board, "biddingEnabled": company.settings.allowShiftBidding}


@router.get("/my-shifts", response_model=dict)
async def my_shifts(
    week: Optional[str] = Query(None),
    weeks: int = Query(4, ge=1, le=12),
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(get_current_user),
):
    service = ScheduleService()
    start, end = _window(service, week, weeks)
    shifts = await service.get_my_shifts(company.id, current_user["_id"], start, end)
    return {
        "items": shifts,
        "total": len(shifts),
        "showFinishTimes": company.settings.rotaShowFinishTimes,
    }


@router.post("/bid", response_model=dict)
async def bid(
    request: BidRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(get_current_user),
):
    updated = await ScheduleService().bid(company, request.shiftIds, as_member(current_user))
    return {"message": "Bid placed", "updated": updated}


@router.post("/cancel-bid", response_model=dict)
async def cancel_bid(
    request: BidRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(get_current_user),
):
    updated = await ScheduleService().cancel_bid(company, request.shiftIds, as_member(current_user))
    return {"message": "Bid cancelled", "updated": updated}


@router.post("/shifts/{shift_id}/offer", response_model=dict)
async def offer_shift(
    shift_id: str,
    request: OfferRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(get_current_user),
):
    shift = await ScheduleService().set_offer_status(company.id, shift_id, current_user["_id"], request.offer)
    return {"shift": shift}
