"""
Import review endpoints.

The review step is stateless on the server: the client posts its current rows
and gets the remediated rows back. Only ``/commit`` writes anything.
"""

from collections import Counter
from fastapi import APIRouter, Depends
from typing import List
from rota.models.company import Company
from rota.models.import_row import HARD_ISSUES, ImportRow
from rota.schemas.imports import (
    CopyDownRequest, EditRowRequest, FillEndTimeRequest, ImportCommitRequest,
    ImportPreviewRequest, ImportReview, ReselectUserRequest,
)
from rota.schemas.shift import ShiftBatchOut
from rota.services import importer
from rota.services.schedule_service import ScheduleService
from rota.utils.auth import require_admin, require_rota_enabled

router = APIRouter()


def review(rows: List[ImportRow]) -> ImportReview:
    counts = Counter(issue for row in rows for issue in row.errors)
    blocked = any(row.has(issue) for row in rows for issue in HARD_ISSUES)
    return ImportReview(rows=rows, issueCounts=dict(counts), canCommit=bool(rows) and not blocked)


@router.post("/preview", response_model=ImportReview)
async def preview_import(
    request: ImportPreviewRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    roster = await ScheduleService().get_roster(company.id)
    return review(importer.reconcile_rows(request.rows, roster))


@router.post("/fill-end-time", response_model=ImportReview)
async def fill_end_time(
    request: FillEndTimeRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    return review(importer.fill_missing_end_times(request.rows, request.endTime))


@router.post("/copy-down", response_model=ImportReview)
async def copy_down(
    request: CopyDownRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    return review(importer.copy_down(request.rows, request.index, request.field))


@router.post("/edit", response_model=ImportReview)
async def edit_row(
    request: EditRowRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    return review(importer.edit_row(request.rows, request.index, request.field, request.value))


@router.post("/reselect", response_model=ImportReview)
async def reselect_user(
    request: ReselectUserRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    roster = await ScheduleService().get_roster(company.id)
    return review(importer.reselect_user(request.rows, request.index, request.userId, roster))


@router.post("/commit", response_model=ShiftBatchOut, status_code=201)
async def commit_import(
    request: ImportCommitRequest,
    company: Company = Depends(require_rota_enabled),
    current_user: dict = Depends(require_admin),
):
    shifts = await ScheduleService().commit_import(
        company.id, request.rows, location_id=request.locationId, actor_id=current_user["_id"]
    )
    warnings = [f"{s.userName} is not on the roster" for s in shifts if s.userId is None and s.userName]
    return ShiftBatchOut(created=shifts, count=len(shifts), warnings=warnings)
