from fastapi import APIRouter, Depends
from rota.schemas.timeoff import TimeOffCreate, TimeOffReview
from rota.services.timeoff_service import TimeOffService
from rota.utils.auth import as_member, current_company_id, get_current_company, get_current_user, require_admin
from rota.models.company import Company

router = APIRouter()


@router.get("/", response_model=dict)
async def list_pending_requests(current_user: dict = Depends(require_admin)):
    requests = await TimeOffService().list_pending(current_company_id(current_user))
    return {"items": requests, "total": len(requests)}


@router.get("/mine", response_model=dict)
async def list_my_requests(current_user: dict = Depends(get_current_user)):
    requests = await TimeOffService().list_for_user(current_user["_id"])
    return {"items": requests, "total": len(requests)}


@router.post("/", response_model=dict, status_code=201)
async def create_request(
    data: TimeOffCreate,
    company: Company = Depends(get_current_company),
    current_user: dict = Depends(get_current_user),
):
    request = await TimeOffService().create(company, as_member(current_user), data)
    return {"request": request}


@router.post("/{request_id}/review", response_model=dict)
async def review_request(
    request_id: str,
    data: TimeOffReview,
    current_user: dict = Depends(require_admin),
):
    request = await TimeOffService().review(
        current_company_id(current_user), request_id, data.status, current_user["_id"]
    )
    return {"request": request}


@router.delete("/{request_id}", status_code=200)
async def delete_request(request_id: str, current_user: dict = Depends(get_current_user)):
    await TimeOffService().delete(current_company_id(current_user), request_id, current_user["_id"])
    return {"message": "Time off request withdrawn"}
