from asyncio import run

import pytest

from rota.models.company import Company, StaffMember
from rota.models.timeoff import TimeOffRequest
from rota.schemas.timeoff import TimeOffCreate
from rota.services.errors import NotFoundError, PreconditionError
from rota.services.timeoff_service import TimeOffService, find_time_off_conflicts

BELLA = StaffMember(_id="usr_bella", name="Bella Smith")


def request(status="approved", start=100, end=200, user="usr_bella"):
    return TimeOffRequest(_id="tor", userId=user, userName="x", companyId="cmp",
                          startDate=start, endDate=end, status=status, createdAt=0)


def test_conflicts_need_overlap_owner_and_live_status():
    requests = [
        request(),
        request(status="rejected"),
        request(start=300, end=400),
        request(user="usr_tom"),
        request(status="pending", start=150, end=160),
    ]
    conflicts = find_time_off_conflicts("usr_bella", 180, 250, requests)
    assert [r.status for r in conflicts] == ["approved"]


def test_pending_request_lifecycle(store, company):
    service = TimeOffService()
    created = run(service.create(Company(_id=company), BELLA,
                                 TimeOffCreate(startDate="2024-01-08", endDate="2024-01-09", reason="Wedding")))
    assert created.status == "pending"
    assert [r.id for r in run(service.list_pending(company))] == [created.id]

    with pytest.raises(NotFoundError):
        run(service.delete(company, created.id, "usr_tom"))

    reviewed = run(service.review(company, created.id, "approved", "usr_admin"))
    assert reviewed.status == "approved"
    assert run(service.list_pending(company)) == []

    with pytest.raises(PreconditionError):
        run(service.review(company, created.id, "rejected", "usr_admin"))
    with pytest.raises(PreconditionError):
        run(service.delete(company, created.id, "usr_bella"))


def test_auto_approval_when_not_required(store, company):
    settings = Company(_id=company, settings={"requireTimeOffApproval": False})
    created = run(TimeOffService().create(settings, BELLA, TimeOffCreate(startDate="2024-01-08", endDate="2024-01-08")))
    assert created.status == "approved"
    assert created.endDate - created.startDate == 24 * 60 * 60 * 1000 - 1


def test_end_before_start_is_rejected(store, company):
    with pytest.raises(PreconditionError):
        run(TimeOffService().create(Company(_id=company), BELLA,
                                    TimeOffCreate(startDate="2024-01-09", endDate="2024-01-08")))
