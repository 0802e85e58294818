# tests/conftest.py
import os

# Set environment variables for testing (before the app reads them)
os.environ["SECRET_KEY"] = "testing_secret_key_for_development_only"
os.environ["ROTA_STORE"] = "memory"
os.environ["ROTA_TIMEZONE"] = "UTC"

from asyncio import run
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt

import rota.db
from rota.db import COMPANIES, LOCATIONS, SHIFTS, USERS
from rota.models.shift import ScheduleShift, new_shift_id
from rota.services.store import MemoryStore
from rota.utils.auth import ALGORITHM, SECRET_KEY
from rota.utils.timeutils import at_time
from main import app

COMPANY_ID = "cmp_test"
ADMIN_ID = "usr_admin"

STAFF = [
    {"_id": "usr_bella", "name": "Bella Smith", "roles": ["Bar Staff"]},
    {"_id": "usr_tom", "name": "Tom Jones", "position": "Security"},
    {"_id": "usr_ann", "name": "Ann Lee", "roles": ["Server", "Bar Staff"]},
    {"_id": "usr_sam", "name": "Sam Green"},
]


@pytest.fixture
def store():
    """Fresh in-memory store, shared by the app and the services."""
    fresh = MemoryStore()
    rota.db.store = fresh
    app.state.db = fresh
    return fresh


@pytest.fixture
def company(store):
    run(store.create(COMPANIES, {"_id": COMPANY_ID, "name": "The Anchor", "settings": {}}))
    run(store.create(USERS, {"_id": ADMIN_ID, "name": "Alex Admin", "role": "admin", "currentCompanyId": COMPANY_ID}))
    for member in STAFF:
        run(store.create(USERS, dict(member, role="staff", currentCompanyId=COMPANY_ID)))
    run(store.create(LOCATIONS, {"_id": "loc_main", "companyId": COMPANY_ID, "name": "Main Bar"}))
    return COMPANY_ID


@pytest.fixture
def set_company_settings(store, company):
    def _set(**settings):
        run(store.update(COMPANIES, company, {"settings": settings}))
    return _set


@pytest.fixture
def make_shift(store, company):
    """Insert a shift on ``day`` between ``start`` and ``end`` (hours, end may pass midnight)."""
    def _make(day, start=(9, 0), end=(17, 0), role="Staff", **fields):
        start_ms = at_time(day, *start)
        end_ms = at_time(day + timedelta(days=1) if end <= start else day, *end)
        shift = ScheduleShift(_id=new_shift_id(), companyId=company, role=role,
                              startTime=start_ms, endTime=end_ms, **fields)
        run(store.create(SHIFTS, shift.to_document()))
        return shift
    return _make


def make_token(user_id: str) -> str:
    payload = {"sub": user_id, "type": "access", "exp": datetime.utcnow() + timedelta(hours=1)}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


@pytest.fixture
def admin_headers(company):
    return {"Authorization": f"Bearer {make_token(ADMIN_ID)}"}


@pytest.fixture
def staff_headers(company):
    def _headers(user_id="usr_bella"):
        return {"Authorization": f"Bearer {make_token(user_id)}"}
    return _headers


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c
