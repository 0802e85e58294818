from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from rota.models.shift import ScheduleShift


class ShiftCreate(BaseModel):
    date: str  # YYYY-MM-DD format
    startTime: str  # HH:mm format
    endTime: Optional[str] = None  # HH:mm format; ignored when finish times are hidden
    role: str = "Staff"
    userId: Optional[str] = None  # None = open shift
    locationId: Optional[str] = None
    notes: Optional[str] = None


class ShiftUpdate(BaseModel):
    date: Optional[str] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    role: Optional[str] = None
    userId: Optional[str] = None  # explicit null unassigns
    locationId: Optional[str] = None
    notes: Optional[str] = None


class RepeatRequest(BaseModel):
    pattern: Literal["daily_week", "custom", "weekly"]
    viewDate: Optional[str] = None  # any date inside the week being viewed
    cutoffDate: Optional[str] = None  # required for "custom"
    weekdays: Optional[List[int]] = None  # 0=Sunday..6=Saturday
    weeks: Optional[int] = None  # required for "weekly"


class PasteRequest(BaseModel):
    targetDate: str


class MoveRequest(BaseModel):
    targetDate: str
    copy_: bool = Field(False, alias="copy")

    class Config:
        populate_by_name = True


class CopyDayRequest(BaseModel):
    sourceDate: str
    targetDate: str


class CopyWeekRequest(BaseModel):
    sourceWeek: str  # any date inside the source week
    targetWeek: str  # any date inside the target week


class AssignRequest(BaseModel):
    userId: str
    confirm: bool = False


class ScopeRequest(BaseModel):
    start: Optional[int] = None  # epoch millis; omit both for company-wide
    end: Optional[int] = None
    confirm: bool = False


class BidRequest(BaseModel):
    shiftIds: List[str] = Field(..., min_length=1)


class OfferRequest(BaseModel):
    offer: bool


class ShiftBatchOut(BaseModel):
    created: List[ScheduleShift]
    count: int
    warnings: List[str] = []
