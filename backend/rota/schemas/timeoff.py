from pydantic import BaseModel
from typing import Literal, Optional
from rota.models.timeoff import TimeOffType


class TimeOffCreate(BaseModel):
    startDate: str  # YYYY-MM-DD
    endDate: str  # YYYY-MM-DD
    type: TimeOffType = TimeOffType.HOLIDAY
    reason: Optional[str] = None


class TimeOffReview(BaseModel):
    status: Literal["approved", "rejected"]
