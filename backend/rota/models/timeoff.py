from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional


class TimeOffType(str, Enum):
    HOLIDAY = "holiday"
    SICKNESS = "sickness"
    OTHER = "other"


class TimeOffStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TimeOffRequest(BaseModel):
    id: str = Field(..., alias="_id")
    userId: str
    userName: str
    companyId: str
    startDate: int  # start of day, epoch millis
    endDate: int  # end of day, epoch millis
    type: TimeOffType = TimeOffType.HOLIDAY
    reason: Optional[str] = None
    status: TimeOffStatus = TimeOffStatus.PENDING
    createdAt: int
    reviewedBy: Optional[str] = None
    reviewedAt: Optional[int] = None

    class Config:
        populate_by_name = True
        use_enum_values = True

    def overlaps(self, start: int, end: int) -> bool:
        return self.startDate < end and start <= self.endDate
