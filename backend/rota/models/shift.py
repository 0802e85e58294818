import secrets
import string
import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_ROLE = "Staff"
NO_LOCATION = "nil"

_ID_ALPHABET = string.ascii_lowercase + string.digits


class ShiftStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


def new_shift_id(index: Optional[int] = None) -> str:
    """Timestamp + random suffix; ``index`` keeps ids unique inside one batch."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    millis = int(time.time() * 1000)
    if index is None:
        return f"sch_{millis}_{suffix}"
    return f"sch_{millis}_{index}_{suffix}"


class ScheduleShift(BaseModel):
    id: str = Field(..., alias="_id")
    companyId: str
    locationId: Optional[str] = None
    locationName: Optional[str] = None  # snapshot at write time
    userId: Optional[str] = None  # None = open shift
    userName: Optional[str] = None  # snapshot at assignment time
    role: str = DEFAULT_ROLE
    startTime: int  # epoch millis
    endTime: int  # epoch millis
    notes: Optional[str] = None
    status: ShiftStatus = ShiftStatus.DRAFT
    bids: List[str] = Field(default_factory=list)
    isOffered: bool = False

    class Config:
        populate_by_name = True
        use_enum_values = True

    @field_validator("bids", mode="before")
    @classmethod
    def _bids_as_set(cls, value):
        if value is None:
            return []
        seen = []
        for user_id in value:
            if user_id not in seen:
                seen.append(user_id)
        return seen

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        return self

    @property
    def duration(self) -> int:
        return self.endTime - self.startTime

    def to_document(self) -> Dict[str, Any]:
        return self.dict(by_alias=True, exclude_none=True)

    def clone_to(self, start: int, end: Optional[int] = None, index: Optional[int] = None) -> "ScheduleShift":
        """Fresh draft copy at ``start``.

        Only role, location and duration carry over; assignment, bids and the
        offer flag never do.
        """
        if end is None:
            end = start + self.duration
        return ScheduleShift(
            _id=new_shift_id(index),
            companyId=self.companyId,
            locationId=self.locationId,
            locationName=self.locationName,
            role=self.role,
            startTime=start,
            endTime=end,
            notes=self.notes,
            status=ShiftStatus.DRAFT,
            bids=[],
            isOffered=False,
        )


def group_key(shift: ScheduleShift) -> str:
    location = shift.locationId if shift.locationId is not None else NO_LOCATION
    return f"{shift.role}_{shift.startTime}_{shift.endTime}_{location}"
