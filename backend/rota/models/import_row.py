from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

OPEN_USER = "open"
UNKNOWN_USER = "unknown"


class ImportIssue(str, Enum):
    INVALID_DATE = "invalid_date"
    MISSING_TIME = "missing_time"
    MISSING_END_TIME = "missing_end_time"
    AMBIGUOUS_ROLE = "ambiguous_role"
    NAME_UNKNOWN = "name_unknown"


# Issues that stop a row set from being committed
HARD_ISSUES = (ImportIssue.INVALID_DATE, ImportIssue.MISSING_TIME, ImportIssue.AMBIGUOUS_ROLE)


class RawImportRow(BaseModel):
    """One candidate shift as delivered by a CSV or OCR producer."""
    name: str = ""
    date: str = ""
    start: str = ""
    end: str = ""
    role: Optional[str] = None


class ImportRow(BaseModel):
    rawName: str = ""
    rawDate: str = ""
    rawStart: str = ""
    rawEnd: str = ""
    rawRole: Optional[str] = None

    matchedUserId: str = UNKNOWN_USER  # user id, OPEN_USER or UNKNOWN_USER
    parsedDate: str = ""  # YYYY-MM-DD
    parsedStart: str = ""  # HH:mm
    parsedEnd: str = ""  # HH:mm
    finalRole: str = ""

    errors: List[ImportIssue] = Field(default_factory=list)

    class Config:
        use_enum_values = True

    def has(self, issue: ImportIssue) -> bool:
        return issue in self.errors
