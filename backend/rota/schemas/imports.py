from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from rota.models.import_row import ImportRow, RawImportRow

ImportColumn = Literal["date", "start", "end", "role"]


class ImportPreviewRequest(BaseModel):
    rows: List[RawImportRow] = Field(..., min_length=1)


class FillEndTimeRequest(BaseModel):
    rows: List[ImportRow]
    endTime: str


class CopyDownRequest(BaseModel):
    rows: List[ImportRow]
    index: int
    field: ImportColumn


class EditRowRequest(BaseModel):
    rows: List[ImportRow]
    index: int
    field: ImportColumn
    value: str


class ReselectUserRequest(BaseModel):
    rows: List[ImportRow]
    index: int
    userId: str  # roster id, "open" or "unknown"


class ImportCommitRequest(BaseModel):
    rows: List[ImportRow]
    locationId: Optional[str] = None


class ImportReview(BaseModel):
    rows: List[ImportRow]
    issueCounts: dict
    canCommit: bool
