from pydantic import BaseModel, Field
from typing import List, Optional


class CompanySettings(BaseModel):
    # Missing flags mean "enabled"
    rotaEnabled: bool = True
    allowShiftBidding: bool = True
    requireTimeOffApproval: bool = True
    rotaShowFinishTimes: bool = True

    class Config:
        extra = "ignore"


class Company(BaseModel):
    id: str = Field(..., alias="_id")
    name: str = ""
    settings: CompanySettings = Field(default_factory=CompanySettings)

    class Config:
        populate_by_name = True
        extra = "ignore"


class StaffMember(BaseModel):
    """Read-only roster entry."""
    id: str = Field(..., alias="_id")
    name: str
    currentCompanyId: Optional[str] = None
    role: str = "staff"  # account role: "staff" | "admin"
    position: Optional[str] = None  # legacy single position
    roles: Optional[List[str]] = None

    class Config:
        populate_by_name = True
        extra = "ignore"

    @property
    def known_roles(self) -> List[str]:
        """Positions on file: ``roles`` when present, else the legacy ``position``."""
        if self.roles:
            return [r for r in self.roles if r and r.strip()]
        if self.position and self.position.strip():
            return [self.position]
        return []


class Location(BaseModel):
    id: str = Field(..., alias="_id")
    companyId: str
    name: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius: Optional[int] = None

    class Config:
        populate_by_name = True
        extra = "ignore"
