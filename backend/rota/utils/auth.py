from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from rota.db import USERS, get_db
from rota.models.company import Company, StaffMember
from rota.services.schedule_service import ScheduleService
import os
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()

SECRET_KEY = os.getenv("SECRET_KEY", "testing_secret_key_for_development_only")
ALGORITHM = "HS256"

ADMIN_ROLE = "admin"


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        token_type: str = payload.get("type")

        logger.debug("Validating token for user: %s", user_id)

        if user_id is None or token_type != "access":
            raise credentials_exception

    except JWTError:
        raise credentials_exception

    user = await get_db().get(USERS, user_id)
    if user is None:
        raise credentials_exception

    if not user.get("isActive", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return user


def verify_role(required_roles: list):
    def role_checker(current_user: dict = Depends(get_current_user)):
        if current_user.get("role") not in required_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user
    return role_checker


# Role-specific dependencies
def require_admin(current_user: dict = Depends(get_current_user)):
    return verify_role([ADMIN_ROLE])(current_user)


def current_company_id(current_user: dict) -> str:
    company_id = current_user.get("currentCompanyId")
    if not company_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are not a member of a company"
        )
    return company_id


def as_member(current_user: dict) -> StaffMember:
    return StaffMember(**current_user)


async def get_current_company(current_user: dict = Depends(get_current_user)) -> Company:
    return await ScheduleService().get_company(current_company_id(current_user))


async def require_rota_enabled(current_user: dict = Depends(get_current_user)) -> Company:
    """Blocks the whole rota surface when the company has switched it off."""
    return await ScheduleService().ensure_rota_enabled(current_company_id(current_user))
