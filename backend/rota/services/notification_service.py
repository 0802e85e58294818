import logging
from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from rota.db import NOTIFICATIONS, get_db
from rota.models.shift import ScheduleShift
from rota.utils.timeutils import from_millis

logger = logging.getLogger(__name__)


def describe_shift(shift: ScheduleShift) -> str:
    start, end = from_millis(shift.startTime), from_millis(shift.endTime)
    return f"- {start.strftime('%a %d %b')}: {start.strftime('%H:%M')} to {end.strftime('%H:%M')} ({shift.role})"


async def create_notification(
    user_id: str,
    title: str,
    message: str,
    type: str = "info",
    link: Optional[str] = None,
    company_id: Optional[str] = None,
) -> bool:
    """
    Creates and stores a new notification for a user.
    """
    notification_data = {
        "_id": f"ntf_{uuid4().hex}",
        "userId": user_id,
        "companyId": company_id,
        "title": title,
        "message": message,
        "type": type,
        "isRead": False,
        "link": link,
        "createdAt": datetime.utcnow(),
    }
    try:
        await get_db().create(NOTIFICATIONS, notification_data)
        return True
    except Exception as e:
        logger.error(f"Error creating notification: {e}")
        return False


async def notify_published(shifts: List[ScheduleShift]) -> int:
    """One summary notification per assigned staff member; returns how many were sent."""
    by_user: Dict[str, List[ScheduleShift]] = {}
    for shift in shifts:
        if shift.userId:
            by_user.setdefault(shift.userId, []).append(shift)

    sent = 0
    for user_id, user_shifts in by_user.items():
        details = "\n".join(describe_shift(s) for s in sorted(user_shifts, key=lambda s: s.startTime))
        if await create_notification(
            user_id=user_id,
            title="Rota published",
            message=f"Your upcoming shifts have been published:\n{details}",
            type="schedule",
            link="/rota",
            company_id=user_shifts[0].companyId,
        ):
            sent += 1
    return sent


async def notify_assigned(shift: ScheduleShift) -> bool:
    if not shift.userId:
        return False
    return await create_notification(
        user_id=shift.userId,
        title="Shift assigned",
        message=f"You have been given a shift:\n{describe_shift(shift)}",
        type="schedule",
        link="/rota",
        company_id=shift.companyId,
    )
