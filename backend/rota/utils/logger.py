import logging
from datetime import datetime
from uuid import uuid4
from rota.db import ACTIVITY_LOGS, get_db
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

async def log_event(
    action: str,
    details: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    company_id: Optional[str] = None
):
    """
    Log an event to both the application logger and the activity log collection
    """
    try:
        log_message = f"Action: {action}"
        if user_id:
            log_message += f" | User: {user_id}"
        if details:
            log_message += f" | Details: {details}"

        logger.info(log_message)

        db = get_db()
        if db is None:
            return
        await db.create(ACTIVITY_LOGS, {
            "_id": f"log_{uuid4().hex}",
            "action": action,
            "details": details or {},
            "userId": user_id,
            "companyId": company_id,
            "timestamp": datetime.utcnow(),
        })

    except Exception as e:
        # Activity logging never breaks the operation being logged
        logger.error(f"Failed to log event: {e}")

def log_warning(message: str, user_id: Optional[str] = None):
    warning_message = f"Warning: {message}"
    if user_id:
        warning_message += f" | User: {user_id}"

    logger.warning(warning_message)

# Event type constants for consistency
class EventTypes:
    SHIFT_CREATED = "shift_created"
    SHIFT_UPDATED = "shift_updated"
    SHIFT_DELETED = "shift_deleted"
    SHIFT_DUPLICATED = "shift_duplicated"
    SHIFT_PASTED = "shift_pasted"
    SHIFT_MOVED = "shift_moved"
    SHIFTS_REPEATED = "shifts_repeated"
    DAY_COPIED = "day_copied"
    WEEK_COPIED = "week_copied"

    SHIFT_BID = "shift_bid"
    SHIFT_BID_CANCELLED = "shift_bid_cancelled"
    SHIFT_ASSIGNED = "shift_assigned"
    SHIFT_OFFERED = "shift_offered"
    SHIFT_OFFER_RETRACTED = "shift_offer_retracted"

    SHIFTS_PUBLISHED = "shifts_published"
    DRAFTS_CLEARED = "drafts_cleared"

    IMPORT_COMMITTED = "import_committed"

    TIME_OFF_REQUEST_CREATED = "time_off_request_created"
    TIME_OFF_REQUEST_REVIEWED = "time_off_request_reviewed"
    TIME_OFF_REQUEST_DELETED = "time_off_request_deleted"
