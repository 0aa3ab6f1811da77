import logging
from typing import Optional
from visaboard.models.user import User
from visaboard.models.membership import UserMembership
from visaboard.billing.timeutils import ensure_utc

logger = logging.getLogger("visaboard.billing")

def is_reset_due(user: User, active: Optional[UserMembership]) -> bool:
    # A membership that started after the last reset opens a new counting period
    if active is None:
        return False
    last = ensure_utc(user.ai_suggestions_reset_date)
    return (last is None) or (ensure_utc(active.start_date) > last)

def apply_period_reset(user: User, active: Optional[UserMembership]) -> bool:
    if not is_reset_due(user, active):
        return False

    logger.info(f"Resetting AI usage for user {user.id} at membership {active.id} start")
    user.ai_suggestions_used = 0
    user.ai_suggestions_reset_date = active.start_date
    return True
