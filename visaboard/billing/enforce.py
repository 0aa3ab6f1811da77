# visaboard/billing/enforce.py
from sqlalchemy.orm import Session
from visaboard.errors import QuotaExceeded
from visaboard.models.user import User
from visaboard.billing.usage import UsageLimit, check_usage_limit

def ensure_suggestion_quota(current_user: User, db: Session) -> UsageLimit:
    usage = check_usage_limit(db, current_user.id)
    if not usage.can_use:
        raise QuotaExceeded(
            "AI suggestions limit exceeded",
            {"used": usage.used, "limit": usage.limit, "membershipType": usage.membership_type},
        )
    return usage
