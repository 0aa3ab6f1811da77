"""AI-suggestion quota accounting.

``check_usage_limit`` resolves the caller's current membership, derives the
quota and performs the once-per-period reset before answering whether one
more suggestion may be generated. ``increment_usage`` records one
generation. There is deliberately no decrement path.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import Session
from visaboard.errors import NotFound, InvalidArgument
from visaboard.models.user import User
from visaboard.billing.active import resolve_active_membership
from visaboard.billing.plans import derive_quota, duration_fallback_quota
from visaboard.billing.resets import apply_period_reset
from visaboard.billing.timeutils import now_utc

logger = logging.getLogger("visaboard.billing")


@dataclass(frozen=True)
class UsageLimit:
    used: int
    limit: int
    can_use: bool
    membership_type: Optional[str]

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def as_dict(self) -> dict:
        return {
            "used": self.used,
            "limit": self.limit,
            "canUse": self.can_use,
            "membershipType": self.membership_type,
        }


def _load_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return user


def check_usage_limit(db: Session, user_id: int) -> UsageLimit:
    user = _load_user(db, user_id)
    active = resolve_active_membership(db, user.id)
    membership_name = active.membership.name if active else None

    limit = derive_quota(membership_name)
    if active and limit == 0:
        limit = duration_fallback_quota(active.membership.duration)
        logger.info(
            f"Applied fallback limit based on duration: {active.membership.duration} days -> {limit} uses"
        )

    if apply_period_reset(user, active):
        db.commit()

    used = user.ai_suggestions_used or 0
    return UsageLimit(
        used=used,
        limit=limit,
        can_use=limit > 0 and used < limit,
        membership_type=membership_name,
    )


def increment_usage(db: Session, user_id: int) -> None:
    updated = (
        db.query(User)
        .filter(User.id == user_id)
        .update({User.ai_suggestions_used: User.ai_suggestions_used + 1}, synchronize_session=False)
    )
    if not updated:
        raise NotFound("User not found")
    db.commit()


USAGE_ACTIONS = ("reset", "set", "add")


def adjust_usage(db: Session, user_id: int, action: str, value=None) -> User:
    """Admin correction of a user's counter; never lets it go below zero."""
    if action not in USAGE_ACTIONS:
        raise InvalidArgument("Invalid action")
    user = _load_user(db, user_id)

    if action == "reset":
        user.ai_suggestions_used = 0
        user.ai_suggestions_reset_date = now_utc()
    elif action == "set":
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidArgument("Invalid value for set action")
        user.ai_suggestions_used = value
    else:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgument("Invalid value for add action")
        user.ai_suggestions_used = max(0, (user.ai_suggestions_used or 0) + value)

    db.commit()
    db.refresh(user)
    return user
