import logging
from sqlalchemy.orm import Session
from visaboard.errors import NotFound, InvalidArgument, Conflict
from visaboard.models.user import User
from visaboard.models.membership import Membership, UserMembership, Payment, STATUS_ACTIVE, STATUS_CANCELLED
from visaboard.billing.active import find_active_for_plan
from visaboard.billing.timeutils import now_utc, add_days

logger = logging.getLogger("visaboard.billing")

MIN_EXTEND_DAYS = 1
MAX_EXTEND_DAYS = 365


def _get_user_membership(db: Session, user_membership_id: int) -> UserMembership:
    user_membership = db.query(UserMembership).filter(UserMembership.id == user_membership_id).first()
    if not user_membership:
        raise NotFound("User membership not found")
    return user_membership


def _open_period(db: Session, user_id: int, membership: Membership) -> UserMembership:
    now = now_utc()
    user_membership = UserMembership(
        user_id=user_id,
        membership_id=membership.id,
        start_date=now,
        end_date=add_days(now, membership.duration),
        status=STATUS_ACTIVE,
    )
    db.add(user_membership)
    return user_membership


def grant_membership(db: Session, user_id: int, membership_id: int) -> UserMembership:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    membership = db.query(Membership).filter(Membership.id == membership_id).first()
    if not membership:
        raise NotFound("Membership not found")

    if find_active_for_plan(db, user.id, membership.id):
        raise Conflict("User already has an active membership for this plan")

    user_membership = _open_period(db, user.id, membership)
    db.commit()
    db.refresh(user_membership)
    logger.info(f"Granted {membership.name} to {user.email} until {user_membership.end_date}")
    return user_membership


def extend_membership(db: Session, user_membership_id: int, days) -> UserMembership:
    """Push end_date forward by ``days`` and force ACTIVE, reviving cancelled or lapsed periods."""
    if isinstance(days, bool) or not isinstance(days, int) or not MIN_EXTEND_DAYS <= days <= MAX_EXTEND_DAYS:
        raise InvalidArgument(f"Days must be between {MIN_EXTEND_DAYS} and {MAX_EXTEND_DAYS}")
    user_membership = _get_user_membership(db, user_membership_id)

    user_membership.end_date = add_days(user_membership.end_date, days)
    user_membership.status = STATUS_ACTIVE
    db.commit()
    db.refresh(user_membership)
    logger.info(f"Extended user membership {user_membership.id} by {days} days")
    return user_membership


def cancel_membership(db: Session, user_membership_id: int) -> UserMembership:
    # end_date is kept for history; the status filter alone removes quota eligibility
    user_membership = _get_user_membership(db, user_membership_id)
    user_membership.status = STATUS_CANCELLED
    db.commit()
    db.refresh(user_membership)
    logger.info(f"Cancelled user membership {user_membership.id}")
    return user_membership


def activate_paid_membership(db: Session, payment: Payment) -> UserMembership:
    """Open a new period for a completed payment, or extend the running one for the same plan."""
    membership = payment.membership
    existing = find_active_for_plan(db, payment.user_id, membership.id)
    if existing is None:
        user_membership = _open_period(db, payment.user_id, membership)
        logger.info(f"New membership created for user {payment.user_id} on plan {membership.id}")
    else:
        existing.end_date = add_days(existing.end_date, membership.duration)
        user_membership = existing
        logger.info(f"Membership {existing.id} extended by {membership.duration} days")
    return user_membership
