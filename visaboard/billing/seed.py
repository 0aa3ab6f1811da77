import logging
from sqlalchemy.orm import Session
from visaboard.errors import NotFound, Conflict
from visaboard.models.membership import Membership, UserMembership, Payment
from visaboard.billing.plans import DEFAULT_PLANS

logger = logging.getLogger("visaboard.billing")

def _create_default_plans(db: Session) -> list[Membership]:
    created = []
    for spec in DEFAULT_PLANS:
        plan = Membership(
            name=spec.name,
            description=spec.description,
            price=spec.price,
            duration=spec.duration,
            features=list(spec.features),
            active=True,
            order=spec.order,
        )
        db.add(plan)
        created.append(plan)
    db.commit()
    for plan in created:
        db.refresh(plan)
    logger.info(f"Seeded {len(created)} membership plans")
    return created

def seed_membership_plans(db: Session) -> list[Membership]:
    existing = db.query(Membership).order_by(Membership.order.asc()).all()
    if existing:
        logger.info("Membership plans already exist, skipping seed")
        return existing
    return _create_default_plans(db)

def plan_in_use(db: Session, plan_id: int) -> bool:
    """True while any subscription or payment still points at the plan."""
    if db.query(UserMembership.id).filter(UserMembership.membership_id == plan_id).first():
        return True
    return db.query(Payment.id).filter(Payment.membership_id == plan_id).first() is not None

def delete_membership_plan(db: Session, plan_id: int) -> None:
    plan = db.query(Membership).filter(Membership.id == plan_id).first()
    if not plan:
        raise NotFound("Membership not found")
    if plan_in_use(db, plan.id):
        raise Conflict("Membership plan has subscriptions or payments; deactivate it instead")
    db.delete(plan)
    db.commit()
    logger.info(f"Deleted membership plan {plan_id}")

def reset_membership_plans(db: Session) -> list[Membership]:
    """Replace the catalogue with the defaults.

    Plans that subscriptions or payments still reference are deactivated and
    kept, so existing members keep their period and quota.
    """
    retired = 0
    for plan in db.query(Membership).all():
        if plan_in_use(db, plan.id):
            plan.active = False
            retired += 1
        else:
            db.delete(plan)
    db.commit()
    logger.info(f"Cleared membership plans ({retired} referenced plans deactivated)")
    return _create_default_plans(db)
