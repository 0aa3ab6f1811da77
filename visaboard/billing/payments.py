import logging
from typing import Optional
from sqlalchemy.orm import Session
from visaboard.errors import NotFound, Conflict, InvalidArgument
from visaboard.models.membership import Membership, Payment, PAYMENT_PENDING, PAYMENT_COMPLETED, PAYMENT_FAILED
from visaboard.billing.active import find_active_for_plan
from visaboard.billing.assigns import activate_paid_membership
from visaboard.services.payment_service import PAYMENT_METHODS, generate_transaction_id, build_payment_url

logger = logging.getLogger("visaboard.billing")


def create_payment(db: Session, user_id: int, membership_id: int, method: str) -> tuple[Payment, str]:
    """Record a PENDING payment and return it with the (simulated) provider URL."""
    method = method.upper()
    if method not in PAYMENT_METHODS:
        raise InvalidArgument("Unsupported payment method")
    membership = db.query(Membership).filter(Membership.id == membership_id).first()
    if not membership or not membership.active:
        raise NotFound("Membership plan not found or inactive")
    if find_active_for_plan(db, user_id, membership.id):
        raise Conflict("You already have an active membership for this plan")

    payment = Payment(
        user_id=user_id,
        membership_id=membership.id,
        amount=membership.price,
        method=method,
        status=PAYMENT_PENDING,
        transaction_id=generate_transaction_id(),
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment, build_payment_url(payment, method)


def process_payment_callback(
    db: Session, transaction_id: str, status: str, payment_data: Optional[dict] = None
) -> tuple[Payment, bool]:
    """Apply a provider callback. Returns the payment and whether it had already been completed."""
    payment = db.query(Payment).filter(Payment.transaction_id == transaction_id).first()
    if not payment:
        raise NotFound("Payment not found")
    if payment.status == PAYMENT_COMPLETED:
        logger.info(f"Payment already completed: {transaction_id}")
        return payment, True

    new_status = status.upper()
    payment.status = new_status
    payment.payment_data = payment_data
    if new_status == PAYMENT_COMPLETED and payment.membership is not None:
        activate_paid_membership(db, payment)
    elif new_status == PAYMENT_FAILED:
        logger.info(f"Payment failed: {transaction_id}")

    db.commit()
    db.refresh(payment)
    logger.info(f"Payment status updated: {payment.id} -> {new_status}")
    return payment, False
