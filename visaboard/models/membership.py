from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from visaboard.database import Base
from visaboard.billing.timeutils import now_utc, ensure_utc

STATUS_ACTIVE = "ACTIVE"
STATUS_CANCELLED = "CANCELLED"
STATUS_EXPIRED = "EXPIRED"

PAYMENT_PENDING = "PENDING"
PAYMENT_COMPLETED = "COMPLETED"
PAYMENT_FAILED = "FAILED"


class Membership(Base):
    """A plan definition managed by admins."""
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    duration = Column(Integer, nullable=False)  # days
    features = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user_memberships = relationship("UserMembership", back_populates="membership")
    payments = relationship("Payment", back_populates="membership")


class UserMembership(Base):
    """One subscription period of a user on a plan."""
    __tablename__ = "user_memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    membership_id = Column(Integer, ForeignKey("memberships.id"), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=STATUS_ACTIVE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="user_memberships")
    membership = relationship("Membership", back_populates="user_memberships")

    @property
    def is_expired(self) -> bool:
        return ensure_utc(self.end_date) <= now_utc()


class Payment(Base):
    """Audit record of a purchase attempt."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    membership_id = Column(Integer, ForeignKey("memberships.id"), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False, default="CNY")
    method = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default=PAYMENT_PENDING)
    transaction_id = Column(String, unique=True, index=True, nullable=False)
    payment_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="payments")
    membership = relationship("Membership", back_populates="payments")
