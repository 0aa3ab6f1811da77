from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session, Query, joinedload
from visaboard.models.membership import UserMembership, STATUS_ACTIVE
from visaboard.billing.timeutils import now_utc


@dataclass(frozen=True)
class ActiveMembershipQuery:
    """status=ACTIVE, end_date > as_of, newest end_date first, newest row on ties."""
    user_id: int
    as_of: datetime
    membership_id: Optional[int] = None

    def build(self, db: Session) -> Query:
        query = (
            db.query(UserMembership)
            .options(joinedload(UserMembership.membership))
            .filter(
                UserMembership.user_id == self.user_id,
                UserMembership.status == STATUS_ACTIVE,
                UserMembership.end_date > self.as_of,
            )
        )
        if self.membership_id is not None:
            query = query.filter(UserMembership.membership_id == self.membership_id)
        return query.order_by(UserMembership.end_date.desc(), UserMembership.id.desc())

    def all(self, db: Session) -> list[UserMembership]:
        return self.build(db).all()

    def first(self, db: Session) -> Optional[UserMembership]:
        return self.build(db).first()


def resolve_active_membership(db: Session, user_id: int, as_of: Optional[datetime] = None) -> Optional[UserMembership]:
    return ActiveMembershipQuery(user_id=user_id, as_of=as_of or now_utc()).first(db)


def find_active_for_plan(db: Session, user_id: int, membership_id: int, as_of: Optional[datetime] = None) -> Optional[UserMembership]:
    return ActiveMembershipQuery(user_id=user_id, as_of=as_of or now_utc(), membership_id=membership_id).first(db)
