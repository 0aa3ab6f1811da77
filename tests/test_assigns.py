from datetime import timedelta

import pytest

from visaboard.errors import NotFound, InvalidArgument, Conflict
from visaboard.billing.assigns import grant_membership, extend_membership, cancel_membership
from visaboard.billing.seed import seed_membership_plans, reset_membership_plans, delete_membership_plan
from visaboard.billing.usage import check_usage_limit
from visaboard.billing.timeutils import now_utc, ensure_utc
from visaboard.models import Membership, UserMembership
from visaboard.models.membership import STATUS_ACTIVE, STATUS_CANCELLED


def test_grant_opens_period_of_plan_duration(db_session, create_user, create_plan):
    user = create_user()
    plan = create_plan(duration=90)

    granted = grant_membership(db_session, user.id, plan.id)

    assert granted.status == STATUS_ACTIVE
    assert ensure_utc(granted.end_date) - ensure_utc(granted.start_date) == timedelta(days=90)
    assert abs(ensure_utc(granted.start_date) - now_utc()) < timedelta(minutes=1)


def test_grant_twice_while_active_conflicts(db_session, create_user, create_plan):
    user = create_user()
    plan = create_plan()
    grant_membership(db_session, user.id, plan.id)

    with pytest.raises(Conflict):
        grant_membership(db_session, user.id, plan.id)


def test_grant_other_plan_or_after_cancel_is_allowed(db_session, create_user, create_plan):
    user = create_user()
    basic = create_plan(name="Basic Plan", duration=180)
    premium = create_plan(name="Premium Plan", duration=365)

    first = grant_membership(db_session, user.id, basic.id)
    grant_membership(db_session, user.id, premium.id)
    cancel_membership(db_session, first.id)

    again = grant_membership(db_session, user.id, basic.id)
    assert again.id != first.id


def test_grant_missing_references(db_session, create_user, create_plan):
    user = create_user()
    plan = create_plan()
    with pytest.raises(NotFound, match="User not found"):
        grant_membership(db_session, 999, plan.id)
    with pytest.raises(NotFound, match="Membership not found"):
        grant_membership(db_session, user.id, 999)


@pytest.mark.parametrize("days", [0, 366, -5])
def test_extend_rejects_days_out_of_range(db_session, create_user, create_plan, create_user_membership, days):
    user_membership = create_user_membership(create_user(), create_plan())
    with pytest.raises(InvalidArgument):
        extend_membership(db_session, user_membership.id, days)


def test_extend_adds_to_existing_end_date(db_session, create_user, create_plan, create_user_membership):
    user_membership = create_user_membership(create_user(), create_plan())
    old_end = ensure_utc(user_membership.end_date)

    extended = extend_membership(db_session, user_membership.id, 365)

    assert ensure_utc(extended.end_date) == old_end + timedelta(days=365)


def test_extend_revives_cancelled_membership(db_session, create_user, create_plan, create_user_membership):
    start = now_utc() - timedelta(days=60)
    user_membership = create_user_membership(
        create_user(), create_plan(duration=30), start=start, end=start + timedelta(days=30), status=STATUS_CANCELLED
    )

    extended = extend_membership(db_session, user_membership.id, 60)

    assert extended.status == STATUS_ACTIVE
    assert ensure_utc(extended.end_date) == ensure_utc(start) + timedelta(days=90)


def test_extend_and_cancel_unknown_membership(db_session):
    with pytest.raises(NotFound):
        extend_membership(db_session, 999, 10)
    with pytest.raises(NotFound):
        cancel_membership(db_session, 999)


def test_cancel_keeps_end_date(db_session, create_user, create_plan, create_user_membership):
    user_membership = create_user_membership(create_user(), create_plan())
    end = ensure_utc(user_membership.end_date)

    cancelled = cancel_membership(db_session, user_membership.id)

    assert cancelled.status == STATUS_CANCELLED
    assert ensure_utc(cancelled.end_date) == end


def test_seed_is_skipped_when_plans_exist(db_session):
    seeded = seed_membership_plans(db_session)
    assert [plan.name for plan in seeded] == ["Basic Plan", "Premium Plan", "Enterprise Plan"]

    again = seed_membership_plans(db_session)
    assert [plan.id for plan in again] == [plan.id for plan in seeded]
    assert db_session.query(Membership).count() == 3


def test_reset_replaces_plans(db_session, create_plan):
    create_plan(name="Legacy")
    plans = reset_membership_plans(db_session)
    assert sorted(plan.name for plan in plans) == ["Basic Plan", "Enterprise Plan", "Premium Plan"]
    assert db_session.query(Membership).count() == 3


def test_reset_keeps_plans_that_members_still_hold(db_session, create_user, create_plan, create_user_membership):
    user = create_user()
    held = create_plan(name="Premium Plan", duration=365)
    create_user_membership(user, held)

    plans = reset_membership_plans(db_session)

    db_session.refresh(held)
    assert held.active is False
    assert held.id not in [plan.id for plan in plans]
    assert db_session.query(UserMembership).count() == 1
    assert check_usage_limit(db_session, user.id).limit == 80


def test_plan_with_subscriptions_cannot_be_deleted(db_session, create_user, create_plan, create_user_membership):
    plan = create_plan()
    create_user_membership(create_user(), plan)

    with pytest.raises(Conflict):
        delete_membership_plan(db_session, plan.id)
    assert db_session.get(Membership, plan.id) is not None


def test_unused_plan_is_deleted(db_session, create_plan):
    plan = create_plan()
    delete_membership_plan(db_session, plan.id)
    assert db_session.query(Membership).count() == 0

    with pytest.raises(NotFound):
        delete_membership_plan(db_session, plan.id)
