from datetime import timedelta

from visaboard.billing.timeutils import ensure_utc, now_utc
from visaboard.models import UserMembership, Payment
from visaboard.models.membership import STATUS_CANCELLED


def test_admin_routes_reject_regular_users(client, create_user, auth_headers):
    user = create_user()
    response = client.post("/admin/membership/grant", json={"userId": user.id, "membershipId": 1}, headers=auth_headers(user))
    assert response.status_code == 403


def test_admin_routes_require_token(client):
    assert client.post("/admin/membership/cancel", json={"userMembershipId": 1}).status_code == 401


def test_grant_then_duplicate_grant(client, admin, create_user, create_plan, auth_headers):
    user = create_user()
    plan = create_plan(name="Premium Plan", duration=365)
    payload = {"userId": user.id, "membershipId": plan.id}

    first = client.post("/admin/membership/grant", json=payload, headers=auth_headers(admin))
    assert first.status_code == 201
    assert first.json()["userMembership"]["status"] == "ACTIVE"

    second = client.post("/admin/membership/grant", json=payload, headers=auth_headers(admin))
    assert second.status_code == 400
    assert second.json()["detail"] == "User already has an active membership for this plan"


def test_grant_unknown_user_is_404(client, admin, create_plan, auth_headers):
    plan = create_plan()
    response = client.post("/admin/membership/grant", json={"userId": 999, "membershipId": plan.id}, headers=auth_headers(admin))
    assert response.status_code == 404


def test_extend_range_validation(client, admin, create_user, create_plan, create_user_membership, auth_headers):
    user_membership = create_user_membership(create_user(), create_plan())
    for days in (0, 366):
        response = client.post(
            "/admin/membership/extend",
            json={"userMembershipId": user_membership.id, "days": days},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Days must be between 1 and 365"


def test_extend_by_a_year(client, db_session, admin, create_user, create_plan, create_user_membership, auth_headers):
    user_membership = create_user_membership(create_user(), create_plan())
    old_end = ensure_utc(user_membership.end_date)

    response = client.post(
        "/admin/membership/extend",
        json={"userMembershipId": user_membership.id, "days": 365},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    db_session.refresh(user_membership)
    assert ensure_utc(user_membership.end_date) == old_end + timedelta(days=365)


def test_cancel_removes_quota(client, db_session, admin, create_user, create_plan, create_user_membership, auth_headers):
    user = create_user()
    user_membership = create_user_membership(user, create_plan())
    assert client.get("/usage", headers=auth_headers(user)).json()["canUse"] is True

    response = client.post("/admin/membership/cancel", json={"userMembershipId": user_membership.id}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert db_session.get(UserMembership, user_membership.id).status == STATUS_CANCELLED
    assert client.get("/usage", headers=auth_headers(user)).json() == {
        "used": 0, "limit": 0, "canUse": False, "membershipType": None,
    }


def test_cancel_unknown_is_404(client, admin, auth_headers):
    response = client.post("/admin/membership/cancel", json={"userMembershipId": 12345}, headers=auth_headers(admin))
    assert response.status_code == 404
    assert response.json()["detail"] == "User membership not found"


def test_ai_usage_adjustment(client, admin, create_user, auth_headers):
    user = create_user(ai_suggestions_used=4)

    response = client.post("/admin/ai-usage", json={"userId": user.id, "action": "add", "value": -10}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["user"]["ai_suggestions_used"] == 0

    bad = client.post("/admin/ai-usage", json={"userId": user.id, "action": "set", "value": -1}, headers=auth_headers(admin))
    assert bad.status_code == 400


def test_role_change_rules(client, admin, create_user, auth_headers):
    user = create_user()

    own = client.patch(f"/admin/users/{admin.id}/role", json={"role": "USER"}, headers=auth_headers(admin))
    assert own.status_code == 403

    invalid = client.patch(f"/admin/users/{user.id}/role", json={"role": "ROOT"}, headers=auth_headers(admin))
    assert invalid.status_code == 400

    promoted = client.patch(f"/admin/users/{user.id}/role", json={"role": "ADMIN"}, headers=auth_headers(admin))
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "ADMIN"


def test_plan_seed_and_public_listing(client, admin, auth_headers):
    seeded = client.post("/admin/membership/seed", headers=auth_headers(admin))
    assert seeded.status_code == 200
    plans = seeded.json()

    client.put(f"/admin/membership/plans/{plans[0]['id']}", json={"active": False}, headers=auth_headers(admin))

    public = client.get("/membership").json()
    assert [plan["name"] for plan in public] == ["Premium Plan", "Enterprise Plan"]


def test_user_membership_listing_flags_expiry(client, admin, create_user, create_plan, create_user_membership, auth_headers):
    user = create_user()
    plan = create_plan()
    start = now_utc() - timedelta(days=400)
    create_user_membership(user, plan, start=start, end=start + timedelta(days=365))
    create_user_membership(user, plan)

    rows = client.get("/admin/user-memberships", params={"userId": user.id}, headers=auth_headers(admin)).json()
    assert sorted(row["is_expired"] for row in rows) == [False, True]


def test_reset_plans_keeps_paying_members(client, db_session, admin, create_user, create_plan, create_user_membership, auth_headers):
    user = create_user()
    create_user_membership(user, create_plan(name="Premium Plan", duration=365))
    assert client.get("/usage", headers=auth_headers(user)).json()["limit"] == 80

    response = client.post("/admin/membership/reset-plans", headers=auth_headers(admin))

    assert response.status_code == 200
    assert db_session.query(UserMembership).filter(UserMembership.user_id == user.id).count() == 1
    assert client.get("/usage", headers=auth_headers(user)).json()["limit"] == 80
    public = [plan["name"] for plan in client.get("/membership").json()]
    assert public == ["Basic Plan", "Premium Plan", "Enterprise Plan"]


def test_delete_plan_in_use_is_refused(client, admin, create_user, create_plan, create_user_membership, auth_headers):
    used = create_plan()
    unused = create_plan(name="Trial")
    create_user_membership(create_user(), used)

    refused = client.delete(f"/admin/membership/plans/{used.id}", headers=auth_headers(admin))
    assert refused.status_code == 400
    assert client.delete(f"/admin/membership/plans/{unused.id}", headers=auth_headers(admin)).status_code == 200
    assert client.delete(f"/admin/membership/plans/{unused.id}", headers=auth_headers(admin)).status_code == 404


def test_admin_plan_list_counts_references(client, db_session, admin, create_user, create_plan, create_user_membership, auth_headers):
    user = create_user()
    plan = create_plan()
    create_plan(name="Basic Plan", order=5)
    create_user_membership(user, plan)
    db_session.add(Payment(user_id=user.id, membership_id=plan.id, amount=50.0, method="ALIPAY", transaction_id="TXN_count"))
    db_session.commit()

    plans = {row["name"]: row for row in client.get("/admin/membership/plans", headers=auth_headers(admin)).json()}

    assert (plans["Premium Plan"]["user_membership_count"], plans["Premium Plan"]["payment_count"]) == (1, 1)
    assert (plans["Basic Plan"]["user_membership_count"], plans["Basic Plan"]["payment_count"]) == (0, 0)


def test_expired_filter_lists_lapsed_periods(client, admin, create_user, create_plan, create_user_membership, auth_headers):
    user = create_user()
    plan = create_plan()
    start = now_utc() - timedelta(days=400)
    lapsed = create_user_membership(user, plan, start=start, end=start + timedelta(days=365))
    create_user_membership(user, plan, start=start, end=start + timedelta(days=365), status=STATUS_CANCELLED)
    create_user_membership(user, plan)

    rows = client.get("/admin/user-memberships", params={"status": "expired"}, headers=auth_headers(admin)).json()

    assert [row["id"] for row in rows] == [lapsed.id]


def test_payment_history_filters_and_stats(client, db_session, admin, create_user, create_plan, auth_headers):
    user = create_user()
    other = create_user()
    plan = create_plan()
    rows = [
        (user, 50.0, "COMPLETED"),
        (user, 20.0, "COMPLETED"),
        (user, 30.0, "PENDING"),
        (user, 10.0, "FAILED"),
        (other, 99.0, "COMPLETED"),
    ]
    for index, (owner, amount, state) in enumerate(rows):
        db_session.add(Payment(
            user_id=owner.id, membership_id=plan.id, amount=amount, method="VISA",
            status=state, transaction_id=f"TXN_history_{index}",
        ))
    db_session.commit()

    assert client.get("/admin/payments", headers=auth_headers(user)).status_code == 403

    everything = client.get("/admin/payments", headers=auth_headers(admin)).json()
    assert everything["pagination"]["total"] == 5
    assert everything["stats"] == {"totalRevenue": 169.0, "completedPayments": 3}

    mine = client.get("/admin/payments", params={"userId": user.id, "limit": 1}, headers=auth_headers(admin)).json()
    assert len(mine["payments"]) == 1
    assert mine["pagination"] == {"total": 4, "limit": 1, "offset": 0, "hasMore": True}
    assert mine["stats"] == {"totalRevenue": 70.0, "completedPayments": 2}

    pending = client.get("/admin/payments", params={"status": "pending"}, headers=auth_headers(admin)).json()
    assert [p["amount"] for p in pending["payments"]] == [30.0]
    assert pending["pagination"]["total"] == 1
