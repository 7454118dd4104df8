# tests/test_api.py
from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from app.core.security import create_access_token
from app.models.creator_profile import CreatorProfile
from app.models.user import User

from factories import (
    NOW,
    auth_headers,
    create_admin,
    create_cmo,
    create_creator,
    create_discount_code,
    create_user,
    days,
    events_headers,
    seed_paid_users,
    set_tiers,
)

API = "/api/v1"


async def creator_user(db, **kw):
    creator = await create_creator(db, **kw)
    return creator, await db.get(User, creator.user_id)


# ---------------------------------------------------------
# Events
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_events_require_shared_secret(client, db):
    buyer = await create_user(db)
    body = {"order_id": "o-1", "user_id": str(buyer.id), "final_amount": "100.00"}

    r = await client.post(f"{API}/events/payment-completed", json=body)
    assert r.status_code == 401

    r = await client.post(f"{API}/events/payment-completed", json=body, headers={"X-Events-Secret": "wrong"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_payment_event_is_idempotent(client, db):
    await set_tiers(db)
    creator = await create_creator(db)
    buyer = await create_user(db)
    body = {
        "order_id": "ord-42",
        "user_id": str(buyer.id),
        "final_amount": "10000.00",
        "ref_creator": creator.referral_code.lower(),
        "access_tier": "premium",
    }

    first = await client.post(f"{API}/events/payment-completed", json=body, headers=events_headers())
    assert first.status_code == 200, first.text
    data = first.json()
    assert data["duplicate"] is False
    assert data["attribution"]["creator_id"] == str(creator.id)
    assert Decimal(data["attribution"]["creator_commission_amount"]) == Decimal("800.00")

    second = await client.post(f"{API}/events/payment-completed", json=body, headers=events_headers())
    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    assert second.json()["attribution"]["id"] == data["attribution"]["id"]

    await db.refresh(creator)
    assert creator.available_balance == Decimal("800.00")
    assert creator.lifetime_paid_users == 1


@pytest.mark.asyncio
async def test_payment_event_validation_errors_carry_codes(client, db):
    buyer = await create_user(db)
    body = {
        "order_id": "ord-bad",
        "user_id": str(buyer.id),
        "final_amount": "100.00",
        "original_amount": "50.00",
    }
    r = await client.post(f"{API}/events/payment-completed", json=body, headers=events_headers())
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "amount_inconsistent"

    body = {"order_id": "ord-ghost", "user_id": str(uuid.uuid4()), "final_amount": "100.00"}
    r = await client.post(f"{API}/events/payment-completed", json=body, headers=events_headers())
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_signup_and_redeem_events(client, db):
    creator = await create_creator(db)
    await create_discount_code(db, creator, "WELCOME10")
    user = await create_user(db)

    r = await client.post(
        f"{API}/events/signup",
        json={"user_id": str(user.id), "discount_code": "welcome10"},
        headers=events_headers(),
    )
    assert r.status_code == 200
    assert r.json() == {
        "attributed": True,
        "created": True,
        "creator_id": str(creator.id),
        "referral_source": "discount_code",
    }

    r = await client.post(f"{API}/events/discount-codes/redeem", json={"code": "welcome10"}, headers=events_headers())
    assert r.status_code == 200
    assert r.json()["code"] == "WELCOME10"
    assert Decimal(r.json()["discount_percent"]) == Decimal("10")

    r = await client.post(f"{API}/events/discount-codes/redeem", json={"code": "NOSUCH1"}, headers=events_headers())
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "discount_code_invalid"


# ---------------------------------------------------------
# Auth / roles
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_me_reports_program_roles(client, db):
    admin = await create_admin(db)
    creator, user = await creator_user(db)

    r = await client.get(f"{API}/auth/me", headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["platform_role"] == "ADMIN"
    assert r.json()["creator_id"] is None

    r = await client.get(f"{API}/auth/me", headers=auth_headers(user))
    assert r.json()["creator_id"] == str(creator.id)
    assert r.json()["platform_role"] is None
    assert r.json()["is_head_ops"] is False


@pytest.mark.asyncio
async def test_bad_tokens_are_rejected(client, db):
    r = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    r = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {uuid.uuid4()}"})
    assert r.status_code == 401

    # valid signature, unknown user
    r = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {create_access_token(uuid.uuid4())}"})
    assert r.status_code == 401

    r = await client.get(f"{API}/commission/tiers", headers=auth_headers(await create_user(db)))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_admin_endpoints_require_admin(client, db):
    _, user = await creator_user(db)
    r = await client.get(f"{API}/admin/withdrawals", headers=auth_headers(user))
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "admin_required"


@pytest.mark.asyncio
async def test_non_creator_cannot_use_creator_routes(client, db):
    user = await create_user(db)
    r = await client.get(f"{API}/creator/me", headers=auth_headers(user))
    assert r.status_code == 403


# ---------------------------------------------------------
# Withdrawals over HTTP
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_withdrawal_flow(client, db):
    admin = await create_admin(db)
    creator, user = await creator_user(db, available_balance=Decimal("50000"))
    me = auth_headers(user)

    r = await client.post(
        f"{API}/creator/withdrawals", json={"amount": "20000"}, headers=me
    )
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "withdrawal_method_missing"

    r = await client.post(
        f"{API}/creator/withdrawal-methods",
        json={
            "method_type": "bank",
            "bank_name": "Hatton National Bank",
            "branch_name": "Kandy",
            "account_number": "00123",
            "account_holder_name": "A Creator",
        },
        headers=me,
    )
    assert r.status_code == 201
    assert r.json()["is_primary"] is True

    r = await client.post(f"{API}/creator/withdrawals", json={"amount": "5000"}, headers=me)
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "below_minimum_payout"

    r = await client.post(f"{API}/creator/withdrawals", json={"amount": "20000"}, headers=me)
    assert r.status_code == 201, r.text
    wd = r.json()
    assert wd["status"] == "pending"
    assert Decimal(wd["fee_amount"]) == Decimal("600")
    assert Decimal(wd["net_amount"]) == Decimal("19400")

    r = await client.get(f"{API}/admin/withdrawals", params={"status": "pending"}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["total"] == 1

    decide = f"{API}/admin/withdrawals/{wd['id']}/decision"
    r = await client.post(decide, json={"decision": "approve"}, headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "approved"

    r = await client.post(decide, json={"decision": "reject", "rejection_reason": "late"}, headers=auth_headers(admin))
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "stale_state"

    r = await client.post(
        f"{API}/admin/withdrawals/{wd['id']}/receipt",
        json={"receipt_url": "https://files.example.com/receipt.pdf"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200

    r = await client.post(
        decide, json={"decision": "mark_paid", "payment_notes": "sent via bank"}, headers=auth_headers(admin)
    )
    assert r.status_code == 200
    assert r.json()["status"] == "paid"
    assert r.json()["paid_by"] == str(admin.id)
    assert r.json()["payment_notes"] == "sent via bank"
    assert r.json()["receipt_url"] == "https://files.example.com/receipt.pdf"

    r = await client.get(f"{API}/creator/summary", headers=me)
    assert r.status_code == 200
    summary = r.json()
    assert Decimal(summary["available_balance"]) == Decimal("30000")
    assert Decimal(summary["reserved_balance"]) == Decimal("0")
    assert Decimal(summary["total_withdrawn"]) == Decimal("19400")


@pytest.mark.asyncio
async def test_reject_without_reason_is_422(client, db):
    admin = await create_admin(db)
    creator, user = await creator_user(db, available_balance=Decimal("50000"))
    me = auth_headers(user)

    await client.post(
        f"{API}/creator/withdrawal-methods",
        json={"method_type": "crypto", "crypto_type": "USDT", "wallet_address": "TXabc123", "network": "TRC20"},
        headers=me,
    )
    wd = (await client.post(f"{API}/creator/withdrawals", json={"amount": "10000"}, headers=me)).json()

    r = await client.post(
        f"{API}/admin/withdrawals/{wd['id']}/decision", json={"decision": "reject"}, headers=auth_headers(admin)
    )
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "rejection_reason_required"


@pytest.mark.asyncio
async def test_payout_settings_round_trip(client, db):
    admin = await create_admin(db)
    user = await create_user(db)

    r = await client.put(
        f"{API}/admin/settings/payouts",
        json={"minimum_payout_lkr": "2500", "withdrawal_fee_percent": "1.5"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200

    r = await client.get(f"{API}/commission/payout-settings", headers=auth_headers(user))
    assert Decimal(r.json()["minimum_payout_lkr"]) == Decimal("2500")
    assert Decimal(r.json()["withdrawal_fee_percent"]) == Decimal("1.5")


# ---------------------------------------------------------
# Creator admin
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_admin_onboards_creator_with_protected_tier(client, db):
    admin = await create_admin(db)
    cmo = await create_cmo(db)

    r = await client.post(
        f"{API}/admin/creators",
        json={"email": "new.creator@example.com", "full_name": "New Creator", "cmo_id": str(cmo.id)},
        headers=auth_headers(admin),
    )
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["current_tier_level"] == 2
    assert data["tier_protection_until"] is not None
    assert data["cmo_id"] == str(cmo.id)
    assert len(data["referral_code"]) == 6

    r = await client.post(
        f"{API}/admin/creators", json={"user_id": data["user_id"]}, headers=auth_headers(admin)
    )
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "creator_exists"

    r = await client.post(f"{API}/admin/creators", json={}, headers=auth_headers(admin))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_admin_onboards_cmo(client, db):
    admin = await create_admin(db)

    r = await client.post(
        f"{API}/admin/cmos",
        json={"email": "ops.lead@example.com", "full_name": "Ops Lead", "is_head_ops": True},
        headers=auth_headers(admin),
    )
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["is_head_ops"] is True
    assert data["is_active"] is True
    assert len(data["referral_code"]) == 6

    r = await client.post(f"{API}/admin/cmos", json={"user_id": data["user_id"]}, headers=auth_headers(admin))
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "cmo_exists"


@pytest.mark.asyncio
async def test_admin_lists_creators_and_rotates_code(client, db):
    admin = await create_admin(db)
    creator = await create_creator(db, referral_code="OLD123")
    await create_creator(db)

    r = await client.get(f"{API}/admin/creators?limit=1", headers=auth_headers(admin))
    assert r.status_code == 200
    page = r.json()
    assert page["total"] == 2
    assert page["limit"] == 1
    assert len(page["items"]) == 1

    r = await client.post(f"{API}/admin/creators/{creator.id}/rotate-code", headers=auth_headers(admin))
    assert r.status_code == 200
    new_code = r.json()["referral_code"]
    assert new_code != "OLD123"
    assert len(new_code) == 6


@pytest.mark.asyncio
async def test_admin_tier_maintenance(client, db):
    admin = await create_admin(db)
    user = await create_user(db)

    r = await client.get(f"{API}/commission/tiers", headers=auth_headers(user))
    assert [t["tier_level"] for t in r.json()["items"]] == [1, 2]

    await set_tiers(db)
    r = await client.put(
        f"{API}/admin/tiers/4",
        json={"tier_name": "Legend", "commission_rate": "20", "monthly_user_threshold": 500},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200
    assert [t["tier_level"] for t in r.json()["items"]] == [1, 2, 3, 4]

    r = await client.put(
        f"{API}/admin/tiers/5",
        json={"tier_name": "Broken", "commission_rate": "25", "monthly_user_threshold": 10},
        headers=auth_headers(admin),
    )
    assert r.status_code == 422
    assert r.json()["detail"]["code"] == "tier_threshold_order"

    r = await client.delete(f"{API}/admin/tiers/4", headers=auth_headers(admin))
    assert r.status_code == 200
    assert len(r.json()["items"]) == 3

    r = await client.post(f"{API}/admin/tiers/evaluate", headers=auth_headers(admin))
    assert r.status_code == 200
    assert set(r.json()) == {"evaluated", "promoted", "demoted", "unchanged", "protected"}


@pytest.mark.asyncio
async def test_admin_reconcile_and_deactivate(client, db):
    admin = await create_admin(db)
    creator, user = await creator_user(db)

    r = await client.get(f"{API}/admin/creators/{creator.id}/reconcile", headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["consistent"] is True

    r = await client.patch(
        f"{API}/admin/creators/{creator.id}", json={"is_active": False}, headers=auth_headers(admin)
    )
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    r = await client.get(f"{API}/creator/me", headers=auth_headers(user))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_creator_discount_codes_over_http(client, db):
    _, user = await creator_user(db)
    me = auth_headers(user)

    r = await client.post(f"{API}/creator/discount-codes", json={"code": "friends5"}, headers=me)
    assert r.status_code == 201
    code = r.json()
    assert code["code"] == "FRIENDS5"

    r = await client.post(f"{API}/creator/discount-codes/{code['id']}/deactivate", headers=me)
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    r = await client.get(f"{API}/creator/discount-codes", headers=me)
    assert len(r.json()) == 1


# ---------------------------------------------------------
# CMO / Head of Ops
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_head_ops_request_flow(client, db):
    admin = await create_admin(db)
    head = await create_cmo(db, is_head_ops=True)
    plain = await create_cmo(db)
    creator = await create_creator(db)

    head_user = await db.get(User, head.user_id)
    plain_user = await db.get(User, plain.user_id)

    body = {"request_type": "suspend_creator", "target_id": str(creator.id), "details": {"reason": "fraud"}}

    r = await client.post(f"{API}/cmo/head-ops-requests", json=body, headers=auth_headers(plain_user))
    assert r.status_code == 403

    r = await client.post(f"{API}/cmo/head-ops-requests", json=body, headers=auth_headers(head_user))
    assert r.status_code == 201
    req = r.json()
    assert req["status"] == "pending"

    r = await client.get(f"{API}/cmo/head-ops-requests", headers=auth_headers(head_user))
    assert r.json()["total"] == 1

    r = await client.post(
        f"{API}/admin/head-ops-requests/{req['id']}/decision",
        json={"decision": "approve", "admin_notes": "verified"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 200
    assert r.json()["status"] == "approved"

    row = await db.get(CreatorProfile, creator.id, populate_existing=True)
    assert row.is_active is False


@pytest.mark.asyncio
async def test_cmo_sees_monthly_payouts(client, db):
    await set_tiers(db)
    cmo = await create_cmo(db)
    creator = await create_creator(db, cmo=cmo)
    buyer = await create_user(db)

    await client.post(
        f"{API}/events/payment-completed",
        json={"order_id": "ord-cmo", "user_id": str(buyer.id), "final_amount": "10000.00", "ref_creator": creator.referral_code},
        headers=events_headers(),
    )

    cmo_user = await db.get(User, cmo.user_id)
    r = await client.get(f"{API}/cmo/payouts", headers=auth_headers(cmo_user))
    assert r.status_code == 200
    assert len(r.json()) == 1
    assert Decimal(r.json()[0]["total_commission"]) == Decimal("800")
    assert r.json()[0]["total_paid_users"] == 1


@pytest.mark.asyncio
async def test_creator_attributions_are_paginated_newest_first(client, db):
    creator, user = await creator_user(db)
    await seed_paid_users(db, creator, 2, when=NOW - days(40))
    await seed_paid_users(db, creator, 1, when=NOW)
    me = auth_headers(user)

    r = await client.get(f"{API}/creator/attributions?limit=2", headers=me)
    assert r.status_code == 200
    page = r.json()
    assert page["total"] == 3
    assert len(page["items"]) == 2
    assert page["items"][0]["payment_month"] == "2026-03-01"
    assert page["items"][1]["payment_month"] == "2026-02-01"

    r = await client.get(f"{API}/creator/attributions?limit=101", headers=me)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_admin_revenue_stats(client, db):
    admin = await create_admin(db)
    creator, user = await creator_user(db)
    await seed_paid_users(db, creator, 1, when=NOW)

    r = await client.get(f"{API}/admin/revenue-stats", headers=auth_headers(user))
    assert r.status_code == 403

    r = await client.get(f"{API}/admin/revenue-stats", headers=auth_headers(admin))
    assert r.status_code == 200
    data = r.json()
    assert Decimal(data["total_revenue"]) == Decimal("1000")
    assert Decimal(data["total_commission"]) == Decimal("80")
    assert len(data["monthly"]) == 6
