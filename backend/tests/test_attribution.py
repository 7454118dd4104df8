# tests/test_attribution.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core import attribution
from app.core.attribution import PaymentCompleted, attribute_payment, record_user_attribution
from app.core.commission import upsert_tier
from app.core.discount_codes import redeem_code
from app.core.errors import NotFoundError, ValidationError
from app.core.ledger import reconcile_creator
from app.models.cmo_payout import CMOPayout
from app.models.creator_ledger_entry import CreatorLedgerEntry
from app.models.payment_attribution import PaymentAttribution
from app.models.user_attribution import UserAttribution

from factories import NOW, create_cmo, create_creator, create_discount_code, create_user, days, set_tiers


def payment(order_id: str, user, amount: str = "10000", **kw) -> PaymentCompleted:
    return PaymentCompleted(order_id=order_id, user_id=user.id, final_amount=Decimal(amount), **kw)


async def ledger_count(db, creator_id) -> int:
    stmt = select(func.count(CreatorLedgerEntry.id)).where(CreatorLedgerEntry.creator_id == creator_id)
    return int((await db.execute(stmt)).scalar_one())


@pytest.mark.asyncio
async def test_discount_code_payment_credits_protected_rate(db):
    await set_tiers(db)
    creator = await create_creator(db, tier_level=2, protected_until=NOW + days(20))
    code = await create_discount_code(db, creator, "SAVE10")
    buyer = await create_user(db)

    await redeem_code(db, "save10")
    recorded = await attribute_payment(db, payment("ord-1", buyer, discount_code="SAVE10"), now=NOW)

    att = recorded.attribution
    assert recorded.created is True
    assert att.creator_id == creator.id
    assert att.creator_commission_amount == Decimal("1200.00")
    assert att.commission_rate == Decimal("12")
    assert att.tier_level == 2
    assert att.rate_protected is True
    assert att.discount_code == "SAVE10"
    assert att.payment_month == date(2026, 3, 1)

    await db.refresh(creator)
    assert creator.available_balance == Decimal("1200.00")
    assert creator.lifetime_paid_users == 1

    # redemption already counted the use
    await db.refresh(code)
    assert code.paid_conversions == 1
    assert code.usage_count == 1


@pytest.mark.asyncio
async def test_unredeemed_code_raises_usage_to_conversions(db):
    creator = await create_creator(db)
    code = await create_discount_code(db, creator, "DIRECT1")
    buyer = await create_user(db)

    await attribute_payment(db, payment("ord-1", buyer, discount_code="DIRECT1"), now=NOW)

    await db.refresh(code)
    assert code.paid_conversions == 1
    assert code.usage_count == 1


@pytest.mark.asyncio
async def test_duplicate_delivery_is_a_no_op(db):
    await set_tiers(db)
    creator = await create_creator(db)
    buyer = await create_user(db)
    event = payment("ord-dup", buyer, ref_creator=creator.referral_code)

    first = await attribute_payment(db, event, now=NOW)
    second = await attribute_payment(db, event, now=NOW)

    assert first.created is True
    assert second.created is False
    assert second.attribution.id == first.attribution.id

    await db.refresh(creator)
    assert creator.available_balance == Decimal("800.00")
    assert creator.lifetime_paid_users == 1
    assert await ledger_count(db, creator.id) == 1

    total = (await db.execute(select(func.count(PaymentAttribution.id)))).scalar_one()
    assert total == 1


@pytest.mark.asyncio
async def test_payment_without_referral_has_no_commission(db):
    buyer = await create_user(db)

    recorded = await attribute_payment(db, payment("ord-organic", buyer, ref_creator="NOPE99"), now=NOW)

    att = recorded.attribution
    assert att.creator_id is None
    assert att.creator_commission_amount == Decimal("0.00")
    assert att.commission_rate == Decimal("0")
    assert att.tier_level is None


@pytest.mark.asyncio
async def test_referral_link_is_case_insensitive_and_records_relationship(db):
    await set_tiers(db)
    creator = await create_creator(db, referral_code="AB12CD")
    buyer = await create_user(db)

    recorded = await attribute_payment(db, payment("ord-link", buyer, ref_creator=" ab12cd "), now=NOW)
    assert recorded.attribution.creator_id == creator.id

    rel = (await db.execute(select(UserAttribution).where(UserAttribution.user_id == buyer.id))).scalar_one()
    assert rel.creator_id == creator.id
    assert rel.referral_source == "link"


@pytest.mark.asyncio
async def test_discount_code_wins_over_referral_link(db):
    await set_tiers(db)
    code_owner = await create_creator(db)
    link_owner = await create_creator(db)
    await create_discount_code(db, code_owner, "OWNER10")
    buyer = await create_user(db)

    recorded = await attribute_payment(
        db,
        payment("ord-both", buyer, discount_code="OWNER10", ref_creator=link_owner.referral_code),
        now=NOW,
    )
    assert recorded.attribution.creator_id == code_owner.id

    await db.refresh(link_owner)
    assert link_owner.available_balance == Decimal("0.00")


@pytest.mark.asyncio
async def test_inactive_code_falls_back_to_referral_link(db):
    await set_tiers(db)
    code_owner = await create_creator(db)
    link_owner = await create_creator(db)
    await create_discount_code(db, code_owner, "GONE10", is_active=False)
    buyer = await create_user(db)

    recorded = await attribute_payment(
        db,
        payment("ord-fallback", buyer, discount_code="GONE10", ref_creator=link_owner.referral_code),
        now=NOW,
    )
    assert recorded.attribution.creator_id == link_owner.id
    assert recorded.attribution.discount_code is None


@pytest.mark.asyncio
async def test_inactive_creator_earns_nothing(db):
    creator = await create_creator(db, is_active=False)
    buyer = await create_user(db)

    recorded = await attribute_payment(db, payment("ord-x", buyer, ref_creator=creator.referral_code), now=NOW)
    assert recorded.attribution.creator_id is None


@pytest.mark.asyncio
async def test_cmo_monthly_rollup(db):
    await set_tiers(db)
    cmo = await create_cmo(db)
    creator = await create_creator(db, cmo=cmo)

    for i in range(2):
        buyer = await create_user(db)
        await attribute_payment(db, payment(f"ord-cmo-{i}", buyer, ref_creator=creator.referral_code), now=NOW)

    rows = (await db.execute(select(CMOPayout).where(CMOPayout.cmo_id == cmo.id))).scalars().all()
    assert len(rows) == 1
    await db.refresh(rows[0])
    assert rows[0].payout_month == date(2026, 3, 1)
    assert rows[0].total_paid_users == 2
    assert rows[0].total_commission == Decimal("1600.00")


@pytest.mark.asyncio
async def test_cmo_rollup_survives_concurrent_first_payment(db, monkeypatch):
    await set_tiers(db)
    cmo = await create_cmo(db)
    creator = await create_creator(db, cmo=cmo)
    await attribute_payment(db, payment("ord-cmo-a", await create_user(db), ref_creator=creator.referral_code), now=NOW)

    # the next bump misses, as if the month's row were opened by a concurrent payment after the UPDATE ran
    bump = attribution._cmo_payout_bump
    calls = []

    def late_bump(cmo_id, month, commission):
        calls.append(month)
        return bump(cmo_id, date(1999, 1, 1) if len(calls) == 1 else month, commission)

    monkeypatch.setattr(attribution, "_cmo_payout_bump", late_bump)
    second = await attribute_payment(
        db, payment("ord-cmo-b", await create_user(db), ref_creator=creator.referral_code), now=NOW
    )
    assert second.created is True
    assert len(calls) == 2

    rows = (await db.execute(select(CMOPayout).where(CMOPayout.cmo_id == cmo.id))).scalars().all()
    assert len(rows) == 1
    await db.refresh(rows[0])
    assert rows[0].total_paid_users == 2
    assert rows[0].total_commission == Decimal("1600.00")


@pytest.mark.asyncio
async def test_inactive_cmo_gets_no_rollup(db):
    cmo = await create_cmo(db, is_active=False)
    creator = await create_creator(db, cmo=cmo)
    buyer = await create_user(db)

    await attribute_payment(db, payment("ord-1", buyer, ref_creator=creator.referral_code), now=NOW)

    count = (await db.execute(select(func.count(CMOPayout.id)))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_stored_rate_survives_tier_edits(db):
    await set_tiers(db)
    creator = await create_creator(db)
    buyer = await create_user(db)

    recorded = await attribute_payment(db, payment("ord-snap", buyer, ref_creator=creator.referral_code), now=NOW)
    await upsert_tier(db, tier_level=1, tier_name="Base", commission_rate=Decimal("10"), monthly_user_threshold=0)

    att = (
        await db.execute(
            select(PaymentAttribution)
            .where(PaymentAttribution.id == recorded.attribution.id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert att.commission_rate == Decimal("8")
    assert att.creator_commission_amount == Decimal("800.00")


@pytest.mark.asyncio
async def test_attribution_keeps_ledger_consistent(db):
    await set_tiers(db)
    creator = await create_creator(db)
    for i in range(3):
        buyer = await create_user(db)
        await attribute_payment(
            db, payment(f"ord-{i}", buyer, amount="333.33", ref_creator=creator.referral_code), now=NOW
        )

    report = await reconcile_creator(db, creator.id)
    assert report.consistent
    assert report.fields["available_balance"].derived == Decimal("80.01")
    assert report.fields["lifetime_paid_users"].cached == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"order_id": " ", "final_amount": Decimal("10")}, "order_id_missing"),
        ({"order_id": "o1", "final_amount": Decimal("0")}, "amount_not_positive"),
        ({"order_id": "o2", "final_amount": Decimal("100"), "original_amount": Decimal("90")}, "amount_inconsistent"),
    ],
)
async def test_invalid_payments_are_rejected(db, kwargs, code):
    buyer = await create_user(db)
    with pytest.raises(ValidationError) as exc:
        await attribute_payment(db, PaymentCompleted(user_id=buyer.id, **kwargs), now=NOW)
    assert exc.value.code == code


@pytest.mark.asyncio
async def test_unknown_user_is_rejected(db):
    buyer = await create_user(db)
    event = PaymentCompleted(order_id="o-ghost", user_id=buyer.id, final_amount=Decimal("10"))
    await db.delete(buyer)
    await db.commit()

    with pytest.raises(NotFoundError):
        await attribute_payment(db, event, now=NOW)


# ---------------------------------------------------------
# Signup attribution
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_signup_attribution_records_relationship_only(db):
    creator = await create_creator(db)
    user = await create_user(db)

    row, created = await record_user_attribution(db, user_id=user.id, referral_code=creator.referral_code, now=NOW)
    assert created is True
    assert row.creator_id == creator.id
    assert row.referral_source == "link"

    await db.refresh(creator)
    assert creator.lifetime_paid_users == 0
    assert creator.available_balance == Decimal("0.00")

    again, created = await record_user_attribution(db, user_id=user.id, referral_code="ZZZZZZ", now=NOW)
    assert created is False
    assert again.id == row.id


@pytest.mark.asyncio
async def test_signup_via_discount_code(db):
    creator = await create_creator(db)
    code = await create_discount_code(db, creator, "HELLO20")
    user = await create_user(db)

    row, created = await record_user_attribution(db, user_id=user.id, discount_code="hello20", now=NOW)
    assert created is True
    assert row.discount_code_id == code.id
    assert row.referral_source == "discount_code"


@pytest.mark.asyncio
async def test_signup_without_creator_records_nothing(db):
    user = await create_user(db)
    row, created = await record_user_attribution(db, user_id=user.id, referral_code=None, now=NOW)
    assert row is None
    assert created is False
