# app/core/attribution.py
"""
Payment attribution.

Links a completed payment to the creator who earned on it and applies the
money side effects (commission credit, paid-user counter, discount code
conversion, CMO monthly roll-up) in the same transaction as the immutable
PaymentAttribution insert. Safe to call more than once per order_id: a
repeat delivery returns the existing record and changes nothing.
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from loguru import logger
from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import month_key, utcnow
from app.core.commission import ResolvedRate, compute_commission, resolve_creator_rate
from app.core.config import settings
from app.core.discount_codes import find_active_code
from app.core.errors import AttributionConflictError, NotFoundError, ValidationError
from app.core.ledger import ZERO, credit_commission, money
from app.models.cmo_payout import CMOPayout
from app.models.cmo_profile import CMOProfile
from app.models.creator_profile import CreatorProfile
from app.models.discount_code import DiscountCode
from app.models.payment_attribution import PaymentAttribution
from app.models.user import User
from app.models.user_attribution import UserAttribution

REFERRAL_RE = re.compile(r"^[A-Z0-9]{6}$")

SOURCE_LINK = "link"
SOURCE_DISCOUNT_CODE = "discount_code"


def normalize_referral_code(code: str | None) -> str | None:
    if not code:
        return None
    c = code.strip().upper()
    return c if REFERRAL_RE.match(c) else None


@dataclass(frozen=True)
class PaymentCompleted:
    order_id: str
    user_id: uuid.UUID
    final_amount: Decimal
    original_amount: Optional[Decimal] = None
    ref_creator: Optional[str] = None
    discount_code: Optional[str] = None
    access_tier: Optional[str] = None


@dataclass(frozen=True)
class RecordedAttribution:
    attribution: PaymentAttribution
    created: bool


@dataclass(frozen=True)
class _Resolution:
    creator: CreatorProfile | None
    discount_code: DiscountCode | None
    source: str | None


async def resolve_creator_by_referral_code(db: AsyncSession, referral_code: str | None) -> Optional[CreatorProfile]:
    code = normalize_referral_code(referral_code)
    if code is None:
        return None
    stmt = (
        select(CreatorProfile)
        .where(CreatorProfile.referral_code == code)
        .where(CreatorProfile.is_active.is_(True))
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _resolve(db: AsyncSession, *, discount_code: str | None, ref_creator: str | None) -> _Resolution:
    # discount code first, then the referral link
    found = await find_active_code(db, discount_code)
    if found is not None:
        code_row, creator = found
        return _Resolution(creator=creator, discount_code=code_row, source=SOURCE_DISCOUNT_CODE)

    creator = await resolve_creator_by_referral_code(db, ref_creator)
    if creator is not None:
        return _Resolution(creator=creator, discount_code=None, source=SOURCE_LINK)

    return _Resolution(creator=None, discount_code=None, source=None)


async def get_attribution_by_order(db: AsyncSession, order_id: str) -> Optional[PaymentAttribution]:
    stmt = select(PaymentAttribution).where(PaymentAttribution.order_id == order_id)
    return (await db.execute(stmt)).scalar_one_or_none()


def _validate(event: PaymentCompleted) -> tuple[str, Decimal, Decimal]:
    order_id = (event.order_id or "").strip()
    if not order_id:
        raise ValidationError("order_id is required.", code="order_id_missing")

    final_amount = money(event.final_amount)
    if final_amount <= ZERO:
        raise ValidationError("final_amount must be positive.", code="amount_not_positive")

    original = money(event.original_amount) if event.original_amount is not None else final_amount
    if original < final_amount:
        raise ValidationError(
            "original_amount cannot be less than final_amount.",
            code="amount_inconsistent",
            original_amount=original,
            final_amount=final_amount,
        )
    return order_id, final_amount, original


async def _bump_discount_counters(db: AsyncSession, code_id: uuid.UUID) -> None:
    # usage_count is raised to paid_conversions when the code skipped redemption
    new_conversions = DiscountCode.paid_conversions + 1
    await db.execute(
        update(DiscountCode)
        .where(DiscountCode.id == code_id)
        .values(
            paid_conversions=new_conversions,
            usage_count=case(
                (DiscountCode.usage_count < new_conversions, new_conversions),
                else_=DiscountCode.usage_count,
            ),
        )
        .execution_options(synchronize_session=False)
    )


def _cmo_payout_bump(cmo_id: uuid.UUID, month: date, commission: Decimal):
    return (
        update(CMOPayout)
        .where(CMOPayout.cmo_id == cmo_id, CMOPayout.payout_month == month)
        .values(
            total_paid_users=CMOPayout.total_paid_users + 1,
            total_commission=CMOPayout.total_commission + commission,
        )
        .execution_options(synchronize_session=False)
    )


async def _open_cmo_payout(db: AsyncSession, *, cmo_id: uuid.UUID, month: date, commission: Decimal) -> bool:
    """Insert the month's first payout row; False if another payment already opened it."""
    try:
        async with db.begin_nested():
            db.add(
                CMOPayout(
                    cmo_id=cmo_id,
                    payout_month=month,
                    total_paid_users=1,
                    total_commission=commission,
                    status="pending",
                )
            )
    except IntegrityError:
        return False
    return True


async def _roll_up_cmo(
    db: AsyncSession,
    *,
    cmo_id: uuid.UUID,
    final_amount: Decimal,
    now: datetime,
) -> None:
    cmo = await db.get(CMOProfile, cmo_id)
    if cmo is None or not cmo.is_active:
        logger.info("Skipping CMO roll-up for inactive or missing CMO", extra={"cmo_id": str(cmo_id)})
        return

    month = month_key(now)
    commission = compute_commission(final_amount, settings.CMO_COMMISSION_PERCENT)

    res = await db.execute(_cmo_payout_bump(cmo_id, month, commission))
    if res.rowcount == 0 and not await _open_cmo_payout(db, cmo_id=cmo_id, month=month, commission=commission):
        logger.info("CMO payout row opened concurrently", extra={"cmo_id": str(cmo_id), "month": month.isoformat()})
        await db.execute(_cmo_payout_bump(cmo_id, month, commission))

    logger.info(
        "CMO payout rolled up",
        extra={"cmo_id": str(cmo_id), "month": month.isoformat(), "commission": str(commission)},
    )


async def _ensure_user_attribution(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    resolution: _Resolution,
    now: datetime,
) -> UserAttribution | None:
    existing = (
        await db.execute(select(UserAttribution).where(UserAttribution.user_id == user_id))
    ).scalar_one_or_none()
    if existing is not None or resolution.creator is None:
        return existing

    row = UserAttribution(
        user_id=user_id,
        creator_id=resolution.creator.id,
        discount_code_id=resolution.discount_code.id if resolution.discount_code else None,
        referral_source=resolution.source,
        created_at=now,
    )
    db.add(row)
    await db.flush()
    return row


async def _record(db: AsyncSession, event: PaymentCompleted, now: datetime) -> PaymentAttribution:
    order_id, final_amount, original_amount = _validate(event)

    if await db.get(User, event.user_id) is None:
        raise NotFoundError("User not found", user_id=event.user_id)

    resolution = await _resolve(db, discount_code=event.discount_code, ref_creator=event.ref_creator)
    creator = resolution.creator

    rate: ResolvedRate | None = None
    commission = ZERO
    if creator is not None:
        rate, _monthly = await resolve_creator_rate(db, creator, now)
        commission = compute_commission(final_amount, rate.rate)

    attribution = PaymentAttribution(
        order_id=order_id,
        user_id=event.user_id,
        creator_id=creator.id if creator else None,
        original_amount=original_amount,
        discount_applied=original_amount - final_amount,
        final_amount=final_amount,
        commission_rate=rate.rate if rate else ZERO,
        tier_level=rate.tier_level if rate else None,
        rate_protected=rate.protected if rate else False,
        creator_commission_amount=commission,
        discount_code=resolution.discount_code.code if resolution.discount_code else None,
        discount_code_id=resolution.discount_code.id if resolution.discount_code else None,
        access_tier=event.access_tier,
        payment_month=month_key(now),
        created_at=now,
    )
    db.add(attribution)
    try:
        await db.flush()
    except IntegrityError as e:
        raise AttributionConflictError("Attribution already exists for order", order_id=order_id) from e

    if creator is None:
        logger.info("Payment recorded without referral", extra={"order_id": order_id, "amount": str(final_amount)})
        return attribution

    await credit_commission(
        db,
        creator_id=creator.id,
        amount=commission,
        attribution_id=attribution.id,
        now=now,
        metadata={"order_id": order_id, "rate": str(rate.rate), "tier_level": rate.tier_level},
    )

    if resolution.discount_code is not None:
        await _bump_discount_counters(db, resolution.discount_code.id)

    if creator.cmo_id is not None:
        await _roll_up_cmo(db, cmo_id=creator.cmo_id, final_amount=final_amount, now=now)

    await _ensure_user_attribution(db, user_id=event.user_id, resolution=resolution, now=now)

    logger.info(
        "Payment attributed",
        extra={
            "order_id": order_id,
            "creator_id": str(creator.id),
            "source": resolution.source,
            "rate": str(rate.rate),
            "tier_level": rate.tier_level,
            "commission": str(commission),
        },
    )
    return attribution


async def attribute_payment(
    db: AsyncSession,
    event: PaymentCompleted,
    *,
    now: Optional[datetime] = None,
) -> RecordedAttribution:
    now = now or utcnow()

    existing = await get_attribution_by_order(db, (event.order_id or "").strip())
    if existing is not None:
        logger.warning("Duplicate payment delivery ignored", extra={"order_id": existing.order_id})
        return RecordedAttribution(existing, created=False)

    try:
        attribution = await _record(db, event, now)
        await db.commit()
    except AttributionConflictError:
        # lost the insert race to a concurrent delivery of the same order
        await db.rollback()
        existing = await get_attribution_by_order(db, event.order_id.strip())
        if existing is None:
            raise
        logger.warning("Duplicate payment delivery ignored", extra={"order_id": existing.order_id})
        return RecordedAttribution(existing, created=False)
    except Exception:
        await db.rollback()
        raise

    await db.refresh(attribution)
    return RecordedAttribution(attribution, created=True)


async def record_user_attribution(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    referral_code: str | None = None,
    discount_code: str | None = None,
    now: Optional[datetime] = None,
) -> tuple[UserAttribution | None, bool]:
    """
    Signup-time relationship. Never touches balances or lifetime_paid_users.
    Returns (record, created); record is None when no creator resolves.
    """
    now = now or utcnow()
    if await db.get(User, user_id) is None:
        raise NotFoundError("User not found", user_id=user_id)

    existing = (
        await db.execute(select(UserAttribution).where(UserAttribution.user_id == user_id))
    ).scalar_one_or_none()
    if existing is not None:
        return existing, False

    resolution = await _resolve(db, discount_code=discount_code, ref_creator=referral_code)
    if resolution.creator is None:
        return None, False

    try:
        row = await _ensure_user_attribution(db, user_id=user_id, resolution=resolution, now=now)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = (
            await db.execute(select(UserAttribution).where(UserAttribution.user_id == user_id))
        ).scalar_one_or_none()
        return existing, False

    logger.info(
        "Signup attributed",
        extra={"user_id": str(user_id), "creator_id": str(resolution.creator.id), "source": resolution.source},
    )
    return row, True
