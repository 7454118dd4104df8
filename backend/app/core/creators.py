# app/core/creators.py
from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import month_key, utcnow
from app.core.commission import (
    TierRow,
    count_monthly_paid_users,
    get_next_tier,
    get_tier,
    load_effective_tiers,
    progress_percent,
    resolve_rate,
)
from app.core.config import settings
from app.core.errors import DomainError, NotFoundError, ValidationError
from app.core.ledger import money
from app.models.cmo_payout import CMOPayout
from app.models.cmo_profile import CMOProfile
from app.models.creator_profile import CreatorProfile
from app.models.payment_attribution import PaymentAttribution
from app.models.user import User

MAX_CODE_RETRIES = 30
ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


def gen_referral_code() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(6))


async def allocate_referral_code(db: AsyncSession, model=CreatorProfile) -> str:
    """
    Collision-safe allocator.
    Pre-checks to reduce collisions; the unique constraint still decides at commit time.
    """
    for _ in range(MAX_CODE_RETRIES):
        code = gen_referral_code()
        exists = (await db.execute(select(model.id).where(model.referral_code == code))).first()
        if not exists:
            return code
    raise DomainError("Could not allocate a unique referral code; retry later.", code="referral_code_exhausted")


async def resolve_or_create_user(
    db: AsyncSession,
    *,
    user_id: Optional[uuid.UUID] = None,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
) -> User:
    if (user_id is None) == (email is None):
        raise ValidationError("Provide exactly one of user_id or email.", code="user_choice")

    if user_id is not None:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        return user

    email = email.strip().lower()
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(email=email, full_name=full_name, is_active=True)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            # created concurrently
            user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
            if user is None:
                raise
    return user


# ---------------------------------------------------------
# Creators
# ---------------------------------------------------------
async def onboard_creator(
    db: AsyncSession,
    *,
    user_id: Optional[uuid.UUID] = None,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    display_name: Optional[str] = None,
    cmo_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> CreatorProfile:
    """New creators start on NEW_CREATOR_TIER_LEVEL, protected for TIER_PROTECTION_DAYS."""
    now = now or utcnow()
    user = await resolve_or_create_user(db, user_id=user_id, email=email, full_name=full_name)

    existing = (
        await db.execute(select(CreatorProfile.id).where(CreatorProfile.user_id == user.id))
    ).first()
    if existing:
        raise ValidationError("Creator profile already exists for this user.", code="creator_exists")

    if cmo_id is not None and await db.get(CMOProfile, cmo_id) is None:
        raise NotFoundError("CMO not found", cmo_id=cmo_id)

    creator = CreatorProfile(
        user_id=user.id,
        display_name=display_name or user.full_name,
        referral_code=await allocate_referral_code(db),
        cmo_id=cmo_id,
        is_active=True,
        current_tier_level=settings.NEW_CREATOR_TIER_LEVEL,
        tier_protection_until=now + timedelta(days=settings.TIER_PROTECTION_DAYS),
        created_at=now,
    )
    db.add(creator)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Conflict creating creator profile; retry.", code="creator_conflict")

    await db.refresh(creator)
    logger.info(
        "Creator onboarded",
        extra={"creator_id": str(creator.id), "user_id": str(user.id), "tier_level": creator.current_tier_level},
    )
    return creator


async def get_creator(db: AsyncSession, creator_id: uuid.UUID) -> CreatorProfile:
    creator = await db.get(CreatorProfile, creator_id, populate_existing=True)
    if creator is None:
        raise NotFoundError("Creator not found", creator_id=creator_id)
    return creator


async def update_creator(db: AsyncSession, creator_id: uuid.UUID, changes: dict[str, Any]) -> CreatorProfile:
    """`changes` holds only the fields the caller set (is_active, cmo_id, display_name)."""
    creator = await get_creator(db, creator_id)

    if changes.get("cmo_id") is not None and await db.get(CMOProfile, changes["cmo_id"]) is None:
        raise NotFoundError("CMO not found", cmo_id=changes["cmo_id"])

    for k in ("is_active", "cmo_id", "display_name"):
        if k in changes:
            setattr(creator, k, changes[k])

    await db.commit()
    await db.refresh(creator)
    logger.info("Creator updated", extra={"creator_id": str(creator_id), "fields": sorted(changes)})
    return creator


async def rotate_referral_code(db: AsyncSession, creator_id: uuid.UUID) -> CreatorProfile:
    creator = await get_creator(db, creator_id)

    # collision-safe retry, relying on DB unique constraint
    for _ in range(MAX_CODE_RETRIES):
        creator.referral_code = gen_referral_code()
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            creator = await get_creator(db, creator_id)
            continue
        await db.refresh(creator)
        logger.info("Referral code rotated", extra={"creator_id": str(creator_id)})
        return creator

    raise DomainError("Failed to rotate referral code; retry later.", code="referral_code_exhausted")


async def list_creators(
    db: AsyncSession,
    *,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CreatorProfile], int]:
    total = await db.scalar(select(func.count()).select_from(CreatorProfile))
    rows = (
        await db.execute(
            select(CreatorProfile).order_by(CreatorProfile.created_at.desc()).limit(limit).offset(offset)
        )
    ).scalars().all()
    return list(rows), int(total or 0)


# ---------------------------------------------------------
# Reporting
# ---------------------------------------------------------
@dataclass
class CreatorSummary:
    creator_id: uuid.UUID
    referral_code: str
    available_balance: Decimal
    reserved_balance: Decimal
    total_withdrawn: Decimal
    lifetime_paid_users: int
    monthly_paid_users: int
    commission_rate: Decimal
    rate_protected: bool
    tier_protection_until: Optional[datetime]
    current_tier: Optional[TierRow]
    next_tier: Optional[TierRow]
    progress_percent: Decimal


async def get_creator_summary(
    db: AsyncSession,
    creator_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> CreatorSummary:
    now = now or utcnow()
    creator = await get_creator(db, creator_id)

    tiers = await load_effective_tiers(db)
    monthly = await count_monthly_paid_users(db, creator.id, now)
    rate = resolve_rate(creator, tiers, now, monthly_paid_users=monthly)
    next_tier = get_next_tier(tiers, rate.tier_level)

    return CreatorSummary(
        creator_id=creator.id,
        referral_code=creator.referral_code,
        available_balance=creator.available_balance,
        reserved_balance=creator.reserved_balance,
        total_withdrawn=creator.total_withdrawn,
        lifetime_paid_users=creator.lifetime_paid_users,
        monthly_paid_users=monthly,
        commission_rate=rate.rate,
        rate_protected=rate.protected,
        tier_protection_until=creator.tier_protection_until,
        current_tier=get_tier(tiers, rate.tier_level),
        next_tier=next_tier,
        progress_percent=progress_percent(monthly, next_tier),
    )


async def list_creator_attributions(
    db: AsyncSession,
    creator_id: uuid.UUID,
    *,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[PaymentAttribution], int]:
    if not (1 <= limit <= 100) or offset < 0:
        raise ValidationError("limit must be 1..100 and offset >= 0.", code="pagination_invalid")

    total = await db.scalar(
        select(func.count(PaymentAttribution.id)).where(PaymentAttribution.creator_id == creator_id)
    )
    rows = (
        await db.execute(
            select(PaymentAttribution)
            .where(PaymentAttribution.creator_id == creator_id)
            .order_by(PaymentAttribution.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
    ).scalars().all()
    return list(rows), int(total or 0)


REVENUE_MONTHS = 6


@dataclass
class MonthRevenue:
    month: date
    revenue: Decimal
    commission: Decimal
    payments: int


@dataclass
class RevenueStats:
    total_revenue: Decimal
    total_commission: Decimal
    this_month_revenue: Decimal
    monthly: list[MonthRevenue]


def _months_back(first: date, n: int) -> date:
    idx = first.year * 12 + first.month - 1 - n
    return date(idx // 12, idx % 12 + 1, 1)


async def revenue_stats(db: AsyncSession, now: Optional[datetime] = None) -> RevenueStats:
    """
    Platform revenue from recorded payments: all-time totals, the current
    month, and the last REVENUE_MONTHS calendar months (zero-filled, oldest first).
    """
    now = now or utcnow()
    current = month_key(now)

    rows = (
        await db.execute(
            select(
                PaymentAttribution.payment_month,
                func.coalesce(func.sum(PaymentAttribution.final_amount), 0),
                func.coalesce(func.sum(PaymentAttribution.creator_commission_amount), 0),
                func.count(PaymentAttribution.id),
            ).group_by(PaymentAttribution.payment_month)
        )
    ).all()

    by_month = {month: (money(revenue), money(commission), int(count)) for month, revenue, commission, count in rows}
    monthly = []
    for back in range(REVENUE_MONTHS - 1, -1, -1):
        month = _months_back(current, back)
        revenue, commission, count = by_month.get(month, (money(0), money(0), 0))
        monthly.append(MonthRevenue(month=month, revenue=revenue, commission=commission, payments=count))

    return RevenueStats(
        total_revenue=money(sum((r for r, _, _ in by_month.values()), Decimal("0"))),
        total_commission=money(sum((c for _, c, _ in by_month.values()), Decimal("0"))),
        this_month_revenue=by_month.get(current, (money(0),))[0],
        monthly=monthly,
    )


# ---------------------------------------------------------
# CMOs
# ---------------------------------------------------------
async def onboard_cmo(
    db: AsyncSession,
    *,
    user_id: Optional[uuid.UUID] = None,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    display_name: Optional[str] = None,
    is_head_ops: bool = False,
) -> CMOProfile:
    user = await resolve_or_create_user(db, user_id=user_id, email=email, full_name=full_name)

    existing = (await db.execute(select(CMOProfile.id).where(CMOProfile.user_id == user.id))).first()
    if existing:
        raise ValidationError("CMO profile already exists for this user.", code="cmo_exists")

    cmo = CMOProfile(
        user_id=user.id,
        display_name=display_name or user.full_name,
        referral_code=await allocate_referral_code(db, CMOProfile),
        is_active=True,
        is_head_ops=is_head_ops,
    )
    db.add(cmo)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Conflict creating CMO profile; retry.", code="cmo_conflict")

    await db.refresh(cmo)
    logger.info("CMO onboarded", extra={"cmo_id": str(cmo.id), "is_head_ops": is_head_ops})
    return cmo


async def list_cmo_payouts(db: AsyncSession, cmo_id: uuid.UUID) -> list[CMOPayout]:
    stmt = select(CMOPayout).where(CMOPayout.cmo_id == cmo_id).order_by(CMOPayout.payout_month.desc())
    return list((await db.execute(stmt)).scalars().all())
