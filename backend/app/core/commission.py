# app/core/commission.py
"""
Commission tiers and rate resolution.

Tiers are a step function over the number of distinct paid users a creator
brought in during the current calendar month: the highest tier whose
monthly_user_threshold is <= that count wins. A creator inside a protection
window keeps the rate of their current_tier_level regardless of performance.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import ensure_aware, start_of_month, utcnow
from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.commission_tier import CommissionTier
from app.models.creator_profile import CreatorProfile
from app.models.payment_attribution import PaymentAttribution

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class TierRow:
    tier_level: int
    tier_name: str
    commission_rate: Decimal  # percent
    monthly_user_threshold: int


# Used only when the commission_tiers table is empty.
FALLBACK_TIERS: tuple[TierRow, ...] = (
    TierRow(tier_level=1, tier_name="Base", commission_rate=Decimal("8"), monthly_user_threshold=0),
    TierRow(tier_level=2, tier_name="Growth", commission_rate=Decimal("12"), monthly_user_threshold=100),
)


@dataclass(frozen=True)
class ResolvedRate:
    rate: Decimal  # percent
    tier_level: int
    protected: bool = False

    @property
    def fraction(self) -> Decimal:
        return self.rate / HUNDRED


def as_tier_row(tier) -> TierRow:
    """Accepts ORM rows, TierRow or anything tier-shaped."""
    if isinstance(tier, TierRow):
        return tier
    return TierRow(
        tier_level=int(tier.tier_level),
        tier_name=str(tier.tier_name),
        commission_rate=Decimal(str(tier.commission_rate)),
        monthly_user_threshold=int(tier.monthly_user_threshold),
    )


def validate_tier_table(tiers: Iterable) -> list[TierRow]:
    """
    Returns the table ordered by tier_level, or raises ValidationError.
      - at least one tier
      - tier_level 1 exists with threshold 0
      - thresholds strictly increase with tier_level
      - rates in (0, 100]
    """
    rows = sorted((as_tier_row(t) for t in tiers), key=lambda t: t.tier_level)
    if not rows:
        raise ValidationError("At least one commission tier is required.", code="tier_table_empty")

    levels = [t.tier_level for t in rows]
    if len(set(levels)) != len(levels):
        raise ValidationError("tier_level values must be unique.", code="tier_level_duplicate")

    first = rows[0]
    if first.tier_level != 1 or first.monthly_user_threshold != 0:
        raise ValidationError("Tier 1 must exist and have a threshold of 0.", code="tier_base_invalid")

    for prev, cur in zip(rows, rows[1:]):
        if cur.monthly_user_threshold <= prev.monthly_user_threshold:
            raise ValidationError(
                "Thresholds must strictly increase with tier_level.",
                code="tier_threshold_order",
                tier_level=cur.tier_level,
            )

    for t in rows:
        if not (Decimal("0") < t.commission_rate <= HUNDRED):
            raise ValidationError(
                "commission_rate must be in (0, 100].",
                code="tier_rate_range",
                tier_level=t.tier_level,
            )
    return rows


def tier_for_count(tiers: Sequence[TierRow], monthly_paid_users: int) -> TierRow:
    ordered = sorted(tiers, key=lambda t: t.monthly_user_threshold)
    chosen = ordered[0]
    for t in ordered:
        if monthly_paid_users >= t.monthly_user_threshold:
            chosen = t
    return chosen


def get_tier(tiers: Sequence[TierRow], tier_level: int | None) -> TierRow | None:
    return next((t for t in tiers if t.tier_level == tier_level), None)


def get_next_tier(tiers: Sequence[TierRow], tier_level: int) -> TierRow | None:
    """Next tier up the ladder, or None if already at the top."""
    above = [t for t in tiers if t.tier_level > tier_level]
    return min(above, key=lambda t: t.tier_level) if above else None


def progress_percent(monthly_paid_users: int, next_tier: TierRow | None) -> Decimal:
    if next_tier is None or next_tier.monthly_user_threshold <= 0:
        return Decimal("100.00")
    pct = Decimal(monthly_paid_users) * HUNDRED / Decimal(next_tier.monthly_user_threshold)
    return min(pct, HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def is_protected(creator, now: datetime) -> bool:
    until = ensure_aware(getattr(creator, "tier_protection_until", None))
    return until is not None and until > ensure_aware(now)


def resolve_rate(creator, tiers: Iterable, now: datetime, *, monthly_paid_users: int) -> ResolvedRate:
    """
    Effective commission rate for `creator` at `now`.

    Pure: reads creator.tier_protection_until / creator.current_tier_level and
    never writes anything back.
    """
    rows = [as_tier_row(t) for t in tiers]
    if not rows:
        logger.warning("commission_tiers is empty; using fallback tiers")
        rows = list(FALLBACK_TIERS)

    if is_protected(creator, now):
        level = getattr(creator, "current_tier_level", None)
        protected_tier = get_tier(rows, level)
        if protected_tier is not None:
            return ResolvedRate(protected_tier.commission_rate, protected_tier.tier_level, protected=True)
        logger.warning(
            "Protected tier level does not exist; resolving by performance",
            extra={"creator_id": str(getattr(creator, "id", "")), "tier_level": level},
        )

    tier = tier_for_count(rows, max(0, int(monthly_paid_users)))
    return ResolvedRate(tier.commission_rate, tier.tier_level)


def compute_commission(final_amount: Decimal, rate_percent: Decimal) -> Decimal:
    """commission = final sale price (after discount) x rate"""
    return (Decimal(final_amount) * Decimal(rate_percent) / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------
# DB access
# ---------------------------------------------------------
async def load_tiers(db: AsyncSession) -> list[TierRow]:
    rows = (await db.execute(select(CommissionTier).order_by(CommissionTier.tier_level))).scalars().all()
    return [as_tier_row(t) for t in rows]


async def load_effective_tiers(db: AsyncSession) -> list[TierRow]:
    return (await load_tiers(db)) or list(FALLBACK_TIERS)


async def count_monthly_paid_users(db: AsyncSession, creator_id, now: datetime) -> int:
    """Distinct paid users attributed to the creator in [start of month, now)."""
    stmt = select(func.count(func.distinct(PaymentAttribution.user_id))).where(
        PaymentAttribution.creator_id == creator_id,
        PaymentAttribution.created_at >= start_of_month(now),
        PaymentAttribution.created_at < ensure_aware(now),
    )
    return int((await db.execute(stmt)).scalar_one() or 0)


async def resolve_creator_rate(
    db: AsyncSession,
    creator: CreatorProfile,
    now: Optional[datetime] = None,
) -> tuple[ResolvedRate, int]:
    now = now or utcnow()
    monthly = await count_monthly_paid_users(db, creator.id, now)
    tiers = await load_tiers(db)
    return resolve_rate(creator, tiers, now, monthly_paid_users=monthly), monthly


# ---------------------------------------------------------
# Admin: tier table maintenance
# ---------------------------------------------------------
async def upsert_tier(
    db: AsyncSession,
    *,
    tier_level: int,
    tier_name: str,
    commission_rate: Decimal,
    monthly_user_threshold: int,
) -> list[TierRow]:
    existing = (await db.execute(select(CommissionTier))).scalars().all()
    candidate = [as_tier_row(t) for t in existing if t.tier_level != tier_level]
    candidate.append(
        TierRow(
            tier_level=tier_level,
            tier_name=tier_name.strip(),
            commission_rate=Decimal(commission_rate),
            monthly_user_threshold=monthly_user_threshold,
        )
    )
    validate_tier_table(candidate)

    row = next((t for t in existing if t.tier_level == tier_level), None)
    if row is None:
        row = CommissionTier(tier_level=tier_level)
        db.add(row)
    row.tier_name = tier_name.strip()
    row.commission_rate = Decimal(commission_rate)
    row.monthly_user_threshold = monthly_user_threshold

    await db.commit()
    logger.info("Commission tier saved", extra={"tier_level": tier_level, "rate": str(commission_rate)})
    return await load_tiers(db)


async def delete_tier(db: AsyncSession, tier_level: int) -> list[TierRow]:
    existing = (await db.execute(select(CommissionTier))).scalars().all()
    if not any(t.tier_level == tier_level for t in existing):
        raise NotFoundError("Commission tier not found", tier_level=tier_level)
    if len(existing) <= 1:
        raise ValidationError("The last commission tier cannot be deleted.", code="tier_table_empty")

    validate_tier_table(t for t in existing if t.tier_level != tier_level)

    await db.execute(delete(CommissionTier).where(CommissionTier.tier_level == tier_level))
    await db.commit()
    logger.info("Commission tier deleted", extra={"tier_level": tier_level})
    return await load_tiers(db)


# ---------------------------------------------------------
# Batch: persist tier changes from this month's performance
# ---------------------------------------------------------
@dataclass
class TierEvaluationResult:
    evaluated: int = 0
    promoted: int = 0
    demoted: int = 0
    unchanged: int = 0
    protected: int = 0


async def evaluate_creator_tiers(db: AsyncSession, now: Optional[datetime] = None) -> TierEvaluationResult:
    """
    Snapshot current_tier_level for every active creator outside protection.
    A promotion grants TIER_PROTECTION_DAYS of protection; a demotion clears it.
    """
    now = now or utcnow()
    tiers = await load_effective_tiers(db)
    result = TierEvaluationResult()

    creators = (
        await db.execute(select(CreatorProfile).where(CreatorProfile.is_active.is_(True)).with_for_update())
    ).scalars().all()

    for creator in creators:
        if is_protected(creator, now):
            result.protected += 1
            continue

        monthly = await count_monthly_paid_users(db, creator.id, now)
        new_level = tier_for_count(tiers, monthly).tier_level
        old_level = creator.current_tier_level
        result.evaluated += 1

        if new_level == old_level:
            result.unchanged += 1
            continue

        creator.current_tier_level = new_level
        if new_level > old_level:
            creator.tier_protection_until = now + timedelta(days=settings.TIER_PROTECTION_DAYS)
            result.promoted += 1
            logger.info(
                "Creator promoted",
                extra={
                    "creator_id": str(creator.id),
                    "old_tier": old_level,
                    "new_tier": new_level,
                    "monthly_users": monthly,
                },
            )
        else:
            creator.tier_protection_until = None
            result.demoted += 1
            logger.warning(
                "Creator demoted",
                extra={
                    "creator_id": str(creator.id),
                    "old_tier": old_level,
                    "new_tier": new_level,
                    "monthly_users": monthly,
                },
            )

    await db.commit()
    logger.info("Tier evaluation completed", extra=dict(result.__dict__))
    return result
