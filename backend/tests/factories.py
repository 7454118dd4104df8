# tests/factories.py
from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from app.core.config import settings
from app.core.creators import gen_referral_code
from app.core.security import create_access_token
from app.models.cmo_profile import CMOProfile
from app.models.commission_tier import CommissionTier
from app.models.creator_profile import CreatorProfile
from app.models.discount_code import DiscountCode
from app.models.payment_attribution import PaymentAttribution
from app.models.platform_membership import PlatformMembership
from app.models.user import User
from app.models.withdrawal_method import WithdrawalMethod

# mid-month, so "earlier this month" has room on both sides
NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)

STANDARD_TIERS = [(1, 0, "8"), (2, 100, "12"), (3, 250, "16")]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_user(db, email: Optional[str] = None, full_name: Optional[str] = None) -> User:
    user = User(email=email or f"user-{uuid.uuid4().hex[:10]}@example.com", full_name=full_name, is_active=True)
    db.add(user)
    await db.commit()
    return user


async def create_admin(db, role: str = "ADMIN") -> User:
    user = await create_user(db, full_name="Platform Admin")
    db.add(PlatformMembership(user_id=user.id, role=role, is_active=True))
    await db.commit()
    return user


async def create_cmo(db, *, is_head_ops: bool = False, is_active: bool = True) -> CMOProfile:
    user = await create_user(db)
    cmo = CMOProfile(
        user_id=user.id,
        display_name="CMO",
        referral_code=gen_referral_code(),
        is_active=is_active,
        is_head_ops=is_head_ops,
    )
    db.add(cmo)
    await db.commit()
    return cmo


async def create_creator(
    db,
    *,
    available_balance: Decimal = Decimal("0.00"),
    tier_level: int = 1,
    protected_until: Optional[datetime] = None,
    cmo: Optional[CMOProfile] = None,
    referral_code: Optional[str] = None,
    is_active: bool = True,
) -> CreatorProfile:
    user = await create_user(db)
    creator = CreatorProfile(
        user_id=user.id,
        display_name="Creator",
        referral_code=referral_code or gen_referral_code(),
        cmo_id=cmo.id if cmo else None,
        is_active=is_active,
        available_balance=available_balance,
        current_tier_level=tier_level,
        tier_protection_until=protected_until,
    )
    db.add(creator)
    await db.commit()
    return creator


async def set_tiers(db, rows=STANDARD_TIERS) -> list[CommissionTier]:
    tiers = [
        CommissionTier(
            tier_level=level,
            tier_name=f"Tier {level}",
            commission_rate=Decimal(rate),
            monthly_user_threshold=threshold,
        )
        for level, threshold, rate in rows
    ]
    db.add_all(tiers)
    await db.commit()
    return tiers


async def add_bank_method(db, creator: CreatorProfile, *, is_primary: bool = True) -> WithdrawalMethod:
    method = WithdrawalMethod(
        creator_id=creator.id,
        method_type="bank",
        bank_name="Commercial Bank",
        account_number="0012345678",
        account_holder_name="A Creator",
        is_primary=is_primary,
    )
    db.add(method)
    await db.commit()
    return method


async def create_discount_code(
    db,
    creator: CreatorProfile,
    code: str,
    *,
    percent: Decimal = Decimal("10"),
    usage_count: int = 0,
    is_active: bool = True,
) -> DiscountCode:
    row = DiscountCode(
        code=code,
        creator_id=creator.id,
        discount_percent=percent,
        usage_count=usage_count,
        paid_conversions=0,
        is_active=is_active,
    )
    db.add(row)
    await db.commit()
    return row


async def seed_paid_users(db, creator: CreatorProfile, count: int, *, when: datetime) -> None:
    """`count` distinct paying users attributed to the creator at `when` (no money side effects)."""
    users = [User(email=f"payer-{uuid.uuid4().hex}@example.com", is_active=True) for _ in range(count)]
    db.add_all(users)
    await db.flush()
    db.add_all(
        PaymentAttribution(
            order_id=f"seed-{uuid.uuid4().hex}",
            user_id=u.id,
            creator_id=creator.id,
            original_amount=Decimal("1000.00"),
            discount_applied=Decimal("0.00"),
            final_amount=Decimal("1000.00"),
            commission_rate=Decimal("8.00"),
            tier_level=1,
            rate_protected=False,
            creator_commission_amount=Decimal("80.00"),
            payment_month=date(when.year, when.month, 1),
            created_at=when,
        )
        for u in users
    )
    await db.commit()


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


def events_headers() -> dict[str, str]:
    return {"X-Events-Secret": settings.PAYMENT_EVENTS_SECRET}


def days(n: int) -> timedelta:
    return timedelta(days=n)
