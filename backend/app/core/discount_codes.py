# app/core/discount_codes.py
from __future__ import annotations

import re
import uuid
from decimal import Decimal
from typing import Optional

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.creator_profile import CreatorProfile
from app.models.discount_code import DiscountCode

DISCOUNT_CODE_RE = re.compile(r"^[A-Z0-9]{4,20}$")


def normalize_discount_code(code: str | None) -> str | None:
    if not code:
        return None
    c = code.strip().upper()
    return c if DISCOUNT_CODE_RE.match(c) else None


async def find_active_code(db: AsyncSession, code: str | None) -> tuple[DiscountCode, CreatorProfile] | None:
    """Active code owned by an active creator, or None."""
    normalized = normalize_discount_code(code)
    if normalized is None:
        return None
    stmt = (
        select(DiscountCode, CreatorProfile)
        .join(CreatorProfile, CreatorProfile.id == DiscountCode.creator_id)
        .where(DiscountCode.code == normalized)
        .where(DiscountCode.is_active.is_(True))
        .where(CreatorProfile.is_active.is_(True))
    )
    row = (await db.execute(stmt)).first()
    return (row[0], row[1]) if row else None


async def count_active_codes(db: AsyncSession, creator_id: uuid.UUID) -> int:
    stmt = select(func.count(DiscountCode.id)).where(
        DiscountCode.creator_id == creator_id,
        DiscountCode.is_active.is_(True),
    )
    return int((await db.execute(stmt)).scalar_one() or 0)


async def _insert_code(
    db: AsyncSession,
    *,
    creator_id: uuid.UUID,
    code: str,
    discount_percent: Decimal,
    created_by_user_id: Optional[uuid.UUID],
) -> DiscountCode:
    taken = (await db.execute(select(DiscountCode.id).where(DiscountCode.code == code))).first()
    if taken:
        raise ValidationError("Discount code already exists.", code="discount_code_taken", discount_code=code)

    row = DiscountCode(
        code=code,
        creator_id=creator_id,
        discount_percent=discount_percent,
        usage_count=0,
        paid_conversions=0,
        is_active=True,
        created_by_user_id=created_by_user_id,
    )
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Discount code already exists.", code="discount_code_taken", discount_code=code)

    await db.refresh(row)
    logger.info(
        "Discount code created",
        extra={"creator_id": str(creator_id), "discount_code": code, "percent": str(discount_percent)},
    )
    return row


async def create_creator_code(db: AsyncSession, creator: CreatorProfile, code: str) -> DiscountCode:
    """A creator's own code: fixed discount, capped number of active codes."""
    normalized = normalize_discount_code(code)
    if normalized is None:
        raise ValidationError("Discount code must be 4-20 characters A-Z or 0-9.", code="discount_code_format")
    if not creator.is_active:
        raise ValidationError("Creator is not active.", code="creator_inactive")

    active = await count_active_codes(db, creator.id)
    if active >= settings.MAX_DISCOUNT_CODES_PER_CREATOR:
        raise ValidationError(
            "Maximum number of active discount codes reached.",
            code="discount_code_limit",
            limit=settings.MAX_DISCOUNT_CODES_PER_CREATOR,
        )

    return await _insert_code(
        db,
        creator_id=creator.id,
        code=normalized,
        discount_percent=settings.CREATOR_DISCOUNT_PERCENT,
        created_by_user_id=None,
    )


async def create_code_for_creator(
    db: AsyncSession,
    *,
    creator_id: uuid.UUID,
    code: str,
    discount_percent: Decimal,
    created_by_user_id: uuid.UUID,
) -> DiscountCode:
    """Admin path: any percent in (0, 100), no cap."""
    normalized = normalize_discount_code(code)
    if normalized is None:
        raise ValidationError("Discount code must be 4-20 characters A-Z or 0-9.", code="discount_code_format")
    if not (Decimal("0") < discount_percent < Decimal("100")):
        raise ValidationError("discount_percent must be in (0, 100).", code="discount_percent_range")
    if await db.get(CreatorProfile, creator_id) is None:
        raise NotFoundError("Creator not found", creator_id=creator_id)

    return await _insert_code(
        db,
        creator_id=creator_id,
        code=normalized,
        discount_percent=discount_percent,
        created_by_user_id=created_by_user_id,
    )


async def deactivate_code(
    db: AsyncSession,
    code_id: uuid.UUID,
    *,
    owner_creator_id: Optional[uuid.UUID] = None,
) -> DiscountCode:
    row = await db.get(DiscountCode, code_id)
    if row is None or (owner_creator_id is not None and row.creator_id != owner_creator_id):
        raise NotFoundError("Discount code not found", code_id=code_id)

    row.is_active = False
    await db.commit()
    await db.refresh(row)
    logger.info("Discount code deactivated", extra={"code_id": str(code_id), "discount_code": row.code})
    return row


async def list_codes(db: AsyncSession, creator_id: uuid.UUID) -> list[DiscountCode]:
    stmt = select(DiscountCode).where(DiscountCode.creator_id == creator_id).order_by(DiscountCode.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def redeem_code(db: AsyncSession, code: str) -> DiscountCode:
    """Checkout-time redemption: counts the use and returns the code (for its percent)."""
    found = await find_active_code(db, code)
    if found is None:
        raise ValidationError("Discount code is invalid or inactive.", code="discount_code_invalid")
    row, _creator = found

    res = await db.execute(
        update(DiscountCode)
        .where(DiscountCode.id == row.id, DiscountCode.is_active.is_(True))
        .values(usage_count=DiscountCode.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        await db.rollback()
        raise ValidationError("Discount code is invalid or inactive.", code="discount_code_invalid")

    await db.commit()
    await db.refresh(row)
    logger.info("Discount code redeemed", extra={"discount_code": row.code, "usage_count": row.usage_count})
    return row
