# app/core/platform_settings.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ValidationError
from app.models.platform_setting import PlatformSetting

MINIMUM_PAYOUT_KEY = "minimum_payout_lkr"
WITHDRAWAL_FEE_KEY = "withdrawal_fee_percent"


@dataclass(frozen=True)
class PayoutSettings:
    minimum_payout_lkr: Decimal
    withdrawal_fee_percent: Decimal


def _parse_decimal(raw: Any) -> Decimal | None:
    # written as a decimal string; bare JSON numbers are accepted too
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    return value if value.is_finite() else None


def _valid_minimum(value: Decimal | None) -> bool:
    return value is not None and value >= 0


def _valid_fee(value: Decimal | None) -> bool:
    return value is not None and Decimal("0") <= value < Decimal("100")


async def get_payout_settings(db: AsyncSession) -> PayoutSettings:
    rows = (
        await db.execute(
            select(PlatformSetting).where(PlatformSetting.setting_key.in_((MINIMUM_PAYOUT_KEY, WITHDRAWAL_FEE_KEY)))
        )
    ).scalars().all()
    raw = {r.setting_key: r.setting_value for r in rows}

    minimum = _parse_decimal(raw.get(MINIMUM_PAYOUT_KEY))
    if not _valid_minimum(minimum):
        logger.warning(
            "Platform setting missing or invalid; using default",
            extra={"key": MINIMUM_PAYOUT_KEY, "default": str(settings.DEFAULT_MINIMUM_PAYOUT_LKR)},
        )
        minimum = settings.DEFAULT_MINIMUM_PAYOUT_LKR

    fee = _parse_decimal(raw.get(WITHDRAWAL_FEE_KEY))
    if not _valid_fee(fee):
        logger.warning(
            "Platform setting missing or invalid; using default",
            extra={"key": WITHDRAWAL_FEE_KEY, "default": str(settings.DEFAULT_WITHDRAWAL_FEE_PERCENT)},
        )
        fee = settings.DEFAULT_WITHDRAWAL_FEE_PERCENT

    return PayoutSettings(minimum_payout_lkr=minimum, withdrawal_fee_percent=fee)


async def update_payout_settings(
    db: AsyncSession,
    *,
    updated_by: uuid.UUID,
    minimum_payout_lkr: Optional[Decimal] = None,
    withdrawal_fee_percent: Optional[Decimal] = None,
) -> PayoutSettings:
    changes: dict[str, Decimal] = {}
    if minimum_payout_lkr is not None:
        if not _valid_minimum(minimum_payout_lkr):
            raise ValidationError("minimum_payout_lkr must be >= 0.", code="invalid_setting")
        changes[MINIMUM_PAYOUT_KEY] = minimum_payout_lkr
    if withdrawal_fee_percent is not None:
        if not _valid_fee(withdrawal_fee_percent):
            raise ValidationError("withdrawal_fee_percent must be in [0, 100).", code="invalid_setting")
        changes[WITHDRAWAL_FEE_KEY] = withdrawal_fee_percent

    for key, value in changes.items():
        row = (
            await db.execute(select(PlatformSetting).where(PlatformSetting.setting_key == key))
        ).scalar_one_or_none()
        if row is None:
            row = PlatformSetting(setting_key=key)
            db.add(row)
        row.setting_value = str(value)
        row.updated_by = updated_by

    await db.commit()
    if changes:
        logger.info(
            "Payout settings updated",
            extra={"updated_by": str(updated_by), **{k: str(v) for k, v in changes.items()}},
        )
    return await get_payout_settings(db)
