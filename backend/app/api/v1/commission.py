# app/api/v1/commission.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.auth import get_current_user
from app.core.commission import load_effective_tiers
from app.core.platform_settings import get_payout_settings
from app.db.session import get_db
from app.models.user import User
from app.schemas.commission import TierListOut
from app.schemas.withdrawal import PayoutSettingsOut

router = APIRouter(prefix="/commission", tags=["commission"])


@router.get("/tiers", response_model=TierListOut)
async def list_tiers(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return TierListOut(items=await load_effective_tiers(db))


@router.get("/payout-settings", response_model=PayoutSettingsOut)
async def payout_settings(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    s = await get_payout_settings(db)
    return PayoutSettingsOut(minimum_payout_lkr=s.minimum_payout_lkr, withdrawal_fee_percent=s.withdrawal_fee_percent)
