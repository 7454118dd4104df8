# app/api/v1/creators.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.roles import require_creator
from app.core import discount_codes, withdrawals
from app.core.creators import get_creator_summary, list_creator_attributions
from app.db.session import get_db
from app.models.creator_profile import CreatorProfile
from app.schemas.creator import (
    AttributionPageOut,
    CreatorOut,
    CreatorSummaryOut,
    DiscountCodeCreate,
    DiscountCodeOut,
)
from app.schemas.withdrawal import (
    WithdrawalCreate,
    WithdrawalMethodCreate,
    WithdrawalMethodOut,
    WithdrawalOut,
    WithdrawalPageOut,
)

router = APIRouter(prefix="/creator", tags=["creator"])


@router.get("/me", response_model=CreatorOut)
async def my_profile(creator: CreatorProfile = Depends(require_creator)):
    return creator


@router.get("/summary", response_model=CreatorSummaryOut)
async def my_summary(
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    """Dashboard numbers: balances, this month's paid users and tier progress."""
    summary = await get_creator_summary(db, creator.id)
    return CreatorSummaryOut.model_validate(summary, from_attributes=True)


@router.get("/attributions", response_model=AttributionPageOut)
async def my_attributions(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    rows, total = await list_creator_attributions(db, creator.id, limit=limit, offset=offset)
    return AttributionPageOut(items=rows, limit=limit, offset=offset, total=total)


# ---------------------------------------------------------
# Discount codes
# ---------------------------------------------------------
@router.get("/discount-codes", response_model=list[DiscountCodeOut])
async def my_discount_codes(
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    return await discount_codes.list_codes(db, creator.id)


@router.post("/discount-codes", response_model=DiscountCodeOut, status_code=status.HTTP_201_CREATED)
async def create_discount_code(
    payload: DiscountCodeCreate,
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    return await discount_codes.create_creator_code(db, creator, payload.code)


@router.post("/discount-codes/{code_id}/deactivate", response_model=DiscountCodeOut)
async def deactivate_discount_code(
    code_id: UUID,
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    return await discount_codes.deactivate_code(db, code_id, owner_creator_id=creator.id)


# ---------------------------------------------------------
# Withdrawal methods
# ---------------------------------------------------------
@router.get("/withdrawal-methods", response_model=list[WithdrawalMethodOut])
async def my_withdrawal_methods(
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    return await withdrawals.list_withdrawal_methods(db, creator.id)


@router.post("/withdrawal-methods", response_model=WithdrawalMethodOut, status_code=status.HTTP_201_CREATED)
async def add_withdrawal_method(
    payload: WithdrawalMethodCreate,
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    return await withdrawals.add_withdrawal_method(db, creator, **payload.model_dump())


@router.post("/withdrawal-methods/{method_id}/primary", response_model=WithdrawalMethodOut)
async def make_primary_method(
    method_id: UUID,
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    return await withdrawals.set_primary_method(db, creator.id, method_id)


# ---------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------
@router.get("/withdrawals", response_model=WithdrawalPageOut)
async def my_withdrawals(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    rows, total = await withdrawals.list_creator_withdrawals(db, creator.id, limit=limit, offset=offset)
    return WithdrawalPageOut(items=rows, limit=limit, offset=offset, total=total)


@router.post("/withdrawals", response_model=WithdrawalOut, status_code=status.HTTP_201_CREATED)
async def request_withdrawal(
    payload: WithdrawalCreate,
    db: AsyncSession = Depends(get_db),
    creator: CreatorProfile = Depends(require_creator),
):
    return await withdrawals.request_withdrawal(
        db,
        creator,
        amount=payload.amount,
        withdrawal_method_id=payload.withdrawal_method_id,
    )
