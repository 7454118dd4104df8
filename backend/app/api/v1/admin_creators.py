# app/api/v1/admin_creators.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.roles import require_platform_admin
from app.core import commission, creators, discount_codes
from app.core.ledger import reconcile_creator
from app.db.session import get_db
from app.models.user import User
from app.schemas.commission import (
    FieldCheckOut,
    ReconciliationOut,
    RevenueStatsOut,
    TierEvaluationOut,
    TierListOut,
    TierUpsert,
)
from app.schemas.creator import (
    AdminDiscountCodeCreate,
    CMOCreate,
    CMOOut,
    CreatorCreate,
    CreatorListOut,
    CreatorOut,
    CreatorSummaryOut,
    CreatorUpdate,
    DiscountCodeOut,
)

router = APIRouter(prefix="/admin", tags=["admin-creators"])


# ---------------------------------------------------------
# Creators
# ---------------------------------------------------------
@router.post("/creators", response_model=CreatorOut, status_code=status.HTTP_201_CREATED)
async def onboard_creator(
    payload: CreatorCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    try:
        payload.validate_choice()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return await creators.onboard_creator(
        db,
        user_id=payload.user_id,
        email=str(payload.email) if payload.email else None,
        full_name=payload.full_name,
        display_name=payload.display_name,
        cmo_id=payload.cmo_id,
    )


@router.get("/creators", response_model=CreatorListOut)
async def list_creators(
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    limit = max(1, min(limit, 200))
    offset = max(0, offset)
    rows, total = await creators.list_creators(db, limit=limit, offset=offset)
    return CreatorListOut(items=rows, total=total, limit=limit, offset=offset)


@router.patch("/creators/{creator_id}", response_model=CreatorOut)
async def update_creator(
    creator_id: UUID,
    payload: CreatorUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    return await creators.update_creator(db, creator_id, payload.model_dump(exclude_unset=True))


@router.post("/creators/{creator_id}/rotate-code", response_model=CreatorOut)
async def rotate_creator_code(
    creator_id: UUID,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    return await creators.rotate_referral_code(db, creator_id)


@router.get("/creators/{creator_id}/summary", response_model=CreatorSummaryOut)
async def creator_summary(
    creator_id: UUID,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    summary = await creators.get_creator_summary(db, creator_id)
    return CreatorSummaryOut.model_validate(summary, from_attributes=True)


@router.get("/creators/{creator_id}/reconcile", response_model=ReconciliationOut)
async def reconcile(
    creator_id: UUID,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    """Cached balances vs. what the ledger and attributions say they should be."""
    report = await reconcile_creator(db, creator_id)
    return ReconciliationOut(
        creator_id=report.creator_id,
        consistent=report.consistent,
        fields={
            name: FieldCheckOut(cached=str(check.cached), derived=str(check.derived), consistent=check.consistent)
            for name, check in report.fields.items()
        },
    )


@router.post(
    "/creators/{creator_id}/discount-codes",
    response_model=DiscountCodeOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_discount_code_for_creator(
    creator_id: UUID,
    payload: AdminDiscountCodeCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_platform_admin),
):
    return await discount_codes.create_code_for_creator(
        db,
        creator_id=creator_id,
        code=payload.code,
        discount_percent=payload.discount_percent,
        created_by_user_id=admin.id,
    )


@router.post("/discount-codes/{code_id}/deactivate", response_model=DiscountCodeOut)
async def deactivate_discount_code(
    code_id: UUID,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    return await discount_codes.deactivate_code(db, code_id)


# ---------------------------------------------------------
# Reporting
# ---------------------------------------------------------
@router.get("/revenue-stats", response_model=RevenueStatsOut)
async def revenue_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    stats = await creators.revenue_stats(db)
    return RevenueStatsOut.model_validate(stats, from_attributes=True)


# ---------------------------------------------------------
# CMOs
# ---------------------------------------------------------
@router.post("/cmos", response_model=CMOOut, status_code=status.HTTP_201_CREATED)
async def onboard_cmo(
    payload: CMOCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    try:
        payload.validate_choice()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return await creators.onboard_cmo(
        db,
        user_id=payload.user_id,
        email=str(payload.email) if payload.email else None,
        full_name=payload.full_name,
        display_name=payload.display_name,
        is_head_ops=payload.is_head_ops,
    )


# ---------------------------------------------------------
# Commission tiers
# ---------------------------------------------------------
@router.put("/tiers/{tier_level}", response_model=TierListOut)
async def upsert_tier(
    tier_level: int,
    payload: TierUpsert,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    rows = await commission.upsert_tier(
        db,
        tier_level=tier_level,
        tier_name=payload.tier_name,
        commission_rate=payload.commission_rate,
        monthly_user_threshold=payload.monthly_user_threshold,
    )
    return TierListOut(items=rows)


@router.delete("/tiers/{tier_level}", response_model=TierListOut)
async def delete_tier(
    tier_level: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    return TierListOut(items=await commission.delete_tier(db, tier_level))


@router.post("/tiers/evaluate", response_model=TierEvaluationOut)
async def evaluate_tiers(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    result = await commission.evaluate_creator_tiers(db)
    return TierEvaluationOut(**result.__dict__)
