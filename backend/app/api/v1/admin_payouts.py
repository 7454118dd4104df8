# app/api/v1/admin_payouts.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.roles import require_platform_admin
from app.core import headops, withdrawals
from app.core.platform_settings import get_payout_settings, update_payout_settings
from app.db.session import get_db
from app.models.user import User
from app.schemas.headops import HeadOpsDecision, HeadOpsRequestOut, HeadOpsRequestPageOut
from app.schemas.withdrawal import (
    PayoutSettingsOut,
    PayoutSettingsUpdate,
    ReceiptAttach,
    WithdrawalDecision,
    WithdrawalOut,
    WithdrawalPageOut,
)

router = APIRouter(prefix="/admin", tags=["admin-payouts"])


# ---------------------------------------------------------
# Platform settings
# ---------------------------------------------------------
@router.get("/settings/payouts", response_model=PayoutSettingsOut)
async def read_payout_settings(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    s = await get_payout_settings(db)
    return PayoutSettingsOut(minimum_payout_lkr=s.minimum_payout_lkr, withdrawal_fee_percent=s.withdrawal_fee_percent)


@router.put("/settings/payouts", response_model=PayoutSettingsOut)
async def write_payout_settings(
    payload: PayoutSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_platform_admin),
):
    s = await update_payout_settings(
        db,
        updated_by=admin.id,
        minimum_payout_lkr=payload.minimum_payout_lkr,
        withdrawal_fee_percent=payload.withdrawal_fee_percent,
    )
    return PayoutSettingsOut(minimum_payout_lkr=s.minimum_payout_lkr, withdrawal_fee_percent=s.withdrawal_fee_percent)


# ---------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------
@router.get("/withdrawals", response_model=WithdrawalPageOut)
async def list_withdrawals(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    rows, total = await withdrawals.list_withdrawals(db, status=status, limit=limit, offset=offset)
    return WithdrawalPageOut(items=rows, limit=limit, offset=offset, total=total)


@router.post("/withdrawals/{request_id}/decision", response_model=WithdrawalOut)
async def decide_withdrawal(
    request_id: UUID,
    payload: WithdrawalDecision,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_platform_admin),
):
    """
    approve   : pending -> approved (settles the reserved amount)
    reject    : pending -> rejected (rejection_reason required; releases the reservation)
    mark_paid : approved -> paid
    """
    if payload.decision == "approve":
        return await withdrawals.approve_withdrawal(
            db, request_id, actor_id=admin.id, admin_notes=payload.admin_notes
        )
    if payload.decision == "reject":
        return await withdrawals.reject_withdrawal(
            db,
            request_id,
            actor_id=admin.id,
            rejection_reason=payload.rejection_reason,
            admin_notes=payload.admin_notes,
        )
    return await withdrawals.mark_withdrawal_paid(
        db,
        request_id,
        actor_id=admin.id,
        receipt_url=payload.receipt_url,
        payment_notes=payload.payment_notes,
    )


@router.post("/withdrawals/{request_id}/receipt", response_model=WithdrawalOut)
async def attach_receipt(
    request_id: UUID,
    payload: ReceiptAttach,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_platform_admin),
):
    return await withdrawals.attach_receipt(db, request_id, actor_id=admin.id, receipt_url=payload.receipt_url)


# ---------------------------------------------------------
# Head-of-Ops requests
# ---------------------------------------------------------
@router.get("/head-ops-requests", response_model=HeadOpsRequestPageOut)
async def list_head_ops_requests(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_platform_admin),
):
    rows, total = await headops.list_requests(db, status=status, limit=limit, offset=offset)
    return HeadOpsRequestPageOut(items=rows, limit=limit, offset=offset, total=total)


@router.post("/head-ops-requests/{request_id}/decision", response_model=HeadOpsRequestOut)
async def decide_head_ops_request(
    request_id: UUID,
    payload: HeadOpsDecision,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_platform_admin),
):
    if payload.decision == "approve":
        return await headops.approve_request(db, request_id, actor_id=admin.id, admin_notes=payload.admin_notes)
    return await headops.reject_request(db, request_id, actor_id=admin.id, admin_notes=payload.admin_notes)
