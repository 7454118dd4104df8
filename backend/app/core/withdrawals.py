# app/core/withdrawals.py
"""
Creator withdrawals.

  pending -> approved -> paid
  pending -> rejected

The gross amount is reserved out of available_balance when the request is
created, so pending requests can never jointly exceed the balance. Rejection
releases the reservation; approval settles it (net amount lands in
total_withdrawn). mark_paid and attach_receipt touch no money.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.errors import NotFoundError, ValidationError
from app.core.ledger import CENT, ZERO, money, release_reservation, reserve_withdrawal, settle_withdrawal
from app.core.moderation import ModeratedAction, Transition
from app.core.platform_settings import get_payout_settings
from app.models.creator_profile import CreatorProfile
from app.models.withdrawal_method import WithdrawalMethod
from app.models.withdrawal_request import WithdrawalRequest

METHOD_BANK = "bank"
METHOD_CRYPTO = "crypto"

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_PAID = "paid"
STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_PAID)


def compute_fee(amount: Decimal, fee_percent: Decimal) -> tuple[Decimal, Decimal]:
    """(fee_amount, net_amount); net is derived so the two always sum to amount."""
    amount = money(amount)
    fee = (amount * Decimal(fee_percent) / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
    return fee, amount - fee


# ---------------------------------------------------------
# Withdrawal methods
# ---------------------------------------------------------
def _require(values: dict, *names: str) -> None:
    missing = [n for n in names if not (values.get(n) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", code="method_fields_missing")


async def add_withdrawal_method(
    db: AsyncSession,
    creator: CreatorProfile,
    *,
    method_type: str,
    bank_name: Optional[str] = None,
    branch_name: Optional[str] = None,
    account_number: Optional[str] = None,
    account_holder_name: Optional[str] = None,
    crypto_type: Optional[str] = None,
    wallet_address: Optional[str] = None,
    network: Optional[str] = None,
) -> WithdrawalMethod:
    method_type = (method_type or "").strip().lower()
    values = {
        "bank_name": bank_name,
        "account_number": account_number,
        "account_holder_name": account_holder_name,
        "wallet_address": wallet_address,
    }
    if method_type == METHOD_BANK:
        _require(values, "bank_name", "account_number", "account_holder_name")
    elif method_type == METHOD_CRYPTO:
        _require(values, "wallet_address")
    else:
        raise ValidationError("method_type must be 'bank' or 'crypto'.", code="method_type_invalid")

    existing = await db.scalar(
        select(func.count(WithdrawalMethod.id)).where(WithdrawalMethod.creator_id == creator.id)
    )

    method = WithdrawalMethod(
        creator_id=creator.id,
        method_type=method_type,
        is_primary=not existing,
    )
    if method_type == METHOD_BANK:
        method.bank_name = bank_name.strip()
        method.branch_name = branch_name.strip() if branch_name else None
        method.account_number = account_number.strip()
        method.account_holder_name = account_holder_name.strip()
    else:
        method.crypto_type = crypto_type.strip() if crypto_type else None
        method.wallet_address = wallet_address.strip()
        method.network = network.strip() if network else None

    db.add(method)
    await db.commit()
    await db.refresh(method)
    logger.info(
        "Withdrawal method added",
        extra={"creator_id": str(creator.id), "method_id": str(method.id), "method_type": method_type},
    )
    return method


async def list_withdrawal_methods(db: AsyncSession, creator_id: uuid.UUID) -> list[WithdrawalMethod]:
    stmt = (
        select(WithdrawalMethod)
        .where(WithdrawalMethod.creator_id == creator_id)
        .order_by(WithdrawalMethod.is_primary.desc(), WithdrawalMethod.created_at.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def set_primary_method(db: AsyncSession, creator_id: uuid.UUID, method_id: uuid.UUID) -> WithdrawalMethod:
    method = await db.get(WithdrawalMethod, method_id)
    if method is None or method.creator_id != creator_id:
        raise NotFoundError("Withdrawal method not found", method_id=method_id)

    await db.execute(
        update(WithdrawalMethod)
        .where(WithdrawalMethod.creator_id == creator_id, WithdrawalMethod.id != method_id)
        .values(is_primary=False)
        .execution_options(synchronize_session=False)
    )
    method.is_primary = True
    await db.commit()
    await db.refresh(method)
    return method


async def _pick_method(db: AsyncSession, creator_id: uuid.UUID, method_id: Optional[uuid.UUID]) -> WithdrawalMethod:
    if method_id is not None:
        method = await db.get(WithdrawalMethod, method_id)
        if method is None or method.creator_id != creator_id:
            raise ValidationError("Withdrawal method not found.", code="withdrawal_method_invalid")
        return method

    methods = await list_withdrawal_methods(db, creator_id)
    if not methods:
        raise ValidationError("Add a withdrawal method first.", code="withdrawal_method_missing")
    return methods[0]


# ---------------------------------------------------------
# Requests
# ---------------------------------------------------------
async def request_withdrawal(
    db: AsyncSession,
    creator: CreatorProfile,
    *,
    amount: Decimal,
    withdrawal_method_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> WithdrawalRequest:
    amount = money(amount)
    if amount <= ZERO:
        raise ValidationError("Withdrawal amount must be positive.", code="amount_not_positive")
    if not creator.is_active:
        raise ValidationError("Creator is not active.", code="creator_inactive")

    payout = await get_payout_settings(db)
    if amount < payout.minimum_payout_lkr:
        raise ValidationError(
            "Withdrawal amount is below the minimum payout.",
            code="below_minimum_payout",
            minimum_payout_lkr=payout.minimum_payout_lkr,
        )

    method = await _pick_method(db, creator.id, withdrawal_method_id)
    fee_amount, net_amount = compute_fee(amount, payout.withdrawal_fee_percent)
    now = now or utcnow()

    req = WithdrawalRequest(
        id=uuid.uuid4(),
        creator_id=creator.id,
        withdrawal_method_id=method.id,
        amount=amount,
        fee_percent=payout.withdrawal_fee_percent,
        fee_amount=fee_amount,
        net_amount=net_amount,
        status=STATUS_PENDING,
        created_at=now,
    )
    try:
        db.add(req)
        await db.flush()
        await reserve_withdrawal(db, creator_id=creator.id, amount=amount, withdrawal_id=req.id, now=now)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(req)
    logger.info(
        "Withdrawal requested",
        extra={
            "creator_id": str(creator.id),
            "withdrawal_id": str(req.id),
            "amount": str(amount),
            "fee_amount": str(fee_amount),
            "net_amount": str(net_amount),
        },
    )
    return req


async def _settle(db: AsyncSession, req: WithdrawalRequest, now: datetime) -> None:
    await settle_withdrawal(
        db,
        creator_id=req.creator_id,
        amount=req.amount,
        fee_amount=req.fee_amount,
        net_amount=req.net_amount,
        withdrawal_id=req.id,
        now=now,
    )


async def _release(db: AsyncSession, req: WithdrawalRequest, now: datetime) -> None:
    await release_reservation(db, creator_id=req.creator_id, amount=req.amount, withdrawal_id=req.id, now=now)


WITHDRAWAL_WORKFLOW = ModeratedAction(
    WithdrawalRequest,
    [
        Transition("approve", STATUS_PENDING, STATUS_APPROVED, record=("admin_notes",), effect=_settle),
        Transition(
            "reject",
            STATUS_PENDING,
            STATUS_REJECTED,
            required=("rejection_reason",),
            record=("rejection_reason", "admin_notes"),
            effect=_release,
        ),
        Transition(
            "mark_paid",
            STATUS_APPROVED,
            STATUS_PAID,
            record=("receipt_url", "payment_notes"),
            stamp="paid_at",
            actor_field="paid_by",
        ),
        Transition(
            "attach_receipt",
            STATUS_APPROVED,
            STATUS_APPROVED,
            required=("receipt_url",),
            record=("receipt_url",),
            stamp="receipt_attached_at",
            actor_field="receipt_attached_by",
        ),
    ],
    label="Withdrawal request",
)


async def approve_withdrawal(
    db: AsyncSession,
    request_id: uuid.UUID,
    *,
    actor_id: uuid.UUID,
    admin_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WithdrawalRequest:
    return await WITHDRAWAL_WORKFLOW.apply(
        db, request_id, "approve", actor_id=actor_id, values={"admin_notes": admin_notes}, now=now
    )


async def reject_withdrawal(
    db: AsyncSession,
    request_id: uuid.UUID,
    *,
    actor_id: uuid.UUID,
    rejection_reason: Optional[str],
    admin_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WithdrawalRequest:
    return await WITHDRAWAL_WORKFLOW.apply(
        db,
        request_id,
        "reject",
        actor_id=actor_id,
        values={"rejection_reason": rejection_reason, "admin_notes": admin_notes},
        now=now,
    )


async def mark_withdrawal_paid(
    db: AsyncSession,
    request_id: uuid.UUID,
    *,
    actor_id: uuid.UUID,
    receipt_url: Optional[str] = None,
    payment_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WithdrawalRequest:
    return await WITHDRAWAL_WORKFLOW.apply(
        db,
        request_id,
        "mark_paid",
        actor_id=actor_id,
        values={"receipt_url": receipt_url, "payment_notes": payment_notes},
        now=now,
    )


async def attach_receipt(
    db: AsyncSession,
    request_id: uuid.UUID,
    *,
    actor_id: uuid.UUID,
    receipt_url: Optional[str],
) -> WithdrawalRequest:
    return await WITHDRAWAL_WORKFLOW.apply(
        db, request_id, "attach_receipt", actor_id=actor_id, values={"receipt_url": receipt_url}
    )


async def list_creator_withdrawals(
    db: AsyncSession,
    creator_id: uuid.UUID,
    *,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[WithdrawalRequest], int]:
    base = select(WithdrawalRequest).where(WithdrawalRequest.creator_id == creator_id)
    total = await db.scalar(select(func.count()).select_from(base.subquery()))
    rows = (
        await db.execute(base.order_by(WithdrawalRequest.created_at.desc()).limit(limit).offset(offset))
    ).scalars().all()
    return list(rows), int(total or 0)


async def list_withdrawals(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[WithdrawalRequest], int]:
    base = select(WithdrawalRequest)
    if status is not None:
        if status not in STATUSES:
            raise ValidationError(f"Unknown status {status!r}.", code="status_invalid")
        base = base.where(WithdrawalRequest.status == status)
    total = await db.scalar(select(func.count()).select_from(base.subquery()))
    rows = (
        await db.execute(base.order_by(WithdrawalRequest.created_at.desc()).limit(limit).offset(offset))
    ).scalars().all()
    return list(rows), int(total or 0)
