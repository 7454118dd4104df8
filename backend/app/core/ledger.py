# app/core/ledger.py
"""
Creator balance ledger.

Every change to the cached money columns on creator_profiles goes through
this module as ONE conditional UPDATE (atomic increment, guarded where a
column could go negative) plus an append-only CreatorLedgerEntry, inside the
caller's transaction. Nothing here commits.

  credit   : available += x                              (payment attributed)
  reserve  : available -= x, reserved += x               (withdrawal created)
  release  : reserved  -= x, available += x              (withdrawal rejected)
  settle   : reserved  -= x, total_withdrawn += net      (withdrawal approved)

So at any point:
  available + reserved == credits - settled gross amounts
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.errors import LedgerInvariantError, NotFoundError, ValidationError
from app.models.creator_ledger_entry import (
    ENTRY_COMMISSION_CREDIT,
    ENTRY_WITHDRAWAL_RELEASE,
    ENTRY_WITHDRAWAL_RESERVE,
    ENTRY_WITHDRAWAL_SETTLE,
    CreatorLedgerEntry,
)
from app.models.creator_profile import CreatorProfile
from app.models.payment_attribution import PaymentAttribution
from app.models.withdrawal_request import WithdrawalRequest

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    """Decimal rounded to cents; accepts the floats some drivers return for NUMERIC aggregates."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _creator_update(creator_id: uuid.UUID, *guards):
    return (
        update(CreatorProfile)
        .where(CreatorProfile.id == creator_id, *guards)
        .execution_options(synchronize_session=False)
    )


async def _append(
    db: AsyncSession,
    *,
    creator_id: uuid.UUID,
    entry_type: str,
    amount: Decimal,
    reference_id: uuid.UUID | None,
    now: datetime,
    metadata: Optional[dict[str, Any]] = None,
) -> CreatorLedgerEntry:
    entry = CreatorLedgerEntry(
        creator_id=creator_id,
        entry_type=entry_type,
        amount=amount,
        reference_id=reference_id,
        entry_metadata=metadata or {},
        created_at=now,
    )
    db.add(entry)
    await db.flush()
    return entry


async def credit_commission(
    db: AsyncSession,
    *,
    creator_id: uuid.UUID,
    amount: Decimal,
    attribution_id: uuid.UUID,
    now: Optional[datetime] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> CreatorLedgerEntry:
    """Credit a commission and count the paid user, in one statement."""
    amount = money(amount)
    if amount < ZERO:
        raise LedgerInvariantError("Commission credit cannot be negative", amount=amount)

    res = await db.execute(
        _creator_update(creator_id).values(
            available_balance=CreatorProfile.available_balance + amount,
            lifetime_paid_users=CreatorProfile.lifetime_paid_users + 1,
        )
    )
    if res.rowcount != 1:
        raise LedgerInvariantError("Creator row missing for commission credit", creator_id=creator_id)

    entry = await _append(
        db,
        creator_id=creator_id,
        entry_type=ENTRY_COMMISSION_CREDIT,
        amount=amount,
        reference_id=attribution_id,
        now=now or utcnow(),
        metadata=metadata,
    )
    logger.info(
        "Commission credited",
        extra={"creator_id": str(creator_id), "amount": str(amount), "attribution_id": str(attribution_id)},
    )
    return entry


async def reserve_withdrawal(
    db: AsyncSession,
    *,
    creator_id: uuid.UUID,
    amount: Decimal,
    withdrawal_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> CreatorLedgerEntry:
    """
    Move `amount` from available to reserved. Raises ValidationError when the
    available balance does not cover it; the guard sits in the UPDATE itself
    so two concurrent requests cannot both pass.
    """
    amount = money(amount)
    if amount <= ZERO:
        raise ValidationError("Withdrawal amount must be positive.", code="amount_not_positive")

    res = await db.execute(
        _creator_update(creator_id, CreatorProfile.available_balance >= amount).values(
            available_balance=CreatorProfile.available_balance - amount,
            reserved_balance=CreatorProfile.reserved_balance + amount,
        )
    )
    if res.rowcount != 1:
        logger.warning(
            "Withdrawal reservation refused: insufficient balance",
            extra={"creator_id": str(creator_id), "amount": str(amount)},
        )
        raise ValidationError(
            "Insufficient available balance.",
            code="insufficient_balance",
            amount=amount,
        )

    entry = await _append(
        db,
        creator_id=creator_id,
        entry_type=ENTRY_WITHDRAWAL_RESERVE,
        amount=amount,
        reference_id=withdrawal_id,
        now=now or utcnow(),
    )
    logger.info(
        "Withdrawal amount reserved",
        extra={"creator_id": str(creator_id), "amount": str(amount), "withdrawal_id": str(withdrawal_id)},
    )
    return entry


async def release_reservation(
    db: AsyncSession,
    *,
    creator_id: uuid.UUID,
    amount: Decimal,
    withdrawal_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> CreatorLedgerEntry:
    amount = money(amount)
    res = await db.execute(
        _creator_update(creator_id, CreatorProfile.reserved_balance >= amount).values(
            reserved_balance=CreatorProfile.reserved_balance - amount,
            available_balance=CreatorProfile.available_balance + amount,
        )
    )
    if res.rowcount != 1:
        raise LedgerInvariantError(
            "Reserved balance does not cover the released amount",
            creator_id=creator_id,
            withdrawal_id=withdrawal_id,
            amount=amount,
        )

    entry = await _append(
        db,
        creator_id=creator_id,
        entry_type=ENTRY_WITHDRAWAL_RELEASE,
        amount=amount,
        reference_id=withdrawal_id,
        now=now or utcnow(),
    )
    logger.info(
        "Withdrawal reservation released",
        extra={"creator_id": str(creator_id), "amount": str(amount), "withdrawal_id": str(withdrawal_id)},
    )
    return entry


async def settle_withdrawal(
    db: AsyncSession,
    *,
    creator_id: uuid.UUID,
    amount: Decimal,
    fee_amount: Decimal,
    net_amount: Decimal,
    withdrawal_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> CreatorLedgerEntry:
    """Consume the reservation: the gross leaves reserved, the net lands in total_withdrawn."""
    amount, fee_amount, net_amount = money(amount), money(fee_amount), money(net_amount)
    if fee_amount < ZERO or net_amount < ZERO or fee_amount + net_amount != amount:
        raise LedgerInvariantError(
            "Fee split does not add up to the gross amount",
            withdrawal_id=withdrawal_id,
            amount=amount,
            fee_amount=fee_amount,
            net_amount=net_amount,
        )

    res = await db.execute(
        _creator_update(creator_id, CreatorProfile.reserved_balance >= amount).values(
            reserved_balance=CreatorProfile.reserved_balance - amount,
            total_withdrawn=CreatorProfile.total_withdrawn + net_amount,
        )
    )
    if res.rowcount != 1:
        raise LedgerInvariantError(
            "Reserved balance does not cover the settled amount",
            creator_id=creator_id,
            withdrawal_id=withdrawal_id,
            amount=amount,
        )

    entry = await _append(
        db,
        creator_id=creator_id,
        entry_type=ENTRY_WITHDRAWAL_SETTLE,
        amount=amount,
        reference_id=withdrawal_id,
        now=now or utcnow(),
        metadata={"fee_amount": str(fee_amount), "net_amount": str(net_amount)},
    )
    logger.info(
        "Withdrawal settled",
        extra={
            "creator_id": str(creator_id),
            "amount": str(amount),
            "net_amount": str(net_amount),
            "withdrawal_id": str(withdrawal_id),
        },
    )
    return entry


# ---------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------
@dataclass
class FieldCheck:
    cached: Any
    derived: Any

    @property
    def consistent(self) -> bool:
        return self.cached == self.derived


@dataclass
class ReconciliationReport:
    creator_id: uuid.UUID
    fields: dict[str, FieldCheck] = field(default_factory=dict)

    @property
    def consistent(self) -> bool:
        return all(f.consistent for f in self.fields.values())


async def _sum_entries(db: AsyncSession, creator_id: uuid.UUID, entry_type: str) -> Decimal:
    stmt = select(func.coalesce(func.sum(CreatorLedgerEntry.amount), 0)).where(
        CreatorLedgerEntry.creator_id == creator_id,
        CreatorLedgerEntry.entry_type == entry_type,
    )
    return money((await db.execute(stmt)).scalar_one())


async def reconcile_creator(db: AsyncSession, creator_id: uuid.UUID) -> ReconciliationReport:
    """Recompute the cached columns from the ledger and attributions. Read-only."""
    creator = await db.get(CreatorProfile, creator_id, populate_existing=True)
    if creator is None:
        raise NotFoundError("Creator not found", creator_id=creator_id)

    credits = await _sum_entries(db, creator_id, ENTRY_COMMISSION_CREDIT)
    reserves = await _sum_entries(db, creator_id, ENTRY_WITHDRAWAL_RESERVE)
    releases = await _sum_entries(db, creator_id, ENTRY_WITHDRAWAL_RELEASE)
    settles = await _sum_entries(db, creator_id, ENTRY_WITHDRAWAL_SETTLE)

    withdrawn_stmt = select(func.coalesce(func.sum(WithdrawalRequest.net_amount), 0)).where(
        WithdrawalRequest.creator_id == creator_id,
        WithdrawalRequest.status.in_(("approved", "paid")),
    )
    withdrawn = money((await db.execute(withdrawn_stmt)).scalar_one())

    lifetime_stmt = select(func.count(PaymentAttribution.id)).where(PaymentAttribution.creator_id == creator_id)
    lifetime = int((await db.execute(lifetime_stmt)).scalar_one() or 0)

    report = ReconciliationReport(
        creator_id=creator_id,
        fields={
            "available_balance": FieldCheck(money(creator.available_balance), credits - reserves + releases),
            "reserved_balance": FieldCheck(money(creator.reserved_balance), reserves - releases - settles),
            "total_withdrawn": FieldCheck(money(creator.total_withdrawn), withdrawn),
            "lifetime_paid_users": FieldCheck(int(creator.lifetime_paid_users), lifetime),
        },
    )

    if not report.consistent:
        logger.error(
            "Creator ledger out of sync",
            extra={
                "creator_id": str(creator_id),
                "fields": {k: [str(v.cached), str(v.derived)] for k, v in report.fields.items() if not v.consistent},
            },
        )
    return report
