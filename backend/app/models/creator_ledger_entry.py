# app/models/creator_ledger_entry.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

ENTRY_COMMISSION_CREDIT = "COMMISSION_CREDIT"
ENTRY_WITHDRAWAL_RESERVE = "WITHDRAWAL_RESERVE"
ENTRY_WITHDRAWAL_RELEASE = "WITHDRAWAL_RELEASE"
ENTRY_WITHDRAWAL_SETTLE = "WITHDRAWAL_SETTLE"


class CreatorLedgerEntry(Base):
    """
    Append-only money ledger for a creator.

    Written in the same transaction as every change to the cached balance
    columns on creator_profiles, so the cache can always be re-derived:

      available = credits - reserves + releases
      reserved  = reserves - releases - settles
      withdrawn = sum(net_amount of settles)

    NOTE:
      - The Python attribute cannot be named "metadata" because SQLAlchemy Declarative uses it.
      - We map attribute `entry_metadata` -> DB column name "metadata".
    """

    __tablename__ = "creator_ledger_entries"
    __table_args__ = (
        Index("ix_creator_ledger_creator_created", "creator_id", "created_at"),
        Index("ix_creator_ledger_type", "entry_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("creator_profiles.id"), nullable=False, index=True
    )

    # COMMISSION_CREDIT | WITHDRAWAL_RESERVE | WITHDRAWAL_RELEASE | WITHDRAWAL_SETTLE
    entry_type: Mapped[str] = mapped_column(String(40), nullable=False)

    # always positive; direction comes from entry_type
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # payment_attributions.id or withdrawal_requests.id
    reference_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)

    entry_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",  # keep DB column name
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
