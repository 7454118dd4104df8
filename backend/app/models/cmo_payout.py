from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class CMOPayout(Base):
    """Monthly roll-up of the payments attributed to a CMO's creators."""

    __tablename__ = "cmo_payouts"
    __table_args__ = (
        UniqueConstraint("cmo_id", "payout_month", name="uq_cmo_payouts_cmo_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    cmo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("cmo_profiles.id"), nullable=False, index=True
    )
    payout_month: Mapped[date] = mapped_column(Date, nullable=False)

    total_paid_users: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # pending | paid
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
