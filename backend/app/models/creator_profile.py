# app/models/creator_profile.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class CreatorProfile(Base):
    """
    Affiliate earning commission on payments from the users they refer.

    Ledger fields (available_balance, reserved_balance, total_withdrawn,
    lifetime_paid_users) are cached aggregates of creator_ledger_entries and
    payment_attributions. They are only ever changed by app.core.ledger with
    single conditional UPDATE statements.

    Never deleted; deactivate with is_active.
    """

    __tablename__ = "creator_profiles"
    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="ck_creator_available_nonneg"),
        CheckConstraint("reserved_balance >= 0", name="ck_creator_reserved_nonneg"),
        CheckConstraint("total_withdrawn >= 0", name="ck_creator_withdrawn_nonneg"),
        CheckConstraint("lifetime_paid_users >= 0", name="ck_creator_lifetime_nonneg"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True, index=True
    )
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    referral_code: Mapped[str] = mapped_column(String(6), nullable=False, unique=True, index=True)

    # weak reference: CMOs can be deactivated without touching their creators
    cmo_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("cmo_profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    lifetime_paid_users: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    available_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0.00"
    )
    reserved_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0.00"
    )
    total_withdrawn: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default="0.00"
    )

    current_tier_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    tier_protection_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
