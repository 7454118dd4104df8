# app/models/payment_attribution.py
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class PaymentAttribution(Base):
    """
    Canonical, immutable record of a completed payment and who earned on it.

    One row per payment order (order_id is the idempotency key). Rows are
    never updated or deleted: monthly and lifetime paid-user aggregates are
    derived by counting them.

    The commission rate and tier in effect at attribution time are stored so
    later tier edits never change what a past payment earned.
    """

    __tablename__ = "payment_attributions"
    __table_args__ = (
        Index("ix_payment_attr_creator_created", "creator_id", "created_at"),
        Index("ix_payment_attr_month", "payment_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    order_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    # NULL => no referral, 100% of revenue stays with the platform
    creator_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("creator_profiles.id"), nullable=True
    )

    original_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_applied: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    final_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # rate snapshot (percent) and the tier it came from
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    tier_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rate_protected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    creator_commission_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    discount_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    discount_code_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("discount_codes.id"), nullable=True
    )

    # what was bought (content access tier); informational only
    access_tier: Mapped[str | None] = mapped_column(String(40), nullable=True)

    payment_month: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
