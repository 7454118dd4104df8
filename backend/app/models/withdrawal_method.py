from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class WithdrawalMethod(Base):
    __tablename__ = "withdrawal_methods"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("creator_profiles.id"), nullable=False, index=True
    )

    # bank | crypto
    method_type: Mapped[str] = mapped_column(String(16), nullable=False)

    # bank
    bank_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    branch_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    account_holder_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # crypto
    crypto_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    wallet_address: Mapped[str | None] = mapped_column(String(128), nullable=True)
    network: Mapped[str | None] = mapped_column(String(32), nullable=True)

    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
