from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class CMOProfile(Base):
    __tablename__ = "cmo_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True, index=True
    )
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(6), nullable=True, unique=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Head-of-Ops is a CMO allowed to file personnel requests
    is_head_ops: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
