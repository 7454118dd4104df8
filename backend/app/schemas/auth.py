# backend/app/schemas/auth.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, EmailStr


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    is_active: bool
    full_name: Optional[str] = None

    # resolved from platform_memberships / creator_profiles / cmo_profiles
    platform_role: Optional[str] = None
    creator_id: Optional[str] = None
    cmo_id: Optional[str] = None
    is_head_ops: bool = False
