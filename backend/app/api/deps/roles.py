from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.auth import get_current_user
from app.core.config import settings
from app.db.session import get_db
from app.models.cmo_profile import CMOProfile
from app.models.creator_profile import CreatorProfile
from app.models.platform_membership import PlatformMembership
from app.models.user import User

PLATFORM_ADMIN_ROLES = {"SUPER_ADMIN", "ADMIN"}


async def require_platform_admin(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> User:
    m = (
        await db.execute(select(PlatformMembership).where(PlatformMembership.user_id == user.id))
    ).scalar_one_or_none()
    if not m or not m.is_active or (m.role or "").upper() not in PLATFORM_ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "admin_required", "message": "Insufficient role: SUPER_ADMIN or ADMIN required"},
        )
    return user


async def require_creator(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> CreatorProfile:
    creator = (
        await db.execute(select(CreatorProfile).where(CreatorProfile.user_id == user.id))
    ).scalar_one_or_none()
    if creator is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a creator")
    if creator.is_active is not True:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Creator account is inactive")
    return creator


async def require_cmo(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> CMOProfile:
    cmo = (await db.execute(select(CMOProfile).where(CMOProfile.user_id == user.id))).scalar_one_or_none()
    if cmo is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a CMO")
    if cmo.is_active is not True:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CMO account is inactive")
    return cmo


async def require_head_ops(cmo: CMOProfile = Depends(require_cmo)) -> CMOProfile:
    if cmo.is_head_ops is not True:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Head of Ops only")
    return cmo


async def require_events_secret(
    x_events_secret: Optional[str] = Header(default=None, alias="X-Events-Secret"),
) -> None:
    """Inbound checkout events authenticate with a shared secret, not a user token."""
    if not x_events_secret or not secrets.compare_digest(x_events_secret, settings.PAYMENT_EVENTS_SECRET):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid events secret")
