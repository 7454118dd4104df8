# backend/app/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import bearer_scheme, decode_access_token
from app.db.session import get_db
from app.models.cmo_profile import CMOProfile
from app.models.creator_profile import CreatorProfile
from app.models.platform_membership import PlatformMembership
from app.models.user import User
from app.schemas.auth import MeResponse

router = APIRouter(prefix="/auth", tags=["auth"])


async def get_current_user(
    credentials=Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency for protected endpoints. Tokens are issued by the auth
    service; `sub` is the users.id.
    """
    user = await db.get(User, decode_access_token(credentials.credentials))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not getattr(user, "is_active", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive")

    return user


@router.get("/me", response_model=MeResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MeResponse:
    """
    Returns current user identity + which program roles it holds.
    """
    membership = (
        await db.execute(select(PlatformMembership).where(PlatformMembership.user_id == user.id))
    ).scalar_one_or_none()
    creator = (
        await db.execute(select(CreatorProfile).where(CreatorProfile.user_id == user.id))
    ).scalar_one_or_none()
    cmo = (await db.execute(select(CMOProfile).where(CMOProfile.user_id == user.id))).scalar_one_or_none()

    return MeResponse(
        id=str(user.id),
        email=user.email,
        is_active=getattr(user, "is_active", True),
        full_name=user.full_name,
        platform_role=membership.role if membership and membership.is_active else None,
        creator_id=str(creator.id) if creator else None,
        cmo_id=str(cmo.id) if cmo else None,
        is_head_ops=bool(cmo and cmo.is_active and cmo.is_head_ops),
    )
