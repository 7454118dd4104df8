# app/api/v1/cmo.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.roles import require_cmo, require_head_ops
from app.core import headops
from app.core.creators import list_cmo_payouts
from app.db.session import get_db
from app.models.cmo_profile import CMOProfile
from app.schemas.creator import CMOPayoutOut
from app.schemas.headops import HeadOpsRequestCreate, HeadOpsRequestOut, HeadOpsRequestPageOut

router = APIRouter(prefix="/cmo", tags=["cmo"])


@router.get("/payouts", response_model=list[CMOPayoutOut])
async def my_payouts(
    db: AsyncSession = Depends(get_db),
    cmo: CMOProfile = Depends(require_cmo),
):
    return await list_cmo_payouts(db, cmo.id)


@router.post("/head-ops-requests", response_model=HeadOpsRequestOut, status_code=status.HTTP_201_CREATED)
async def file_request(
    payload: HeadOpsRequestCreate,
    db: AsyncSession = Depends(get_db),
    cmo: CMOProfile = Depends(require_head_ops),
):
    return await headops.create_request(
        db,
        cmo,
        request_type=payload.request_type,
        target_id=payload.target_id,
        details=payload.details,
    )


@router.get("/head-ops-requests", response_model=HeadOpsRequestPageOut)
async def my_requests(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    cmo: CMOProfile = Depends(require_head_ops),
):
    rows, total = await headops.list_requests(
        db, requester_id=cmo.user_id, status=status, limit=limit, offset=offset
    )
    return HeadOpsRequestPageOut(items=rows, limit=limit, offset=offset, total=total)
