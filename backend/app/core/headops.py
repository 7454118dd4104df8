# app/core/headops.py
"""Head-of-Ops personnel requests, reviewed by platform admins."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.errors import NotFoundError, ValidationError
from app.core.moderation import ModeratedAction, Transition
from app.models.cmo_profile import CMOProfile
from app.models.creator_profile import CreatorProfile
from app.models.head_ops_request import HeadOpsRequest

TARGET_CREATOR = "creator"
TARGET_CMO = "cmo"

# request_type -> target_type (None: no target, no side effect)
REQUEST_TYPES: dict[str, Optional[str]] = {
    "remove_creator": TARGET_CREATOR,
    "suspend_creator": TARGET_CREATOR,
    "remove_cmo": TARGET_CMO,
    "demote_cmo": TARGET_CMO,
    "general": None,
}

STATUSES = ("pending", "approved", "rejected")

_TARGET_MODELS = {TARGET_CREATOR: CreatorProfile, TARGET_CMO: CMOProfile}


async def create_request(
    db: AsyncSession,
    requester: CMOProfile,
    *,
    request_type: str,
    target_id: Optional[uuid.UUID] = None,
    details: Optional[dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> HeadOpsRequest:
    if not (requester.is_head_ops and requester.is_active):
        raise ValidationError("Only an active Head of Ops can file requests.", code="not_head_ops")
    if request_type not in REQUEST_TYPES:
        raise ValidationError(
            f"Unknown request_type {request_type!r}.",
            code="request_type_invalid",
            allowed=", ".join(REQUEST_TYPES),
        )

    target_type = REQUEST_TYPES[request_type]
    if target_type is not None:
        if target_id is None:
            raise ValidationError("target_id is required for this request type.", code="target_id_required")
        if await db.get(_TARGET_MODELS[target_type], target_id) is None:
            raise NotFoundError(f"Target {target_type} not found", target_id=target_id)
    else:
        target_id = None

    req = HeadOpsRequest(
        requester_id=requester.user_id,
        request_type=request_type,
        target_id=target_id,
        target_type=target_type,
        details=details or {},
        status="pending",
        created_at=now or utcnow(),
    )
    db.add(req)
    await db.commit()
    await db.refresh(req)
    logger.info(
        "Head-of-Ops request filed",
        extra={"request_id": str(req.id), "request_type": request_type, "target_id": str(target_id)},
    )
    return req


async def _deactivate_target(db: AsyncSession, req: HeadOpsRequest, now: datetime) -> None:
    model = _TARGET_MODELS.get(req.target_type or "")
    if model is None or req.target_id is None:
        return

    res = await db.execute(
        update(model)
        .where(model.id == req.target_id)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise NotFoundError(f"Target {req.target_type} not found", target_id=req.target_id)

    logger.warning(
        "Deactivated by Head-of-Ops request",
        extra={"target_type": req.target_type, "target_id": str(req.target_id), "request_id": str(req.id)},
    )


HEAD_OPS_WORKFLOW = ModeratedAction(
    HeadOpsRequest,
    [
        Transition("approve", "pending", "approved", record=("admin_notes",), effect=_deactivate_target),
        Transition("reject", "pending", "rejected", required=("admin_notes",), record=("admin_notes",)),
    ],
    label="Head-of-Ops request",
)


async def approve_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    *,
    actor_id: uuid.UUID,
    admin_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> HeadOpsRequest:
    return await HEAD_OPS_WORKFLOW.apply(
        db, request_id, "approve", actor_id=actor_id, values={"admin_notes": admin_notes}, now=now
    )


async def reject_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    *,
    actor_id: uuid.UUID,
    admin_notes: Optional[str],
    now: Optional[datetime] = None,
) -> HeadOpsRequest:
    return await HEAD_OPS_WORKFLOW.apply(
        db, request_id, "reject", actor_id=actor_id, values={"admin_notes": admin_notes}, now=now
    )


async def list_requests(
    db: AsyncSession,
    *,
    requester_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[HeadOpsRequest], int]:
    base = select(HeadOpsRequest)
    if requester_id is not None:
        base = base.where(HeadOpsRequest.requester_id == requester_id)
    if status is not None:
        if status not in STATUSES:
            raise ValidationError(f"Unknown status {status!r}.", code="status_invalid")
        base = base.where(HeadOpsRequest.status == status)

    total = await db.scalar(select(func.count()).select_from(base.subquery()))
    rows = (
        await db.execute(base.order_by(HeadOpsRequest.created_at.desc()).limit(limit).offset(offset))
    ).scalars().all()
    return list(rows), int(total or 0)
