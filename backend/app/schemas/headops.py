# app/schemas/headops.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

RequestType = Literal["remove_creator", "suspend_creator", "remove_cmo", "demote_cmo", "general"]


class HeadOpsRequestCreate(BaseModel):
    request_type: RequestType
    target_id: Optional[UUID] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class HeadOpsRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requester_id: UUID
    request_type: str
    target_id: Optional[UUID] = None
    target_type: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    status: str
    admin_notes: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    created_at: datetime
    reviewed_at: Optional[datetime] = None


class HeadOpsRequestPageOut(BaseModel):
    items: List[HeadOpsRequestOut]
    limit: int
    offset: int
    total: int


class HeadOpsDecision(BaseModel):
    decision: Literal["approve", "reject"]
    admin_notes: Optional[str] = Field(default=None, max_length=2000)
