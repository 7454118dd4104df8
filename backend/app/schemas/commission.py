# app/schemas/commission.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.creator import TierOut


class TierUpsert(BaseModel):
    tier_name: str = Field(min_length=1, max_length=64)
    commission_rate: Decimal = Field(gt=0, le=100, max_digits=5, decimal_places=2)
    monthly_user_threshold: int = Field(ge=0)


class TierListOut(BaseModel):
    items: List[TierOut]


class TierEvaluationOut(BaseModel):
    evaluated: int
    promoted: int
    demoted: int
    unchanged: int
    protected: int


class FieldCheckOut(BaseModel):
    cached: str
    derived: str
    consistent: bool


class ReconciliationOut(BaseModel):
    creator_id: UUID
    consistent: bool
    fields: Dict[str, FieldCheckOut]


class MonthRevenueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month: date
    revenue: Decimal
    commission: Decimal
    payments: int


class RevenueStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_revenue: Decimal
    total_commission: Decimal
    this_month_revenue: Decimal
    monthly: List[MonthRevenueOut]
