# app/schemas/payment.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.creator import AttributionOut


class PaymentCompletedIn(BaseModel):
    """Posted by the checkout service once per verified payment."""
    order_id: str = Field(min_length=1, max_length=128)
    user_id: UUID
    final_amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    original_amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    ref_creator: Optional[str] = Field(default=None, max_length=32)
    discount_code: Optional[str] = Field(default=None, max_length=32)
    access_tier: Optional[str] = Field(default=None, max_length=40)


class PaymentRecordedOut(BaseModel):
    duplicate: bool
    attribution: AttributionOut


class SignupAttributionIn(BaseModel):
    user_id: UUID
    referral_code: Optional[str] = Field(default=None, max_length=32)
    discount_code: Optional[str] = Field(default=None, max_length=32)


class SignupAttributionOut(BaseModel):
    attributed: bool
    created: bool
    creator_id: Optional[UUID] = None
    referral_source: Optional[str] = None


class DiscountRedeemIn(BaseModel):
    code: str = Field(min_length=1, max_length=32)


class DiscountRedeemOut(BaseModel):
    code: str
    discount_percent: Decimal
