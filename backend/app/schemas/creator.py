# app/schemas/creator.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, constr

ReferralCode = constr(pattern=r"^[A-Z0-9]{6}$")  # exactly 6 chars A–Z0–9


class CreatorCreate(BaseModel):
    """
    Onboard a creator for:
      - an existing user (user_id), OR
      - create/find user by email (email)
    Provide exactly one of user_id or email.
    """
    user_id: Optional[UUID] = None
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(default=None, max_length=200)
    display_name: Optional[str] = Field(default=None, max_length=200)
    cmo_id: Optional[UUID] = None

    def validate_choice(self) -> None:
        if (self.user_id is None) == (self.email is None):
            raise ValueError("Provide exactly one of user_id or email.")


class CreatorUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_active: Optional[bool] = None
    cmo_id: Optional[UUID] = None
    display_name: Optional[str] = Field(default=None, max_length=200)


class CreatorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    display_name: Optional[str] = None
    referral_code: ReferralCode
    cmo_id: Optional[UUID] = None
    is_active: bool

    lifetime_paid_users: int
    available_balance: Decimal
    reserved_balance: Decimal
    total_withdrawn: Decimal
    current_tier_level: int
    tier_protection_until: Optional[datetime] = None

    created_at: datetime


class CreatorListOut(BaseModel):
    items: List[CreatorOut]
    total: int
    limit: int
    offset: int


class TierOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier_level: int
    tier_name: str
    commission_rate: Decimal
    monthly_user_threshold: int


class CreatorSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    creator_id: UUID
    referral_code: str
    available_balance: Decimal
    reserved_balance: Decimal
    total_withdrawn: Decimal
    lifetime_paid_users: int
    monthly_paid_users: int
    commission_rate: Decimal
    rate_protected: bool
    tier_protection_until: Optional[datetime] = None
    current_tier: Optional[TierOut] = None
    next_tier: Optional[TierOut] = None
    progress_percent: Decimal


class AttributionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: str
    user_id: UUID
    creator_id: Optional[UUID] = None
    original_amount: Decimal
    discount_applied: Decimal
    final_amount: Decimal
    commission_rate: Decimal
    tier_level: Optional[int] = None
    rate_protected: bool
    creator_commission_amount: Decimal
    discount_code: Optional[str] = None
    access_tier: Optional[str] = None
    payment_month: date
    created_at: datetime


class AttributionPageOut(BaseModel):
    items: List[AttributionOut]
    limit: int
    offset: int
    total: int


class DiscountCodeCreate(BaseModel):
    code: str = Field(min_length=4, max_length=20)


class AdminDiscountCodeCreate(DiscountCodeCreate):
    discount_percent: Decimal = Field(gt=0, lt=100)


class DiscountCodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    creator_id: UUID
    discount_percent: Decimal
    usage_count: int
    paid_conversions: int
    is_active: bool
    created_at: datetime


class CMOCreate(BaseModel):
    user_id: Optional[UUID] = None
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(default=None, max_length=200)
    display_name: Optional[str] = Field(default=None, max_length=200)
    is_head_ops: bool = False

    def validate_choice(self) -> None:
        if (self.user_id is None) == (self.email is None):
            raise ValueError("Provide exactly one of user_id or email.")


class CMOOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    display_name: Optional[str] = None
    referral_code: Optional[str] = None
    is_active: bool
    is_head_ops: bool
    created_at: datetime


class CMOPayoutOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    cmo_id: UUID
    payout_month: date
    total_paid_users: int
    total_commission: Decimal
    status: str
