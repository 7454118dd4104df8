# app/schemas/withdrawal.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WithdrawalMethodCreate(BaseModel):
    method_type: Literal["bank", "crypto"]

    bank_name: Optional[str] = Field(default=None, max_length=120)
    branch_name: Optional[str] = Field(default=None, max_length=120)
    account_number: Optional[str] = Field(default=None, max_length=64)
    account_holder_name: Optional[str] = Field(default=None, max_length=200)

    crypto_type: Optional[str] = Field(default=None, max_length=32)
    wallet_address: Optional[str] = Field(default=None, max_length=128)
    network: Optional[str] = Field(default=None, max_length=32)


class WithdrawalMethodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    creator_id: UUID
    method_type: str
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    account_number: Optional[str] = None
    account_holder_name: Optional[str] = None
    crypto_type: Optional[str] = None
    wallet_address: Optional[str] = None
    network: Optional[str] = None
    is_primary: bool
    created_at: datetime


class WithdrawalCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    withdrawal_method_id: Optional[UUID] = None


class WithdrawalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    creator_id: UUID
    withdrawal_method_id: Optional[UUID] = None
    amount: Decimal
    fee_percent: Decimal
    fee_amount: Decimal
    net_amount: Decimal
    status: str
    receipt_url: Optional[str] = None
    admin_notes: Optional[str] = None
    payment_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    paid_by: Optional[UUID] = None
    receipt_attached_by: Optional[UUID] = None
    created_at: datetime
    reviewed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    receipt_attached_at: Optional[datetime] = None


class WithdrawalPageOut(BaseModel):
    items: List[WithdrawalOut]
    limit: int
    offset: int
    total: int


class WithdrawalDecision(BaseModel):
    """Admin decision on a pending/approved request."""
    decision: Literal["approve", "reject", "mark_paid"]
    rejection_reason: Optional[str] = Field(default=None, max_length=64)
    admin_notes: Optional[str] = Field(default=None, max_length=2000)
    payment_notes: Optional[str] = Field(default=None, max_length=2000)
    receipt_url: Optional[str] = Field(default=None, max_length=2000)


class ReceiptAttach(BaseModel):
    receipt_url: str = Field(min_length=1, max_length=2000)


class PayoutSettingsOut(BaseModel):
    minimum_payout_lkr: Decimal
    withdrawal_fee_percent: Decimal


class PayoutSettingsUpdate(BaseModel):
    minimum_payout_lkr: Optional[Decimal] = Field(default=None, ge=0)
    withdrawal_fee_percent: Optional[Decimal] = Field(default=None, ge=0, lt=100)
