# app/api/v1/events.py
"""Inbound events from the checkout service (shared-secret auth, no user token)."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.roles import require_events_secret
from app.core.attribution import PaymentCompleted, attribute_payment, record_user_attribution
from app.core.discount_codes import redeem_code
from app.db.session import get_db
from app.schemas.payment import (
    DiscountRedeemIn,
    DiscountRedeemOut,
    PaymentCompletedIn,
    PaymentRecordedOut,
    SignupAttributionIn,
    SignupAttributionOut,
)

router = APIRouter(prefix="/events", tags=["events"], dependencies=[Depends(require_events_secret)])


@router.post("/payment-completed", response_model=PaymentRecordedOut)
async def payment_completed(payload: PaymentCompletedIn, db: AsyncSession = Depends(get_db)):
    """Idempotent per order_id: a repeat delivery returns the original record with duplicate=true."""
    recorded = await attribute_payment(db, PaymentCompleted(**payload.model_dump()))
    return PaymentRecordedOut(duplicate=not recorded.created, attribution=recorded.attribution)


@router.post("/signup", response_model=SignupAttributionOut)
async def signup(payload: SignupAttributionIn, db: AsyncSession = Depends(get_db)):
    row, created = await record_user_attribution(
        db,
        user_id=payload.user_id,
        referral_code=payload.referral_code,
        discount_code=payload.discount_code,
    )
    return SignupAttributionOut(
        attributed=row is not None,
        created=created,
        creator_id=row.creator_id if row else None,
        referral_source=row.referral_source if row else None,
    )


@router.post("/discount-codes/redeem", response_model=DiscountRedeemOut)
async def redeem(payload: DiscountRedeemIn, db: AsyncSession = Depends(get_db)):
    code = await redeem_code(db, payload.code)
    return DiscountRedeemOut(code=code.code, discount_percent=code.discount_percent)
