# /thumbcraft/api/payments.py
"""Razorpay subscription checkout: order creation, verification, history."""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from thumbcraft.api.deps import get_current_user, get_payment_provider, get_payment_secret
from thumbcraft.core.database import get_billing_db, get_db
from thumbcraft.schemas.payments import (
    CreateOrderRequest,
    CreateOrderResponse,
    FailPaymentRequest,
    PaymentItem,
    PaymentList,
    PaymentStatusResponse,
    PlanOption,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from thumbcraft.services.payment_service import (
    CURRENCY,
    PLAN_DURATIONS,
    PLAN_PRICES,
    PaymentProvider,
    create_order,
    list_payments,
    mark_failed,
    verify_payment,
)

router = APIRouter(prefix="/api/payments", tags=["payments"])

PLAN_NAMES = {"weekly": "Weekly Pass", "monthly": "Monthly Pass"}


@router.get("/plans", response_model=List[PlanOption])
async def get_plans():
    """Available subscription plans."""
    return [
        PlanOption(
            plan_type=plan_type,
            name=PLAN_NAMES.get(plan_type, plan_type.title()),
            amount=amount,
            amount_display=f"{amount / 100:.2f}",
            currency=CURRENCY,
            duration_days=PLAN_DURATIONS[plan_type],
        )
        for plan_type, amount in PLAN_PRICES.items()
    ]


@router.post("/orders", response_model=CreateOrderResponse)
async def create_payment_order(
        req: CreateOrderRequest,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        provider: PaymentProvider = Depends(get_payment_provider),
):
    order = await create_order(db, user["id"], req.plan_type, provider)
    return CreateOrderResponse(**order)


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment_signature(
        req: VerifyPaymentRequest,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_billing_db),
        secret: str = Depends(get_payment_secret),
):
    """Checkout success handler; grants the plan once per order."""
    result = await verify_payment(
        db,
        user["id"],
        req.razorpay_order_id,
        req.razorpay_payment_id,
        req.razorpay_signature,
        req.plan_type,
        secret=secret,
    )
    return VerifyPaymentResponse(
        success=True,
        plan_type=result.plan_type,
        plan_expiry=result.plan_expiry,
        already_processed=result.already_processed,
    )


@router.post("/{order_id}/fail", response_model=PaymentStatusResponse)
async def report_payment_failure(
        order_id: str,
        req: FailPaymentRequest,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    payment = await mark_failed(db, user["id"], order_id, req.reason)
    return PaymentStatusResponse(order_id=payment.provider_order_id, status=payment.status)


@router.get("", response_model=PaymentList)
async def payment_history(
        limit: int = Query(10, ge=1, le=100),
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    rows = await list_payments(db, user["id"], limit)
    return PaymentList(items=[PaymentItem.model_validate(p) for p in rows])
