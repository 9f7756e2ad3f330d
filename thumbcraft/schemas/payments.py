# FILE: thumbcraft/schemas/payments.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, validator


class PlanOption(BaseModel):
    plan_type: str
    name: str
    amount: int           # paise
    amount_display: str   # e.g. "30.00"
    currency: str
    duration_days: int


class CreateOrderRequest(BaseModel):
    plan_type: str

    @validator("plan_type")
    def normalize_plan_type(cls, v: str):
        return (v or "").lower().strip()


class CreateOrderResponse(BaseModel):
    order_id: str
    amount: int
    currency: str
    key_id: str


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    plan_type: Optional[str] = None


class VerifyPaymentResponse(BaseModel):
    success: bool
    plan_type: str
    plan_expiry: Optional[datetime] = None
    already_processed: bool = False


class FailPaymentRequest(BaseModel):
    reason: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    order_id: str
    status: str


class PaymentItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider_order_id: str
    plan_type: str
    amount: int
    currency: str
    status: str
    created_at: datetime
    paid_at: Optional[datetime] = None


class PaymentList(BaseModel):
    items: List[PaymentItem]
