# FILE: thumbcraft/services/payment_service.py
"""Razorpay subscription purchases.

Order lifecycle: created -> pending -> completed. The signature check is
mandatory before any state change; client-reported failures are only noted
on the order, which stays pending so a retried checkout can still settle it.
Completion and the plan grant commit in one billing transaction guarded by
``status = 'pending'`` so a replayed verification cannot grant twice.
"""

import hashlib
import hmac
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from thumbcraft.core.config import LOG_DIR, RAZORPAY_API_BASE, RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET
from thumbcraft.core.errors import (
    InvalidPlanError,
    InvalidSignatureError,
    PaymentNotFoundError,
    PaymentProviderError,
    PaymentStateError,
    PlanGrantError,
    ValidationError,
)
from thumbcraft.models.entitlement import Entitlement
from thumbcraft.models.payment import Payment
from thumbcraft.services.entitlement_service import grant_plan

os.makedirs(LOG_DIR, exist_ok=True)
payments_logger = logging.getLogger("thumbcraft.payments")
if not any(isinstance(h, logging.FileHandler) for h in payments_logger.handlers):
    handler = logging.FileHandler(os.path.join(LOG_DIR, "payments.log"))
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    handler.setFormatter(formatter)
    payments_logger.setLevel(logging.INFO)
    payments_logger.addHandler(handler)

CURRENCY = "INR"

# Minor units (paise)
PLAN_PRICES: Dict[str, int] = {
    "weekly": 3000,   # ₹30
    "monthly": 10000,  # ₹100
}

PLAN_DURATIONS: Dict[str, int] = {
    "weekly": 7,
    "monthly": 30,
}


def validate_plan_type(plan_type: Optional[str]) -> str:
    p = (plan_type or "").lower().strip()
    if p not in PLAN_PRICES:
        raise InvalidPlanError("Invalid plan type")
    return p


# ─────────────────────────────────────────────
# PROVIDER
# ─────────────────────────────────────────────

@dataclass
class ProviderOrder:
    id: str
    amount: int
    currency: str
    raw: Dict[str, Any] = field(default_factory=dict)


class PaymentProvider(Protocol):
    key_id: str

    async def create_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> ProviderOrder:
        ...


class RazorpayClient:
    """Minimal Razorpay Orders API client."""

    def __init__(
            self,
            key_id: str = RAZORPAY_KEY_ID,
            key_secret: str = RAZORPAY_KEY_SECRET,
            base_url: str = RAZORPAY_API_BASE,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    async def create_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> ProviderOrder:
        if not self.key_id or not self.key_secret:
            raise PaymentProviderError("Razorpay is not configured")

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                resp = await client.post(
                    f"{self.base_url}/orders",
                    auth=(self.key_id, self.key_secret),
                    json={
                        "amount": amount,
                        "currency": currency,
                        "receipt": receipt,
                        "notes": notes,
                    },
                    timeout=30,
                )
        except httpx.HTTPError as exc:
            payments_logger.error("Razorpay order request failed", exc_info=exc)
            raise PaymentProviderError("Failed to create Razorpay order", raw=str(exc)) from exc

        if resp.status_code >= 400:
            payments_logger.error("Razorpay order creation failed: %s %s", resp.status_code, resp.text[:1000])
            raise PaymentProviderError("Failed to create Razorpay order", raw=resp.text[:1000])

        data = resp.json()
        if not data.get("id"):
            raise PaymentProviderError("Razorpay returned no order id", raw=str(data)[:1000])
        return ProviderOrder(
            id=data["id"],
            amount=int(data.get("amount") or amount),
            currency=data.get("currency") or currency,
            raw=data,
        )


# ─────────────────────────────────────────────
# SIGNATURE
# ─────────────────────────────────────────────

def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    if not secret or not signature:
        return False
    expected = compute_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


# ─────────────────────────────────────────────
# ORCHESTRATION
# ─────────────────────────────────────────────

@dataclass
class VerificationResult:
    plan_type: str
    plan_expiry: Optional[datetime]
    already_processed: bool = False


async def create_order(db: AsyncSession, user_id: str, plan_type: str, provider: PaymentProvider) -> Dict[str, Any]:
    plan_type = validate_plan_type(plan_type)
    amount = PLAN_PRICES[plan_type]

    # Provider first: on failure nothing is persisted
    order = await provider.create_order(
        amount=amount,
        currency=CURRENCY,
        receipt=f"order_{user_id[:8]}_{int(time.time() * 1000)}",
        notes={"user_id": user_id, "plan_type": plan_type},
    )

    db.add(Payment(
        id=str(uuid.uuid4()),
        user_id=user_id,
        provider="razorpay",
        provider_order_id=order.id,
        plan_type=plan_type,
        amount=order.amount,
        currency=order.currency,
        status="pending",
        created_at=datetime.utcnow(),
        raw={"receipt": order.raw.get("receipt"), "notes": order.raw.get("notes")},
    ))
    await db.commit()

    payments_logger.info("Created Razorpay order %s for user %s (%s)", order.id, user_id, plan_type)
    return {
        "order_id": order.id,
        "amount": order.amount,
        "currency": order.currency,
        "key_id": provider.key_id,
    }


async def _load_payment(db: AsyncSession, order_id: str, user_id: Optional[str] = None) -> Payment:
    q = select(Payment).where(Payment.provider_order_id == order_id).execution_options(populate_existing=True)
    if user_id is not None:
        q = q.where(Payment.user_id == user_id)
    payment = (await db.execute(q)).scalar_one_or_none()
    if not payment:
        raise PaymentNotFoundError("Payment order not found")
    return payment


async def _current_expiry(db: AsyncSession, user_id: str) -> Optional[datetime]:
    return (await db.execute(
        select(Entitlement.plan_expiry).where(Entitlement.user_id == user_id)
    )).scalar_one_or_none()


async def _complete_and_grant(
        db: AsyncSession,
        payment: Payment,
        payment_id: str,
        now: datetime,
) -> Optional[datetime]:
    """
    Mark completed + grant plan in one transaction.
    Returns the new expiry, or None when another request already completed it.
    """
    result = await db.execute(
        update(Payment)
        .where(Payment.provider_order_id == payment.provider_order_id, Payment.status == "pending")
        .values(
            status="completed",
            provider_payment_id=payment_id,
            verified_at=payment.verified_at or now,
            paid_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return None

    plan_expiry = await grant_plan(db, payment.user_id, payment.plan_type, PLAN_DURATIONS[payment.plan_type], now)
    await db.commit()
    return plan_expiry


async def _record_grant_failure(db: AsyncSession, order_id: str, payment_id: str, error: Exception, now: datetime) -> None:
    try:
        payment = await _load_payment(db, order_id)
        raw = dict(payment.raw or {})
        raw["grant_error"] = str(error)[:1000]
        raw["grant_failed_at"] = now.isoformat()
        payment.raw = raw
        payment.provider_payment_id = payment_id
        payment.verified_at = payment.verified_at or now
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        payments_logger.exception("Could not record grant failure for order %s", order_id)


async def verify_payment(
        db: AsyncSession,
        user_id: str,
        order_id: str,
        payment_id: str,
        signature: str,
        plan_type: str,
        secret: str = RAZORPAY_KEY_SECRET,
        now: Optional[datetime] = None,
) -> VerificationResult:
    if not order_id or not payment_id or not signature or not plan_type:
        raise ValidationError("Missing required payment details")
    plan_type = validate_plan_type(plan_type)

    if not verify_signature(order_id, payment_id, signature, secret):
        payments_logger.warning("Signature verification failed for order %s (user %s)", order_id, user_id)
        raise InvalidSignatureError("Invalid payment signature")

    now = now or datetime.utcnow()
    payment = await _load_payment(db, order_id, user_id)

    if payment.plan_type != plan_type:
        raise ValidationError("Plan type does not match the order")
    if payment.status == "completed":
        payments_logger.info("Order %s already processed", order_id)
        return VerificationResult(plan_type, await _current_expiry(db, user_id), already_processed=True)
    if payment.status != "pending":
        raise PaymentStateError(f"Payment is {payment.status}")

    payments_logger.info("Payment signature verified for order %s", order_id)

    try:
        plan_expiry = await _complete_and_grant(db, payment, payment_id, now)
    except Exception as exc:
        await db.rollback()
        payments_logger.error(
            "Payment %s verified but plan grant failed for user %s", order_id, user_id, exc_info=exc,
        )
        await _record_grant_failure(db, order_id, payment_id, exc, now)
        raise PlanGrantError(
            "Payment received but your plan could not be activated. Support has been notified.",
            raw=str(exc),
        ) from exc

    if plan_expiry is None:
        return VerificationResult(plan_type, await _current_expiry(db, user_id), already_processed=True)

    payments_logger.info("User plan updated: %s to %s, expires %s", user_id, plan_type, plan_expiry.isoformat())
    return VerificationResult(plan_type, plan_expiry)


async def mark_failed(db: AsyncSession, user_id: str, order_id: str, reason: Optional[str] = None) -> Payment:
    """
    Record a client-reported checkout failure on the order.

    The report is unsigned and Razorpay checkout may retry on the same order,
    so the order stays `pending` and a later signed verification still settles it.
    """
    payment = await _load_payment(db, order_id, user_id)
    if payment.status != "pending":
        return payment

    raw = dict(payment.raw or {})
    attempts = list(raw.get("failed_attempts") or [])
    attempts.append({
        "reason": (reason or "checkout_failed")[:500],
        "reported_at": datetime.utcnow().isoformat(),
    })
    raw["failed_attempts"] = attempts
    payment.raw = raw
    await db.commit()
    payments_logger.info("Order %s checkout attempt failed: %s", order_id, attempts[-1]["reason"])
    return payment


async def list_unreconciled(db: AsyncSession) -> List[Payment]:
    result = await db.execute(
        select(Payment)
        .where(Payment.status == "pending", Payment.verified_at.is_not(None))
        .order_by(Payment.verified_at)
    )
    return list(result.scalars().all())


async def reconcile_payment(db: AsyncSession, order_id: str, now: Optional[datetime] = None) -> VerificationResult:
    """Re-run the grant for an order whose signature was verified but whose grant failed."""
    now = now or datetime.utcnow()
    payment = await _load_payment(db, order_id)
    user_id, plan_type = payment.user_id, payment.plan_type
    if payment.status == "completed":
        return VerificationResult(plan_type, await _current_expiry(db, user_id), already_processed=True)
    if payment.status != "pending" or payment.verified_at is None or not payment.provider_payment_id:
        raise PaymentStateError("Order has no verified payment to reconcile")

    try:
        plan_expiry = await _complete_and_grant(db, payment, payment.provider_payment_id, now)
    except Exception as exc:
        await db.rollback()
        payments_logger.error("Reconciliation failed for order %s", order_id, exc_info=exc)
        raise PlanGrantError("Plan grant failed again during reconciliation", raw=str(exc)) from exc

    if plan_expiry is None:
        return VerificationResult(plan_type, await _current_expiry(db, user_id), already_processed=True)
    payments_logger.info("Reconciled order %s: %s until %s", order_id, plan_type, plan_expiry.isoformat())
    return VerificationResult(plan_type, plan_expiry)


async def list_payments(db: AsyncSession, user_id: str, limit: int = 10) -> List[Payment]:
    result = await db.execute(
        select(Payment)
        .where(Payment.user_id == user_id)
        .order_by(Payment.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
