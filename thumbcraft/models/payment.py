# /thumbcraft/models/payment.py
from datetime import datetime
from typing import Optional, Any
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, DateTime, JSON

from thumbcraft.core.database import Base


class Payment(Base):
    """Subscription purchase orders."""
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    # Payment provider: razorpay
    provider: Mapped[str] = mapped_column(String(40), default="razorpay")

    # Provider order id (order_XXXX), the key clients verify against
    provider_order_id: Mapped[str] = mapped_column(String(190), unique=True, index=True)

    # Provider payment id (pay_XXXX), known after checkout
    provider_payment_id: Mapped[Optional[str]] = mapped_column(String(190), nullable=True)

    plan_type: Mapped[str] = mapped_column(String(20))

    # Amount in minor units (paise)
    amount: Mapped[int] = mapped_column(Integer)

    currency: Mapped[str] = mapped_column(String(3), default="INR")

    # Status: pending, completed, failed
    status: Mapped[str] = mapped_column(String(20), default="pending")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Provider notes, failure reasons, grant errors
    raw: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
