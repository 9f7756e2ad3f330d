# /thumbcraft/models/entitlement.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, DateTime, CheckConstraint

from thumbcraft.core.database import Base


class Entitlement(Base):
    """Credit balance and subscription window, one row per user."""
    __tablename__ = "entitlements"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    credits: Mapped[int] = mapped_column(Integer, default=0)

    # Plan: free, weekly, monthly
    plan_type: Mapped[str] = mapped_column(String(20), default="free")

    # Naive UTC
    plan_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_entitlements_credits_non_negative"),
    )
