# /thumbcraft/models/credit_ledger.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, DateTime

from thumbcraft.core.database import Base


class CreditLedger(Base):
    """Credit movements. Audit trail only; entitlements.credits is the balance."""
    __tablename__ = "credit_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    # Kind: signup, usage, refund
    kind: Mapped[str] = mapped_column(String(30))

    # Positive for credit, negative for debit
    amount: Mapped[int] = mapped_column(Integer)

    # Reference ID (thumbnail id, payment id)
    ref_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
