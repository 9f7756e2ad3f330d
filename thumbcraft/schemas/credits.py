# FILE: thumbcraft/schemas/credits.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CreditStatus(BaseModel):
    credits: int
    plan_type: str
    plan_expiry: Optional[datetime] = None
    has_active_plan: bool
    generation_cost: int


class CreditTransaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    amount: int
    ref_id: Optional[str] = None
    created_at: datetime
