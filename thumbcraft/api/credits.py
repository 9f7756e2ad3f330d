# /thumbcraft/api/credits.py
"""Credit balance, plan status and ledger history."""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thumbcraft.api.deps import get_current_user
from thumbcraft.core.config import GENERATION_COST
from thumbcraft.core.database import get_db
from thumbcraft.models.credit_ledger import CreditLedger
from thumbcraft.schemas.credits import CreditStatus, CreditTransaction
from thumbcraft.services.entitlement_service import get_user_status

router = APIRouter(prefix="/api/credits", tags=["credits"])


@router.get("/status", response_model=CreditStatus)
async def credit_status(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Current balance + subscription window for the authenticated user."""
    status = await get_user_status(db, user["id"])
    return CreditStatus(**status, generation_cost=GENERATION_COST)


@router.get("/history", response_model=List[CreditTransaction])
async def credit_history(
        limit: int = Query(50, ge=1, le=200),
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(CreditLedger)
        .where(CreditLedger.user_id == user["id"])
        .order_by(CreditLedger.created_at.desc(), CreditLedger.id.desc())
        .limit(limit)
    )
    return [CreditTransaction.model_validate(row) for row in result.scalars().all()]
