# FILE: thumbcraft/services/entitlement_service.py
"""Credit balance + subscription window.

All balance changes are single conditional UPDATE statements so concurrent
requests cannot overdraw a balance; there is no read-then-write path.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from thumbcraft.core.config import GENERATION_COST, STARTING_CREDITS
from thumbcraft.core.errors import InsufficientCreditsError, NotFoundError, ValidationError
from thumbcraft.models.credit_ledger import CreditLedger
from thumbcraft.models.entitlement import Entitlement

logger = logging.getLogger("thumbcraft.entitlements")

PLAN_TYPES = ("free", "weekly", "monthly")
INSUFFICIENT_CREDITS = "insufficient_credits"


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class Charge:
    charged: int
    credits_remaining: int
    via_plan: bool


def has_active_plan(plan_type: Optional[str], plan_expiry: Optional[datetime], now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    return bool(plan_type and plan_type != "free" and plan_expiry is not None and plan_expiry > now)


def check_eligibility(entitlement: Entitlement, cost: int = GENERATION_COST, now: Optional[datetime] = None) -> Eligibility:
    if has_active_plan(entitlement.plan_type, entitlement.plan_expiry, now):
        return Eligibility(allowed=True)
    if (entitlement.credits or 0) >= cost:
        return Eligibility(allowed=True)
    return Eligibility(allowed=False, reason=INSUFFICIENT_CREDITS)


def _active_plan_clause(now: datetime):
    return and_(
        Entitlement.plan_type != "free",
        Entitlement.plan_expiry.is_not(None),
        Entitlement.plan_expiry > now,
    )


async def get_entitlement(db: AsyncSession, user_id: str) -> Entitlement:
    ent = (await db.execute(select(Entitlement).where(Entitlement.user_id == user_id))).scalar_one_or_none()
    if not ent:
        raise NotFoundError("Entitlement not found")
    return ent


async def provision_entitlement(db: AsyncSession, user_id: str, starting_credits: int = STARTING_CREDITS) -> Entitlement:
    """Signup: starting balance on the free plan. Caller commits."""
    ent = Entitlement(
        user_id=user_id,
        credits=starting_credits,
        plan_type="free",
        plan_expiry=None,
        updated_at=datetime.utcnow(),
    )
    db.add(ent)
    if starting_credits:
        db.add(CreditLedger(
            user_id=user_id,
            kind="signup",
            amount=starting_credits,
            ref_id=None,
            created_at=datetime.utcnow(),
        ))
    return ent


async def deduct(db: AsyncSession, user_id: str, amount: int) -> bool:
    """Atomic conditional decrement. Fails instead of going negative. Caller commits."""
    if amount <= 0:
        raise ValidationError("Deduction amount must be positive")
    result = await db.execute(
        update(Entitlement)
        .where(Entitlement.user_id == user_id, Entitlement.credits >= amount)
        .values(credits=Entitlement.credits - amount, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def consume_generation(
        db: AsyncSession,
        user_id: str,
        cost: int = GENERATION_COST,
        now: Optional[datetime] = None,
        ref_id: Optional[str] = None,
) -> Charge:
    """
    Eligibility check and deduction as ONE statement: plan holders pass
    without a charge, everyone else needs ``credits >= cost``.
    Caller commits (together with the generation record).
    """
    now = now or datetime.utcnow()
    active = _active_plan_clause(now)

    result = await db.execute(
        update(Entitlement)
        .where(Entitlement.user_id == user_id, or_(active, Entitlement.credits >= cost))
        .values(
            credits=case((active, Entitlement.credits), else_=Entitlement.credits - cost),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientCreditsError("Not enough credits. Upgrade your plan to keep generating.")

    ent = (await db.execute(
        select(Entitlement.credits, Entitlement.plan_type, Entitlement.plan_expiry)
        .where(Entitlement.user_id == user_id)
    )).one()
    via_plan = has_active_plan(ent.plan_type, ent.plan_expiry, now)
    charged = 0 if via_plan else cost

    if charged:
        db.add(CreditLedger(
            user_id=user_id,
            kind="usage",
            amount=-charged,
            ref_id=ref_id,
            created_at=now,
        ))

    return Charge(charged=charged, credits_remaining=ent.credits, via_plan=via_plan)


async def grant_plan(
        db: AsyncSession,
        user_id: str,
        plan_type: str,
        duration_days: int,
        now: Optional[datetime] = None,
) -> datetime:
    """Set plan + expiry. Billing session only; caller commits."""
    if plan_type not in PLAN_TYPES or plan_type == "free":
        raise ValidationError(f"Cannot grant plan '{plan_type}'")
    now = now or datetime.utcnow()
    plan_expiry = now + timedelta(days=duration_days)

    result = await db.execute(
        update(Entitlement)
        .where(Entitlement.user_id == user_id)
        .values(plan_type=plan_type, plan_expiry=plan_expiry, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFoundError("Entitlement not found")

    logger.info("Granted %s plan to %s until %s", plan_type, user_id, plan_expiry.isoformat())
    return plan_expiry


async def get_user_status(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    ent = await get_entitlement(db, user_id)
    return {
        "credits": ent.credits,
        "plan_type": ent.plan_type,
        "plan_expiry": ent.plan_expiry,
        "has_active_plan": has_active_plan(ent.plan_type, ent.plan_expiry, now),
    }
