# FILE: thumbcraft/services/thumbnail_service.py
"""Generation orchestration + per-user thumbnail history."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from thumbcraft.core.config import GENERATION_COST
from thumbcraft.core.errors import InsufficientCreditsError, NotFoundError
from thumbcraft.models.thumbnail import Thumbnail
from thumbcraft.services.cancellation import cancel_on_disconnect
from thumbcraft.services.compositor import OverlayStyle
from thumbcraft.services.entitlement_service import (
    Charge,
    check_eligibility,
    consume_generation,
    get_entitlement,
)
from thumbcraft.services.image_service import ImageGenerationClient
from thumbcraft.services.prompt_service import compose_prompt
from thumbcraft.services.template_catalog import DEFAULT_TEMPLATE, TEMPLATES

logger = logging.getLogger("thumbcraft.thumbnails")


@dataclass
class GenerationResult:
    thumbnail: Thumbnail
    charge: Charge


async def generate_thumbnail(
        db: AsyncSession,
        user_id: str,
        text_input: str,
        template: str,
        client: ImageGenerationClient,
        overlay_text: Optional[str] = None,
        text_position: Optional[str] = None,
        style: Optional[OverlayStyle] = None,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        cost: int = GENERATION_COST,
        now: Optional[datetime] = None,
) -> GenerationResult:
    """
    eligibility -> provider call -> (charge + record) in one commit.
    Nothing is charged or stored unless an image came back.
    """
    template = template if template in TEMPLATES else DEFAULT_TEMPLATE

    entitlement = await get_entitlement(db, user_id)
    eligibility = check_eligibility(entitlement, cost, now)
    if not eligibility.allowed:
        logger.info("Generation denied for %s: %s", user_id, eligibility.reason)
        raise InsufficientCreditsError("Not enough credits. Upgrade your plan to keep generating.")
    # end the read transaction while the provider call is in flight
    await db.rollback()

    prompt = compose_prompt(text_input, template)
    logger.info("Generating thumbnail for %s (template=%s)", user_id, template)

    if is_disconnected is not None:
        image = await cancel_on_disconnect(client.generate(prompt), is_disconnected)
    else:
        image = await client.generate(prompt)

    thumbnail_id = str(uuid.uuid4())
    now = now or datetime.utcnow()
    try:
        charge = await consume_generation(db, user_id, cost, now, ref_id=thumbnail_id)
    except InsufficientCreditsError:
        # balance spent by a concurrent request since the eligibility check
        await db.rollback()
        logger.warning("Credits exhausted during generation for %s; image discarded", user_id)
        raise

    thumbnail = Thumbnail(
        id=thumbnail_id,
        user_id=user_id,
        text_input=text_input,
        template_used=template,
        prompt=prompt,
        overlay_text=overlay_text or None,
        text_position=text_position if overlay_text else None,
        overlay_style=style.to_dict() if (style and overlay_text) else None,
        image_url=image.image_url,
        credits_used=charge.charged,
        created_at=now,
    )
    db.add(thumbnail)
    await db.commit()

    logger.info("Thumbnail %s saved (charged=%s, remaining=%s)", thumbnail_id, charge.charged, charge.credits_remaining)
    return GenerationResult(thumbnail=thumbnail, charge=charge)


async def list_thumbnails(db: AsyncSession, user_id: str, limit: int = 20) -> List[Thumbnail]:
    result = await db.execute(
        select(Thumbnail)
        .where(Thumbnail.user_id == user_id)
        .order_by(Thumbnail.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_thumbnail(db: AsyncSession, user_id: str, thumbnail_id: str) -> Thumbnail:
    thumb = (await db.execute(
        select(Thumbnail).where(Thumbnail.id == thumbnail_id, Thumbnail.user_id == user_id)
    )).scalar_one_or_none()
    if not thumb:
        raise NotFoundError("Thumbnail not found")
    return thumb


async def delete_thumbnail(db: AsyncSession, user_id: str, thumbnail_id: str) -> None:
    result = await db.execute(
        delete(Thumbnail).where(Thumbnail.id == thumbnail_id, Thumbnail.user_id == user_id)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise NotFoundError("Thumbnail not found")
    await db.commit()
