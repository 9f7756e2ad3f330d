# /thumbcraft/api/thumbnails.py
"""Thumbnail generation, history and PNG export."""

import asyncio
import io
import logging
import re
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from thumbcraft.api.deps import get_current_user, get_image_client
from thumbcraft.core.database import get_db
from thumbcraft.models.thumbnail import Thumbnail
from thumbcraft.schemas.thumbnails import (
    ExportRequest,
    ExportUploadRequest,
    GenerateThumbnailRequest,
    GenerateThumbnailResponse,
    ThumbnailHistoryItem,
    ThumbnailHistoryResponse,
    ThumbnailResponse,
)
from thumbcraft.services.compositor import OverlayStyle, compose_thumbnail
from thumbcraft.services.image_service import ImageGenerationClient, decode_data_uri, load_image_bytes
from thumbcraft.services.thumbnail_service import (
    delete_thumbnail,
    generate_thumbnail,
    get_thumbnail,
    list_thumbnails,
)

logger = logging.getLogger("thumbcraft.api.thumbnails")

router = APIRouter(prefix="/api/thumbnails", tags=["thumbnails"])


def _thumbnail_payload(t: Thumbnail) -> dict:
    return {
        "id": t.id,
        "image_url": t.image_url,
        "prompt": t.prompt,
        "template": t.template_used,
        "text_input": t.text_input,
        "overlay_text": t.overlay_text,
        "text_position": t.text_position,
        "overlay_style": t.overlay_style,
        "credits_used": t.credits_used,
        "created_at": t.created_at,
    }


def _download_name(title: Optional[str]) -> str:
    slug = re.sub(r"[^A-Za-z0-9_-]+", "-", (title or "")[:30]).strip("-")
    return f"{slug or 'thumbnail'}-{int(time.time() * 1000)}.png"


def _png_response(png: bytes, title: Optional[str]) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(png),
        media_type="image/png",
        headers={"Content-Disposition": f"attachment; filename={_download_name(title)}"},
    )


@router.post("/generate", response_model=GenerateThumbnailResponse)
async def generate(
        req: GenerateThumbnailRequest,
        request: Request,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        client: ImageGenerationClient = Depends(get_image_client),
):
    result = await generate_thumbnail(
        db,
        user["id"],
        req.text_input,
        req.template,
        client,
        overlay_text=req.overlay_text,
        text_position=req.text_position,
        style=req.style.to_style() if req.style else OverlayStyle(),
        is_disconnected=request.is_disconnected,
    )
    return GenerateThumbnailResponse(
        **_thumbnail_payload(result.thumbnail),
        credits=result.charge.credits_remaining,
    )


@router.get("", response_model=ThumbnailHistoryResponse)
async def history(
        limit: int = Query(20, ge=1, le=100),
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    rows = await list_thumbnails(db, user["id"], limit)
    return ThumbnailHistoryResponse(items=[
        ThumbnailHistoryItem(
            id=t.id,
            template=t.template_used,
            text_input=t.text_input,
            overlay_text=t.overlay_text,
            image_url=t.image_url,
            credits_used=t.credits_used,
            created_at=t.created_at,
        )
        for t in rows
    ])


@router.post("/export")
async def export_upload(req: ExportUploadRequest, user=Depends(get_current_user)):
    """Composite an uploaded image (data URI) with a text overlay. No credits involved."""
    _, background = decode_data_uri(req.image_data)
    style = req.style.to_style() if req.style else OverlayStyle()
    result = await asyncio.to_thread(
        compose_thumbnail, background, req.overlay_text, req.text_position or "bottom", style,
    )
    logger.info("Export (upload) for %s: %s line(s)", user["id"], len(result.lines))
    return _png_response(result.png, req.overlay_text)


@router.get("/{thumbnail_id}", response_model=ThumbnailResponse)
async def get_one(thumbnail_id: str, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    t = await get_thumbnail(db, user["id"], thumbnail_id)
    return ThumbnailResponse(**_thumbnail_payload(t))


@router.delete("/{thumbnail_id}")
async def delete_one(thumbnail_id: str, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await delete_thumbnail(db, user["id"], thumbnail_id)
    return {"deleted": True, "id": thumbnail_id}


@router.post("/{thumbnail_id}/export")
async def export_saved(
        thumbnail_id: str,
        req: Optional[ExportRequest] = None,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """
    Render a saved thumbnail to PNG. Overlay fields in the body override the
    ones stored with the generation.
    """
    t = await get_thumbnail(db, user["id"], thumbnail_id)
    req = req or ExportRequest()

    overlay_text = req.overlay_text if req.overlay_text is not None else t.overlay_text
    position = req.text_position or t.text_position or "bottom"
    if req.style:
        style = req.style.to_style()
    elif t.overlay_style:
        style = OverlayStyle(**t.overlay_style)
    else:
        style = OverlayStyle()

    background = await load_image_bytes(t.image_url)
    result = await asyncio.to_thread(compose_thumbnail, background, overlay_text, position, style)
    logger.info("Export %s for %s: %s line(s)", thumbnail_id, user["id"], len(result.lines))
    return _png_response(result.png, overlay_text or t.text_input)
