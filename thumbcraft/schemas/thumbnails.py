# =========================================================
# FILE: /thumbcraft/schemas/thumbnails.py
# =========================================================

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, validator

from thumbcraft.services.compositor import POSITIONS, OverlayStyle
from thumbcraft.services.template_catalog import DEFAULT_TEMPLATE, TEMPLATES

HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
MAX_TOPIC_LENGTH = 200


def _validate_position(v: Optional[str]) -> str:
    v = (v or "bottom").lower().strip()
    if v not in POSITIONS:
        raise ValueError(f"textPosition must be one of {list(POSITIONS)}")
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OverlayStyleIn(CamelModel):
    font_size: int = Field(48, alias="fontSize", ge=24, le=120)
    color: str = "#ffffff"
    shadow_color: str = Field("#000000", alias="shadowColor")
    shadow_blur: int = Field(10, alias="shadowBlur", ge=0, le=30)

    @validator("color", "shadow_color")
    def validate_hex(cls, v: str):
        v = (v or "").strip()
        if not HEX_COLOR_RE.match(v):
            raise ValueError("Colors must be hex values like #ffffff")
        return v

    def to_style(self) -> OverlayStyle:
        return OverlayStyle(
            font_size=self.font_size,
            color=self.color,
            shadow_color=self.shadow_color,
            shadow_blur=self.shadow_blur,
        )


class GenerateThumbnailRequest(CamelModel):
    text_input: str = Field(..., alias="textInput")
    template: str = DEFAULT_TEMPLATE
    overlay_text: Optional[str] = Field(None, alias="overlayText")
    text_position: str = Field("bottom", alias="textPosition")
    style: Optional[OverlayStyleIn] = None

    @validator("text_input")
    def validate_text_input(cls, v: str):
        v = (v or "").strip()
        if not v:
            raise ValueError("Please describe your video topic")
        if len(v) > MAX_TOPIC_LENGTH:
            raise ValueError(f"Topic must be less than {MAX_TOPIC_LENGTH} characters")
        return v

    @validator("template")
    def validate_template(cls, v: str):
        v = (v or DEFAULT_TEMPLATE).lower().strip()
        if v not in TEMPLATES:
            raise ValueError(f"template must be one of {list(TEMPLATES)}")
        return v

    @validator("overlay_text")
    def validate_overlay_text(cls, v: Optional[str]):
        if v is None:
            return None
        v = v.strip()
        if len(v) > MAX_TOPIC_LENGTH:
            raise ValueError(f"Overlay text must be less than {MAX_TOPIC_LENGTH} characters")
        return v or None

    @validator("text_position")
    def validate_text_position(cls, v: str):
        return _validate_position(v)


class ThumbnailResponse(CamelModel):
    id: str
    image_url: str = Field(..., alias="imageUrl")
    prompt: str
    template: str
    text_input: str = Field(..., alias="textInput")
    overlay_text: Optional[str] = Field(None, alias="overlayText")
    text_position: Optional[str] = Field(None, alias="textPosition")
    overlay_style: Optional[dict] = Field(None, alias="overlayStyle")
    credits_used: int = Field(0, alias="creditsUsed")
    created_at: datetime = Field(..., alias="createdAt")


class GenerateThumbnailResponse(ThumbnailResponse):
    # balance after the charge
    credits: int


class ThumbnailHistoryItem(CamelModel):
    id: str
    template: str
    text_input: str = Field(..., alias="textInput")
    overlay_text: Optional[str] = Field(None, alias="overlayText")
    image_url: str = Field(..., alias="imageUrl")
    credits_used: int = Field(0, alias="creditsUsed")
    created_at: datetime = Field(..., alias="createdAt")


class ThumbnailHistoryResponse(CamelModel):
    items: List[ThumbnailHistoryItem] = Field(default_factory=list)


class ExportRequest(CamelModel):
    overlay_text: Optional[str] = Field(None, alias="overlayText")
    text_position: Optional[str] = Field(None, alias="textPosition")
    style: Optional[OverlayStyleIn] = None

    @validator("text_position")
    def validate_text_position(cls, v: Optional[str]):
        if v is None:
            return None
        return _validate_position(v)


class ExportUploadRequest(ExportRequest):
    image_data: str = Field(..., alias="imageData")


class EnhanceRequest(CamelModel):
    image_data: str = Field(..., alias="imageData")
    prompt: Optional[str] = None


class EnhanceResponse(CamelModel):
    enhanced_image_url: str = Field(..., alias="enhancedImageUrl")
    message: str = "Image enhanced successfully"
