# FILE: thumbcraft/services/prompt_service.py

from __future__ import annotations

from typing import Optional

from thumbcraft.services.template_catalog import get_style_fragment

QUALITY_SUFFIX = (
    "ultra high resolution, 4K quality, photorealistic, cinematic composition, dramatic lighting, "
    "vibrant colors, professional YouTube thumbnail background, no text, no words, no letters, "
    "16:9 aspect ratio"
)

DEFAULT_ENHANCE_PROMPT = (
    "Enhance this image for a YouTube thumbnail: improve lighting, increase sharpness, "
    "make colors more vibrant, and ensure professional quality suitable for thumbnails."
)


def compose_prompt(text_input: str, template: str) -> str:
    """Topic + style fragment + fixed quality/negative instructions."""
    topic = (text_input or "").strip()
    return f"{topic}, {get_style_fragment(template)}, {QUALITY_SUFFIX}"


def build_enhance_prompt(prompt: Optional[str] = None) -> str:
    p = (prompt or "").strip()
    return p or DEFAULT_ENHANCE_PROMPT
