# FILE: thumbcraft/services/compositor.py
"""
Compositor - flattens background + legibility gradient + text overlay into a
single 1280x720 PNG thumbnail.

Overlay sizes are expressed at preview scale (the editor preview renders at
half the export resolution); ``preview_scale`` converts them to export pixels.
"""

import io
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFilter, ImageFont, ImageOps, UnidentifiedImageError

from thumbcraft.core.config import THUMBNAIL_FONT_PATH
from thumbcraft.core.errors import BackgroundDecodeError, ValidationError

logger = logging.getLogger("thumbcraft.compositor")

# Thumbnail dimensions
THUMB_W = 1280
THUMB_H = 720

PREVIEW_SCALE = 2
TEXT_MARGIN = 100           # total horizontal margin; wrap width = THUMB_W - TEXT_MARGIN
EDGE_OFFSET = 100           # anchor distance from top/bottom edge
LINE_HEIGHT_RATIO = 1.25    # of the export font size
SHADOW_OFFSET = (4, 4)
GRADIENT_MAX_ALPHA = 153    # 60% black at the bottom edge

POSITIONS = ("top", "center", "bottom")

BOLD_FONT_CANDIDATES = (
    "DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "LiberationSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "Arial Bold.ttf",
    "arialbd.ttf",
)


@dataclass
class OverlayStyle:
    font_size: int = 48
    color: str = "#ffffff"
    shadow_color: str = "#000000"
    shadow_blur: int = 10

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CompositeResult:
    png: bytes
    lines: List[str] = field(default_factory=list)
    size: Tuple[int, int] = (THUMB_W, THUMB_H)
    font_px: int = 0
    line_height: float = 0.0
    anchor_y: Optional[float] = None


def hex_to_rgba(hex_color: str, alpha: int = 255) -> Tuple[int, int, int, int]:
    """Convert #rgb / #rrggbb / #rrggbbaa to an RGBA tuple."""
    h = (hex_color or "").strip().lstrip("#")
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    try:
        if len(h) == 8:
            r, g, b, a = (int(h[i:i + 2], 16) for i in (0, 2, 4, 6))
            return r, g, b, a
        if len(h) == 6:
            r, g, b = (int(h[i:i + 2], 16) for i in (0, 2, 4))
            return r, g, b, alpha
    except ValueError:
        pass
    raise ValidationError(f"Invalid color '{hex_color}'")


def load_font(size: int) -> ImageFont.FreeTypeFont:
    """Bold font with fallback chain: configured path, common system fonts, Pillow default."""
    candidates = [THUMBNAIL_FONT_PATH] if THUMBNAIL_FONT_PATH else []
    candidates.extend(BOLD_FONT_CANDIDATES)
    for name in candidates:
        if not name:
            continue
        if Path(name).is_absolute() and not Path(name).exists():
            continue
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    logger.warning("No bold TrueType font found, using Pillow default")
    return ImageFont.load_default(size=size)


def text_width(draw: ImageDraw.ImageDraw, text: str, font) -> float:
    return draw.textlength(text, font=font)


def wrap_text(text: str, font, max_width: float, draw: Optional[ImageDraw.ImageDraw] = None) -> List[str]:
    """
    Greedy word wrap: keep adding words while the line fits ``max_width``.
    A single word wider than the limit gets a line of its own.
    """
    if draw is None:
        draw = ImageDraw.Draw(Image.new("RGB", (1, 1)))
    words = (text or "").split()
    lines: List[str] = []
    line = ""
    for word in words:
        candidate = f"{line} {word}" if line else word
        if line and text_width(draw, candidate, font) > max_width:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    return lines


def anchor_y_for(position: str, height: int = THUMB_H) -> float:
    if position == "top":
        return EDGE_OFFSET
    if position == "bottom":
        return height - EDGE_OFFSET
    return height / 2


def decode_background(data: bytes) -> Image.Image:
    if not data:
        raise BackgroundDecodeError("Background image is empty")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise BackgroundDecodeError("Could not decode the background image", raw=str(e)) from e
    return img.convert("RGBA")


def _bottom_gradient(width: int, height: int) -> Image.Image:
    """Transparent at the vertical midpoint to 60% black at the bottom edge."""
    mid = height // 2
    span = max(1, height - 1 - mid)
    column = Image.new("L", (1, height), 0)
    column.putdata([
        0 if y < mid else round(GRADIENT_MAX_ALPHA * (y - mid) / span)
        for y in range(height)
    ])
    alpha = column.resize((width, height), Image.Resampling.NEAREST)
    black = Image.new("RGBA", (width, height), (0, 0, 0, 255))
    black.putalpha(alpha)
    return black


def _draw_lines(layer: Image.Image, lines: List[str], font, fill, top: float, line_height: float,
                offset: Tuple[int, int] = (0, 0)) -> None:
    draw = ImageDraw.Draw(layer)
    width = layer.width
    for i, line in enumerate(lines):
        cx = width / 2 + offset[0]
        cy = top + line_height * (i + 0.5) + offset[1]
        # "mm" anchor: middle of the line box, like textAlign=center + textBaseline=middle
        draw.text((cx, cy), line, font=font, fill=fill, anchor="mm")


def compose_thumbnail(
        background: bytes,
        overlay_text: Optional[str] = None,
        position: str = "bottom",
        style: Optional[OverlayStyle] = None,
        preview_scale: int = PREVIEW_SCALE,
) -> CompositeResult:
    style = style or OverlayStyle()
    position = (position or "bottom").lower().strip()
    if position not in POSITIONS:
        raise ValidationError(f"text position must be one of {list(POSITIONS)}")

    bg = decode_background(background)

    # 1) fill the canvas exactly (scale + center crop)
    canvas = ImageOps.fit(bg, (THUMB_W, THUMB_H), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))

    # 2) legibility gradient
    canvas = Image.alpha_composite(canvas, _bottom_gradient(THUMB_W, THUMB_H))

    result = CompositeResult(png=b"")
    text = (overlay_text or "").strip()

    # 3) text overlay
    if text:
        font_px = int(round(style.font_size * preview_scale))
        font = load_font(font_px)
        line_height = font_px * LINE_HEIGHT_RATIO
        max_width = THUMB_W - TEXT_MARGIN

        measure = ImageDraw.Draw(canvas)
        lines = wrap_text(text, font, max_width, measure)

        anchor = anchor_y_for(position)
        top = anchor - (line_height * len(lines)) / 2

        blur = style.shadow_blur * preview_scale
        if blur > 0 or style.shadow_color:
            shadow = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
            _draw_lines(shadow, lines, font, hex_to_rgba(style.shadow_color), top, line_height, SHADOW_OFFSET)
            if blur > 0:
                # canvas shadowBlur ~ 2 * gaussian sigma
                shadow = shadow.filter(ImageFilter.GaussianBlur(blur / 2))
            canvas = Image.alpha_composite(canvas, shadow)

        text_layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        _draw_lines(text_layer, lines, font, hex_to_rgba(style.color), top, line_height)
        canvas = Image.alpha_composite(canvas, text_layer)

        result.lines = lines
        result.font_px = font_px
        result.line_height = line_height
        result.anchor_y = anchor
        logger.info("Overlay: %d line(s) at %s, %spx", len(lines), position, font_px)

    # 4) lossless export
    buf = io.BytesIO()
    canvas.convert("RGB").save(buf, "PNG")
    result.png = buf.getvalue()
    result.size = canvas.size
    return result
