# /thumbcraft/models/thumbnail.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey, Integer, DateTime, JSON
from sqlalchemy.dialects.mysql import LONGTEXT

from thumbcraft.core.database import Base

# data URIs easily exceed MySQL TEXT (64KB)
ImageText = Text().with_variant(LONGTEXT(), "mysql")


class Thumbnail(Base):
    """One row per successful generation. Immutable; owner may delete."""
    __tablename__ = "thumbnails"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    text_input: Mapped[str] = mapped_column(Text)
    template_used: Mapped[str] = mapped_column(String(20))
    prompt: Mapped[str] = mapped_column(Text)

    overlay_text: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    text_position: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    # {"font_size": 48, "color": "#ffffff", "shadow_color": "#000000", "shadow_blur": 10}
    overlay_style: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    image_url: Mapped[str] = mapped_column(ImageText)
    credits_used: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
