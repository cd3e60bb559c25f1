"""
Memories: one uploaded artifact (card, letter, note, email, photo, voice memo).

Written once on upload. The only later change is is_processed flipping to
true after entries were extracted.
"""

from datetime import date

from sqlalchemy import String, Text, Boolean, Date
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase

SOURCE_TYPES = ("card", "letter", "note", "email", "photo", "audio", "other")


class Memory(OwnedBase):
    __tablename__ = "memories"

    extracted_text: Mapped[str] = mapped_column(Text, nullable=True)
    original_image_url: Mapped[str] = mapped_column(Text, nullable=True)
    audio_url: Mapped[str] = mapped_column(Text, nullable=True)
    source_type: Mapped[str] = mapped_column(String, nullable=False, default="card")
    sender_name: Mapped[str] = mapped_column(String, nullable=True, index=True)
    occasion: Mapped[str] = mapped_column(String, nullable=True)
    date_received: Mapped[date] = mapped_column(Date, nullable=True)
    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
