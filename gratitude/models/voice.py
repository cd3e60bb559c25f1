"""
Sender voices: which ElevenLabs voice reads a given sender's words.

sender_key is the lower-cased sender name; lookups are case-insensitive.
voice_id may be empty, meaning "use the fallback voice".
"""

from sqlalchemy import String, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase


class SenderVoice(OwnedBase):
    __tablename__ = "sender_voices"
    __table_args__ = (
        UniqueConstraint("user_id", "sender_key", name="uq_sender_voice_user_sender"),
    )

    sender_name: Mapped[str] = mapped_column(String, nullable=False)
    sender_key: Mapped[str] = mapped_column(String, nullable=False)
    voice_id: Mapped[str] = mapped_column(String, nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
