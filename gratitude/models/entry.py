"""
Gratitude entries: structured units extracted from a memory.
Created in a batch, immutable. Season and holidays are computed once at
creation from the entry's own text.
"""

from sqlalchemy import String, Text, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase


class GratitudeEntry(OwnedBase):
    __tablename__ = "gratitude_entries"

    memory_id: Mapped[str] = mapped_column(
        String, ForeignKey("memories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entry_code: Mapped[str] = mapped_column(String, nullable=False)
    core_theme: Mapped[str] = mapped_column(String, nullable=False, index=True)
    summary_story: Mapped[str] = mapped_column(Text, nullable=False)
    specific_details: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    reflection_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    season: Mapped[str] = mapped_column(String, nullable=False, default="any")
    holiday_associations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
