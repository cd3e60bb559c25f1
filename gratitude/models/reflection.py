"""
Reflections: what the user wrote in response to a surfaced entry.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase


class Reflection(OwnedBase):
    __tablename__ = "reflections"

    entry_id: Mapped[str] = mapped_column(String, nullable=True, index=True)
    memory_id: Mapped[str] = mapped_column(String, nullable=True, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
