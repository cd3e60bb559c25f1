"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import OwnedBase
from .user import User
from .memory import Memory, SOURCE_TYPES
from .entry import GratitudeEntry
from .surface import DailySurface
from .reflection import Reflection
from .voice import SenderVoice

__all__ = [
    "OwnedBase",
    "User",
    "Memory", "SOURCE_TYPES",
    "GratitudeEntry",
    "DailySurface",
    "Reflection",
    "SenderVoice",
]
