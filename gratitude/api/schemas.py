"""
Response models shared across routers.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    memory_id: str
    entry_code: str
    core_theme: str
    summary_story: str
    specific_details: list[str] = []
    reflection_prompt: str
    tags: list[str] = []
    season: str = "any"
    holiday_associations: list[str] = []
    created_at: Optional[datetime] = None


class MemoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    source_type: str
    sender_name: Optional[str] = None
    occasion: Optional[str] = None
    date_received: Optional[date] = None
    extracted_text: Optional[str] = None
    original_image_url: Optional[str] = None
    audio_url: Optional[str] = None
    is_processed: bool = False
    created_at: Optional[datetime] = None


class MemoryDetail(MemoryOut):
    entries: list[EntryOut] = []


class ReflectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    entry_id: Optional[str] = None
    memory_id: Optional[str] = None
    text: str
    created_at: Optional[datetime] = None


class VoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_name: str
    voice_id: Optional[str] = None
    notes: Optional[str] = None
    is_default: bool = False
