"""
Memory → gratitude entries pipeline.

    extract (LLM) ──ExtractionError──▶ []
        │
    normalize (validate, fallback, season/holiday tags)
        │
    persist entries, mark memory processed
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from . import extraction, realtime
from .normalizer import normalize_entries
from .store import GratitudeStore
from ..core.errors import ExtractionError
from ..models.entry import GratitudeEntry
from ..models.memory import Memory

logger = logging.getLogger(__name__)


def extraction_metadata(memory: Memory) -> dict:
    return {
        "sender": memory.sender_name,
        "occasion": memory.occasion,
        "date_received": memory.date_received.isoformat() if memory.date_received else None,
    }


async def process_memory(
    store: GratitudeStore,
    memory: Memory,
    now_ms: Optional[int] = None,
) -> list[GratitudeEntry]:
    """Derive and save entries for a memory. Never fails on extraction."""
    text = memory.extracted_text or ""
    metadata = extraction_metadata(memory)
    await realtime.memory_processing(memory.user_id, memory.id, "processing")

    try:
        raw = await extraction.extract(text, metadata)
    except ExtractionError as e:
        logger.warning("Extraction failed for memory %s, using fallback: %s", memory.id, e)
        raw = []

    normalized = normalize_entries(raw, text, metadata, now_ms=now_ms)
    try:
        entries = await store.create_entries(memory.user_id, memory.id, normalized)
        await store.mark_memory_processed(memory)
    except SQLAlchemyError:
        await realtime.memory_processing(memory.user_id, memory.id, "failed")
        raise

    await realtime.memory_processing(
        memory.user_id, memory.id, "completed", {"entries": len(entries)}
    )
    return entries
