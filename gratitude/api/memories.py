"""
Memories API: upload cards, letters and voice memos; browse what was extracted.

POST /v1/memories            — Upload a file and/or typed text → memory + entries
POST /v1/memories/transcribe — Preview the text extracted from a file
GET  /v1/memories            — List memories (newest first), ?q= to search
GET  /v1/memories/{id}       — One memory with its entries
GET  /v1/entries             — List entries, ?theme= and ?q= filters
GET  /v1/themes              — Theme counts across all entries
GET  /v1/themes/suggestions  — Themes to look for this season, and the theme categories
GET  /v1/files/{file_id}     — Serve a locally stored original
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from .schemas import EntryOut, MemoryDetail, MemoryOut
from ..core.auth import AuthenticatedUser
from ..core.dependencies import require_user, get_store, get_storage_dep, get_now
from ..core.storage import LocalStorage, StorageBackend
from ..models.memory import SOURCE_TYPES
from ..services.calendar import season_for, seasonal_theme_suggestions
from ..services.journal import process_memory
from ..services.normalizer import THEME_CATEGORIES, theme_counts
from ..services.store import GratitudeStore
from ..services.text_extraction import AUDIO_EXTENSIONS, extract_text, source_type_for

logger = logging.getLogger(__name__)

memories_router = APIRouter(tags=["memories"])

# ── Size limits ───────────────────────────────────────────────────────

MAX_UPLOAD_SIZE = 25 * 1024 * 1024  # 25 MB: phone photos and short voice memos


# ── Response models ───────────────────────────────────────────────────

class TranscribeResponse(BaseModel):
    text: str
    source_type: str
    metadata: dict = {}


class ThemeCount(BaseModel):
    theme: str
    count: int


class ThemeSuggestions(BaseModel):
    season: str
    suggestions: list[str]
    categories: dict[str, list[str]]


# ── POST /v1/memories ─────────────────────────────────────────────────

@memories_router.post("/memories", response_model=MemoryDetail)
async def create_memory(
    file: Optional[UploadFile] = File(None, description="Scan, photo, document or voice memo"),
    text: str = Form(""),
    sender_name: str = Form(""),
    occasion: str = Form(""),
    date_received: Optional[date] = Form(None),
    source_type: str = Form(""),
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
    storage: StorageBackend = Depends(get_storage_dep),
):
    """
    Save a memory and extract its gratitude entries.

    Typed text wins over text read from the file, so the user can correct
    a bad transcription before saving. Extraction never fails the request:
    when the model is unavailable a fallback entry is derived from the text.

    Example:
        curl -X POST http://localhost:8000/v1/memories \\
             -F "file=@card.jpg" -F "sender_name=Grandma" -F "occasion=Birthday"
    """
    if source_type and source_type not in SOURCE_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown source_type '{source_type}'. Supported: {', '.join(SOURCE_TYPES)}",
        )

    image_url = None
    audio_url = None
    extracted = ""
    filename = None

    if file is not None and file.filename:
        filename = file.filename
        file_bytes = await _read_upload(file)
        extracted, meta = await extract_text(file_bytes, filename)
        logger.info("Extracted %d chars from %s via %s", len(extracted), filename, meta.get("extractor"))

        try:
            url = await storage.upload(
                file_bytes=file_bytes, filename=filename,
                user_id=user.user_id, folder="memories",
            )
            url = _public_url(storage, url)
            if _is_audio(filename):
                audio_url = url
            else:
                image_url = url
        except Exception as e:
            # The text is what matters; keep going without the original
            logger.warning("Could not store original %s: %s", filename, e)

    body = text.strip() or extracted.strip()
    if not body:
        raise HTTPException(
            status_code=400,
            detail="No text found. Type the message or upload a clearer file.",
        )

    memory = await store.create_memory(
        user.user_id,
        extracted_text=body,
        original_image_url=image_url,
        audio_url=audio_url,
        source_type=source_type or (source_type_for(filename) if filename else "note"),
        sender_name=sender_name.strip() or None,
        occasion=occasion.strip() or None,
        date_received=date_received,
    )
    entries = await process_memory(store, memory)

    detail = MemoryDetail.model_validate(memory)
    detail.entries = [EntryOut.model_validate(e) for e in entries]
    return detail


# ── POST /v1/memories/transcribe ──────────────────────────────────────

@memories_router.post("/memories/transcribe", response_model=TranscribeResponse)
async def transcribe(
    file: UploadFile = File(...),
):
    """Read a file without saving anything, so the user can review the text."""
    filename = file.filename or "upload"
    file_bytes = await _read_upload(file)
    extracted, meta = await extract_text(file_bytes, filename)
    return TranscribeResponse(
        text=extracted.strip(),
        source_type=source_type_for(filename),
        metadata=meta,
    )


# ── GET /v1/memories ──────────────────────────────────────────────────

@memories_router.get("/memories", response_model=list[MemoryOut])
async def list_memories(
    q: Optional[str] = None,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    memories = await store.list_memories(user.user_id, query=q)
    return [MemoryOut.model_validate(m) for m in memories]


@memories_router.get("/memories/{memory_id}", response_model=MemoryDetail)
async def get_memory(
    memory_id: str,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    memory = await store.get_memory(user.user_id, memory_id)
    if not memory:
        raise HTTPException(status_code=404, detail="Memory not found")

    entries = await store.list_entries(user.user_id, memory_id=memory.id)
    detail = MemoryDetail.model_validate(memory)
    detail.entries = [EntryOut.model_validate(e) for e in entries]
    return detail


# ── Entries & themes ──────────────────────────────────────────────────

@memories_router.get("/entries", response_model=list[EntryOut])
async def list_entries(
    theme: Optional[str] = None,
    q: Optional[str] = None,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    entries = await store.list_entries(user.user_id, theme=theme, query=q)
    return [EntryOut.model_validate(e) for e in entries]


@memories_router.get("/themes", response_model=list[ThemeCount])
async def list_themes(
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    entries = await store.list_entries(user.user_id)
    return [ThemeCount(**t) for t in theme_counts(entries)]


@memories_router.get("/themes/suggestions", response_model=ThemeSuggestions)
async def theme_suggestions(now: datetime = Depends(get_now)):
    """Prompts for what to upload next, matched to the current season."""
    season = season_for(now.date())
    return ThemeSuggestions(
        season=season,
        suggestions=seasonal_theme_suggestions(season),
        categories=THEME_CATEGORIES,
    )


# ── GET /v1/files/{file_id} ───────────────────────────────────────────

@memories_router.get("/files/{file_id}")
async def serve_file(
    file_id: str,
    user: AuthenticatedUser = Depends(require_user),
    storage: StorageBackend = Depends(get_storage_dep),
):
    """Serve one of the caller's locally stored scans or voice memos."""
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=404, detail="Direct file serving only in local mode")

    found = await storage.read_file(file_id, user.user_id, folder="memories")
    if not found:
        raise HTTPException(status_code=404, detail="File not found")
    content, content_type = found
    return Response(content=content, media_type=content_type)


# ── Helpers ───────────────────────────────────────────────────────────

async def _read_upload(file: UploadFile) -> bytes:
    file_bytes = await file.read()
    if len(file_bytes) == 0:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(file_bytes) > MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File too large (max {MAX_UPLOAD_SIZE // (1024 * 1024)}MB)",
        )
    return file_bytes


def _is_audio(filename: str) -> bool:
    return any(filename.lower().endswith(ext) for ext in AUDIO_EXTENSIONS)


def _public_url(storage: StorageBackend, path: str) -> str:
    """Local files are served by /v1/files; S3 returns a full URL."""
    if isinstance(storage, LocalStorage):
        return f"/v1/files/{Path(path).stem}"
    return path
