"""
Voices API: who reads which sender's words, and text-to-speech.

GET    /v1/voices                   — Saved sender → voice mappings
PUT    /v1/voices                   — Create or update a sender's voice
DELETE /v1/voices/{sender}          — Remove a sender's voice
POST   /v1/voices/{sender}/default  — Use this sender's voice when nothing else matches
GET    /v1/voices/senders           — Distinct senders across memories
GET    /v1/voices/presets           — Built-in voices
GET    /v1/voices/available         — Voices on the ElevenLabs account
POST   /v1/speech                   — Read text (or an entry) aloud → audio/mpeg
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel

from .schemas import VoiceOut
from ..core.auth import AuthenticatedUser
from ..core.dependencies import require_user, get_store
from ..services import speech
from ..services.store import GratitudeStore

logger = logging.getLogger(__name__)

voices_router = APIRouter(tags=["voices"])


class VoiceRequest(BaseModel):
    sender_name: str
    voice_id: Optional[str] = None
    notes: Optional[str] = None


class SpeechRequest(BaseModel):
    text: Optional[str] = None
    entry_id: Optional[str] = None
    sender_name: Optional[str] = None
    voice_id: Optional[str] = None
    with_intro: bool = False


# ── Sender voices ─────────────────────────────────────────────────────

@voices_router.get("/voices", response_model=list[VoiceOut])
async def list_voices(
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    voices = await store.list_voices(user.user_id)
    return [VoiceOut.model_validate(v) for v in voices]


@voices_router.put("/voices", response_model=VoiceOut)
async def save_voice(
    request: VoiceRequest,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    if not request.sender_name.strip():
        raise HTTPException(status_code=400, detail="sender_name is required")
    voice = await store.upsert_voice(
        user.user_id, request.sender_name, voice_id=request.voice_id, notes=request.notes,
    )
    return VoiceOut.model_validate(voice)


@voices_router.get("/voices/senders", response_model=list[str])
async def list_senders(
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    return await store.unique_senders(user.user_id)


@voices_router.get("/voices/presets")
async def list_presets():
    return [{"name": name, "voice_id": voice_id} for name, voice_id in speech.DEFAULT_VOICES.items()]


@voices_router.get("/voices/available")
async def list_available_voices():
    """Account voices from ElevenLabs. 503 when speech is not configured."""
    voices = await speech.list_voices()
    return [
        {
            "voice_id": v.get("voice_id"),
            "name": v.get("name"),
            "category": v.get("category"),
            "labels": v.get("labels") or {},
        }
        for v in voices
    ]


@voices_router.delete("/voices/{sender_name}")
async def delete_voice(
    sender_name: str,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    if not await store.delete_voice(user.user_id, sender_name):
        raise HTTPException(status_code=404, detail="Voice not found")
    return {"deleted": True, "sender_name": sender_name}


@voices_router.post("/voices/{sender_name}/default", response_model=VoiceOut)
async def set_default_voice(
    sender_name: str,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    voice = await store.set_default_voice(user.user_id, sender_name)
    if not voice:
        raise HTTPException(status_code=404, detail="Voice not found")
    logger.info("Default voice for %s is now %s", user.user_id, voice.sender_key)
    return VoiceOut.model_validate(voice)


# ── POST /v1/speech ───────────────────────────────────────────────────

@voices_router.post("/speech")
async def speak(
    request: SpeechRequest,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    """
    Read text aloud. With entry_id, reads the entry's story in the voice
    mapped to the sender of its memory.
    """
    text = request.text or ""
    sender_name = request.sender_name
    occasion = None

    if request.entry_id:
        entry = await store.get_entry(user.user_id, request.entry_id)
        if not entry:
            raise HTTPException(status_code=404, detail="Entry not found")
        text = text or entry.summary_story
        memory = await store.get_memory(user.user_id, entry.memory_id)
        if memory:
            sender_name = sender_name or memory.sender_name
            occasion = memory.occasion

    text = speech.prepare_text_for_speech(text)
    if not text:
        raise HTTPException(status_code=400, detail="No text provided for speech generation")
    if request.with_intro:
        text = f"{speech.create_memory_intro(sender_name, occasion)} {text}"

    voice_id = request.voice_id or await speech.resolve_voice_id(store, user.user_id, sender_name)
    audio = await speech.synthesize(text, voice_id)
    return Response(content=audio, media_type="audio/mpeg")
