"""
ElevenLabs text-to-speech. Reads entries aloud in the sender's voice.

Every failure is a SpeechError with a message fit to show the user.
Playback itself is the client's job; this returns MP3 bytes.
"""

import logging
import random
import re
from typing import Optional

import httpx

from ..core.config import get_settings
from ..core.errors import SpeechError
from ..core.flags import get_flags

logger = logging.getLogger(__name__)

# Pre-made ElevenLabs voices
DEFAULT_VOICES = {
    "rachel": "21m00Tcm4TlvDq8ikWAM",  # warm female
    "adam": "pNInz6obpgDQGcFmaJgB",    # warm male
    "bella": "EXAVITQu4vr4xnSDxMaL",   # soft female
    "antoni": "ErXwobaYiN019PkySvjV",  # friendly male
    "elli": "MF3mGyEYCl7XYWbV9V6O",    # young female
    "josh": "TxGEqnHWrfWFTfGW9XjX",    # deep male
}

FALLBACK_VOICE_ID = DEFAULT_VOICES["bella"]

VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.0,
    "use_speaker_boost": True,
}

_client: Optional[httpx.AsyncClient] = None


def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(timeout=httpx.Timeout(connect=10, read=60, write=30, pool=10))
    return _client


def set_client(client: Optional[httpx.AsyncClient]) -> None:
    """Swap the shared client (tests inject one with a MockTransport)."""
    global _client
    _client = client


async def close_client():
    global _client
    if _client and not _client.is_closed:
        await _client.aclose()
        _client = None


def _api_key() -> str:
    if not get_flags().use_elevenlabs:
        raise SpeechError("Listening is turned off on this server.")
    key = get_settings().elevenlabs_api_key
    if not key:
        raise SpeechError("Speech is not configured. Add ELEVENLABS_API_KEY to the environment.")
    return key


def _error_message(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, dict) and detail.get("message"):
        return detail["message"]
    return f"ElevenLabs API error: {resp.status_code}"


async def synthesize(text: str, voice_id: Optional[str] = None) -> bytes:
    """Text → MP3 bytes. Raises SpeechError."""
    if not text or not text.strip():
        raise SpeechError("No text provided for speech generation")
    key = _api_key()
    settings = get_settings()
    voice_id = voice_id or FALLBACK_VOICE_ID

    try:
        resp = await _get_client().post(
            f"{settings.elevenlabs_base_url.rstrip('/')}/text-to-speech/{voice_id}",
            headers={
                "xi-api-key": key,
                "Content-Type": "application/json",
                "Accept": "audio/mpeg",
            },
            json={
                "text": text,
                "model_id": settings.elevenlabs_model_id,
                "voice_settings": VOICE_SETTINGS,
            },
        )
    except httpx.HTTPError as e:
        logger.error("ElevenLabs TTS request failed: %s", e)
        raise SpeechError("Could not reach the speech service. Please try again.") from e

    if resp.status_code != 200:
        message = _error_message(resp)
        logger.error("ElevenLabs TTS error %d: %s", resp.status_code, message)
        raise SpeechError(message)

    logger.info("Synthesized %d chars → %d bytes (voice=%s)", len(text), len(resp.content), voice_id)
    return resp.content


async def list_voices() -> list[dict]:
    """Voices available on the ElevenLabs account."""
    key = _api_key()
    settings = get_settings()
    try:
        resp = await _get_client().get(
            f"{settings.elevenlabs_base_url.rstrip('/')}/voices",
            headers={"xi-api-key": key},
        )
    except httpx.HTTPError as e:
        raise SpeechError("Could not reach the speech service. Please try again.") from e

    if resp.status_code != 200:
        raise SpeechError(f"Failed to fetch voices: {resp.status_code}")
    return resp.json().get("voices") or []


async def resolve_voice_id(store, user_id: str, sender_name: Optional[str]) -> str:
    """Sender's voice → the user's default voice → the built-in fallback."""
    if sender_name:
        mapping = await store.get_voice_for_sender(user_id, sender_name)
        if mapping and mapping.voice_id:
            return mapping.voice_id
    default = await store.get_default_voice(user_id)
    if default and default.voice_id:
        return default.voice_id
    return FALLBACK_VOICE_ID


def prepare_text_for_speech(text: Optional[str]) -> str:
    """Tidy text so it reads naturally: pauses for line breaks, plain quotes, end punctuation."""
    if not text:
        return ""
    prepared = re.sub(r"\n\n+", ". ", text)
    prepared = prepared.replace("\n", ", ")
    prepared = re.sub(r"[“”]", '"', prepared)
    prepared = re.sub(r"[‘’]", "'", prepared)
    prepared = re.sub(r"\s+", " ", prepared).strip()
    if prepared and not re.search(r"[.!?]$", prepared):
        prepared += "."
    return prepared


def create_memory_intro(sender_name: Optional[str], occasion: Optional[str] = None) -> str:
    options = [
        f"Here's a message from {sender_name or 'someone special'}.",
        f"This memory comes from {sender_name or 'a loved one'}.",
        f"{sender_name or 'Someone special'} wrote this{f' for {occasion}' if occasion else ''}.",
    ]
    return random.choice(options)
