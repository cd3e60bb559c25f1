"""
Text extraction from uploaded memories.
- pdfplumber for normal PDFs (free, local); AIML OCR for scanned PDFs (flagged)
- python-docx for Word documents
- vision LLM transcription for photos of cards and letters (flagged)
- /audio/transcriptions for voice memos (flagged)
"""

import base64
import logging
from io import BytesIO
from pathlib import Path

import httpx

from . import llm
from ..core.config import get_settings
from ..core.flags import get_flags
from ..core.storage import guess_content_type

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tiff", ".heic"}
AUDIO_EXTENSIONS = {".mp3", ".m4a", ".wav", ".ogg", ".webm", ".aac", ".flac"}
TEXT_EXTENSIONS = {".txt", ".md", ".eml"}
PDF_MIN_CHARS = 100

IMAGE_TRANSCRIPTION_PROMPT = (
    "Please extract all the text from this image. This is a scanned card, letter, or note. "
    "Transcribe exactly what you see, preserving the original formatting and line breaks as "
    "much as possible. Only output the text content, nothing else."
)


def source_type_for(filename: str) -> str:
    """Best-guess memory source type from the file extension."""
    ext = Path(filename).suffix.lower()
    if ext in AUDIO_EXTENSIONS:
        return "audio"
    if ext in IMAGE_EXTENSIONS:
        return "photo"
    if ext == ".eml":
        return "email"
    return "letter"


async def extract_text(file_bytes: bytes, filename: str) -> tuple[str, dict]:
    """
    Extract text from a file. Returns (text, metadata).
    Unsupported or failed extraction returns empty text; the user can type it.
    """
    ext = Path(filename).suffix.lower()
    metadata = {"filename": filename, "used_ocr": False}

    if ext == ".pdf":
        text = _extract_pdf(file_bytes)
        metadata["extractor"] = "pdfplumber"

        # Too little text → probably a scan
        if get_flags().use_ocr and len(text.strip()) < PDF_MIN_CHARS:
            ocr_text = await _ocr_extract(file_bytes, filename)
            if len(ocr_text.strip()) > len(text.strip()):
                text = ocr_text
                metadata["used_ocr"] = True
                metadata["extractor"] = "aiml_ocr"

    elif ext == ".docx":
        text = _extract_docx(file_bytes)
        metadata["extractor"] = "python-docx"

    elif ext in TEXT_EXTENSIONS:
        text = file_bytes.decode("utf-8", errors="replace")
        metadata["extractor"] = "plaintext"

    elif ext in IMAGE_EXTENSIONS:
        text = await _transcribe_image(file_bytes, filename) if get_flags().use_ocr else ""
        metadata["used_ocr"] = bool(text)
        metadata["extractor"] = "vision_llm" if text else "none"

    elif ext in AUDIO_EXTENSIONS:
        text = await _transcribe_audio(file_bytes, filename) if get_flags().use_transcription else ""
        metadata["extractor"] = "transcription" if text else "none"

    else:
        text = ""
        metadata["extractor"] = "unsupported"

    metadata["char_count"] = len(text)
    return text, metadata


def _extract_pdf(file_bytes: bytes) -> str:
    """Extract text from PDF using pdfplumber (local, free)."""
    try:
        import pdfplumber

        with pdfplumber.open(BytesIO(file_bytes)) as pdf:
            return "\n\n".join(page.extract_text() or "" for page in pdf.pages)
    except Exception as e:
        logger.error("pdfplumber extraction failed: %s", e)
        return ""


def _extract_docx(file_bytes: bytes) -> str:
    """Extract text from DOCX."""
    try:
        import docx

        doc = docx.Document(BytesIO(file_bytes))
        return "\n\n".join(para.text for para in doc.paragraphs if para.text)
    except Exception as e:
        logger.error("DOCX extraction failed: %s", e)
        return ""


async def _transcribe_image(file_bytes: bytes, filename: str) -> str:
    """Read a photographed card or letter with the vision model."""
    if not llm.is_configured():
        logger.warning("Image transcription requested but no LLM key is set")
        return ""
    encoded = base64.b64encode(file_bytes).decode("utf-8")
    data_uri = f"data:{guess_content_type(filename)};base64,{encoded}"
    try:
        text = await llm.chat_with_vision(IMAGE_TRANSCRIPTION_PROMPT, [data_uri])
        return text.strip()
    except Exception as e:
        logger.error("Image transcription failed: %s", e)
        return ""


async def _transcribe_audio(file_bytes: bytes, filename: str) -> str:
    """Voice memo → text via an OpenAI-compatible transcription endpoint."""
    settings = get_settings()
    if not settings.openai_api_key:
        logger.warning("Audio transcription requested but OPENAI_API_KEY not set")
        return ""

    try:
        async with httpx.AsyncClient(timeout=120) as client:
            resp = await client.post(
                f"{settings.openai_base_url.rstrip('/')}/audio/transcriptions",
                headers={"Authorization": f"Bearer {settings.openai_api_key}"},
                data={"model": settings.transcription_model},
                files={"file": (filename, file_bytes, guess_content_type(filename))},
            )
            if resp.status_code != 200:
                logger.error("Transcription API error: %s %s", resp.status_code, resp.text[:200])
                return ""
            return (resp.json().get("text") or "").strip()
    except Exception as e:
        logger.error("Audio transcription failed: %s", e)
        return ""


async def _ocr_extract(file_bytes: bytes, filename: str) -> str:
    """OCR via AIML API (Google Document AI). Only called if FF_USE_OCR=true."""
    settings = get_settings()
    if not settings.aiml_api_key:
        logger.warning("OCR requested but AIML_API_KEY not set")
        return ""

    try:
        async with httpx.AsyncClient(timeout=60) as client:
            resp = await client.post(
                f"{settings.aiml_base_url.rstrip('/')}/ocr",
                json={
                    "model": settings.aiml_ocr_model,
                    "document": base64.b64encode(file_bytes).decode("utf-8"),
                    "mimeType": guess_content_type(filename),
                },
                headers={
                    "Authorization": f"Bearer {settings.aiml_api_key}",
                    "Content-Type": "application/json",
                },
            )

            if resp.status_code not in (200, 201):
                logger.error("OCR API error: %s %s", resp.status_code, resp.text[:200])
                return ""

            result = resp.json()
            if result.get("text"):
                return result["text"]

            return "\n\n".join(
                page.get("markdown") or page.get("text") or ""
                for page in result.get("pages", [])
            )

    except Exception as e:
        logger.error("OCR failed: %s", e)
        return ""
