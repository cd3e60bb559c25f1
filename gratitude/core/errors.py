"""
Error taxonomy. None of these is fatal to the process:

- ExtractionError → recovered by the normalizer's keyword fallback
- SpeechError     → shown to the user, playback skipped
- StoreError      → "could not load" on reads; surface insert race re-reads
"""


class GratitudeError(Exception):
    """Base for all application errors."""


class ExtractionError(GratitudeError):
    """LLM extraction unavailable or returned unparseable output."""


class SpeechError(GratitudeError):
    """Speech synthesis unavailable, not configured, or given empty text."""


class StoreError(GratitudeError):
    """Persistence failure."""
