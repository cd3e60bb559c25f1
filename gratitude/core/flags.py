"""
Central feature flags. One file controls every external dependency.

Set via environment variables (prefix FF_) or .env file.
When a flag is OFF, the system uses a local/mock fallback. Nothing crashes.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Auth ─────────────────────────────────────────────────────────
    use_auth0: bool = Field(default=True, alias="FF_USE_AUTH0")
    # ON  → JWT validated via Auth0 JWKS. Needs AUTH0_DOMAIN, AUTH0_AUDIENCE.
    # OFF → Dev user injected (user_id="dev-user"). No token needed.

    # ── Storage ──────────────────────────────────────────────────────
    use_s3: bool = Field(default=True, alias="FF_USE_S3")
    # ON  → Scans and recordings go to AWS S3. Needs AWS creds + S3_BUCKET_NAME.
    # OFF → Files saved to LOCAL_STORAGE_PATH/{user_id}/. Returns local paths.

    # ── Realtime ─────────────────────────────────────────────────────
    use_redis: bool = Field(default=True, alias="FF_USE_REDIS")
    # ON  → Redis pub/sub for upload progress. Needs REDIS_URL.
    # OFF → Notifications silently skipped. Nothing breaks.

    # ── OCR ──────────────────────────────────────────────────────────
    use_ocr: bool = Field(default=True, alias="FF_USE_OCR")
    # ON  → Scanned PDFs via AIML OCR, photos via vision LLM.
    # OFF → Only pdfplumber / python-docx. Scans → empty text, user types it.

    # ── Audio transcription ──────────────────────────────────────────
    use_transcription: bool = Field(default=True, alias="FF_USE_TRANSCRIPTION")
    # ON  → Voice memos transcribed via /audio/transcriptions. Needs OPENAI_API_KEY.
    # OFF → Audio stored without text. User types it.

    # ── LLM Provider ─────────────────────────────────────────────────
    llm_provider: str = Field(default="gemini", alias="FF_LLM_PROVIDER")
    # "gemini" → Google Gemini (default). Needs GEMINI_API_KEY.
    # "aiml"   → AIML API proxy. Needs AIML_API_KEY.
    # "openai" → Direct OpenAI. Needs OPENAI_API_KEY.
    # No key at all → extraction falls back to keyword themes.

    # ── Speech ───────────────────────────────────────────────────────
    use_elevenlabs: bool = Field(default=True, alias="FF_USE_ELEVENLABS")
    # ON  → "Listen" reads entries aloud. Needs ELEVENLABS_API_KEY.
    # OFF → Speech endpoints answer 503 with a friendly message.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
