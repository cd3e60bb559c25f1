"""
FastAPI application factory.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.database import init_db, close_db
from .core.errors import SpeechError, StoreError
from .core.redis import close_redis
from .api.router import router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Gratitude Garden",
        description="A gratitude journal that resurfaces one memory a day",
        version="1.0.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors ───────────────────────────────────────────────────
    @app.exception_handler(StoreError)
    async def on_store_error(request: Request, exc: StoreError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(SpeechError)
    async def on_speech_error(request: Request, exc: SpeechError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting Gratitude Garden (env=%s)", settings.env)

        # Create database tables
        await init_db()

        # Log feature flag state
        from .core.flags import get_flags
        flags = get_flags()
        logger.info(
            "Flags: auth0=%s s3=%s redis=%s ocr=%s transcription=%s elevenlabs=%s llm=%s",
            flags.use_auth0, flags.use_s3, flags.use_redis, flags.use_ocr,
            flags.use_transcription, flags.use_elevenlabs, flags.llm_provider,
        )
        logger.info("Recency window: %d days", settings.recency_window_days)

        logger.info("Gratitude Garden is ready")

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        from .services import llm, speech
        await llm.close_client()
        await speech.close_client()
        await close_db()
        await close_redis()
        logger.info("Gratitude Garden shut down")

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app
