"""Shared fixtures: an isolated SQLite database per test and offline settings."""

import os

# Offline defaults before anything reads settings
os.environ.update({
    "FF_USE_AUTH0": "false",
    "FF_USE_S3": "false",
    "FF_USE_REDIS": "false",
    "FF_USE_OCR": "false",
    "FF_USE_TRANSCRIPTION": "false",
    "FF_USE_ELEVENLABS": "true",
    "FF_LLM_PROVIDER": "gemini",
    "GEMINI_API_KEY": "",
    "AIML_API_KEY": "",
    "OPENAI_API_KEY": "",
    "ELEVENLABS_API_KEY": "",
    "REDIS_URL": "",
})

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from gratitude.core.config import get_settings  # noqa: E402
from gratitude.core.database import build_engine, create_tables  # noqa: E402
from gratitude.core.flags import get_flags  # noqa: E402
from gratitude.services import llm, speech  # noqa: E402
from gratitude.services.normalizer import NormalizedEntry  # noqa: E402
from gratitude.services.store import GratitudeStore  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch, tmp_path):
    """Settings and flags are cached; rebuild them around every test."""
    monkeypatch.setenv("LOCAL_STORAGE_PATH", str(tmp_path / "storage"))
    get_settings.cache_clear()
    get_flags.cache_clear()
    yield
    get_settings.cache_clear()
    get_flags.cache_clear()
    llm.set_client(None)
    speech.set_client(None)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'garden.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db):
    return GratitudeStore(db)


def make_normalized(index: int = 0, **kwargs) -> NormalizedEntry:
    defaults = dict(
        entry_code=f"MEM-1000-{index}",
        core_theme="Appreciation",
        summary_story="Someone remembered an ordinary Tuesday and made it special.",
        specific_details=["A handwritten note"],
        reflection_prompt="Who made an ordinary day special for you?",
        tags=["Personal"],
        season="any",
        holiday_associations=[],
    )
    defaults.update(kwargs)
    return NormalizedEntry(**defaults)


async def add_entries(store: GratitudeStore, user_id: str, *specs: dict, sender: str = "Grandma"):
    """One memory holding one entry per spec. Returns the entries in creation order."""
    memory = await store.create_memory(
        user_id,
        extracted_text="Thank you for everything.",
        source_type="card",
        sender_name=sender,
        date_received=date(2025, 12, 1),
    )
    normalized = [make_normalized(i, **spec) for i, spec in enumerate(specs)]
    return await store.create_entries(user_id, memory.id, normalized)
