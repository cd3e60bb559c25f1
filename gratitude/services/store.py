"""
Persistence for the journal: users, memories, entries, daily surfaces,
reflections and sender voices. One GratitudeStore per request session.

Read failures raise StoreError. The daily surface insert is guarded by the
(user_id, surfaced_date) unique constraint: a losing insert is rolled back
to its savepoint and the winning row is returned instead.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Iterable, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import StoreError
from ..models.entry import GratitudeEntry
from ..models.memory import Memory
from ..models.reflection import Reflection
from ..models.surface import DailySurface
from ..models.user import User
from ..models.voice import SenderVoice

if TYPE_CHECKING:
    from .normalizer import NormalizedEntry

logger = logging.getLogger(__name__)


def sender_key(name: str) -> str:
    return name.strip().lower()


@contextmanager
def _reading(what: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Failed to load %s: %s", what, e)
        raise StoreError(f"Could not load {what}") from e


class GratitudeStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Users ────────────────────────────────────────────────────────

    async def get_user(self, user_id: str) -> Optional[User]:
        with _reading("user"):
            return await self.db.get(User, user_id)

    async def ensure_user(self, user_id: str, email: str = "", name: str = "") -> User:
        user = await self.get_user(user_id)
        if user:
            return user
        user = User(id=user_id, email=email or None, name=name or None)
        try:
            async with self.db.begin_nested():
                self.db.add(user)
        except IntegrityError:
            # Created by a concurrent request
            user = await self.get_user(user_id)
            if user is None:
                raise StoreError("Could not create user")
            return user
        logger.info("Created user %s", user_id)
        return user

    # ── Memories ─────────────────────────────────────────────────────

    async def create_memory(self, user_id: str, **fields) -> Memory:
        memory = Memory(user_id=user_id, is_processed=False, **fields)
        self.db.add(memory)
        await self.db.flush()
        return memory

    async def get_memory(self, user_id: str, memory_id: str) -> Optional[Memory]:
        with _reading("memory"):
            result = await self.db.execute(
                select(Memory).where(Memory.id == memory_id, Memory.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def list_memories(self, user_id: str, query: Optional[str] = None) -> list[Memory]:
        """Newest first. `query` matches sender, occasion or text (case-insensitive)."""
        stmt = select(Memory).where(Memory.user_id == user_id)
        if query and query.strip():
            term = query.strip()
            stmt = stmt.where(
                or_(
                    Memory.sender_name.icontains(term),
                    Memory.occasion.icontains(term),
                    Memory.extracted_text.icontains(term),
                )
            )
        with _reading("memories"):
            result = await self.db.execute(stmt.order_by(Memory.created_at.desc()))
            return list(result.scalars().all())

    async def mark_memory_processed(self, memory: Memory) -> None:
        memory.is_processed = True
        await self.db.flush()

    async def unique_senders(self, user_id: str) -> list[str]:
        """Distinct sender names across memories, first spelling wins, sorted."""
        with _reading("senders"):
            result = await self.db.execute(
                select(Memory.sender_name).where(
                    Memory.user_id == user_id,
                    Memory.sender_name.is_not(None),
                )
            )
            names = result.scalars().all()

        seen: dict[str, str] = {}
        for name in names:
            if name and name.strip():
                seen.setdefault(sender_key(name), name.strip())
        return sorted(seen.values(), key=str.lower)

    # ── Entries ──────────────────────────────────────────────────────

    async def create_entries(
        self, user_id: str, memory_id: str, entries: Iterable["NormalizedEntry"]
    ) -> list[GratitudeEntry]:
        rows = [
            GratitudeEntry(
                user_id=user_id,
                memory_id=memory_id,
                entry_code=e.entry_code,
                core_theme=e.core_theme,
                summary_story=e.summary_story,
                specific_details=list(e.specific_details),
                reflection_prompt=e.reflection_prompt,
                tags=list(e.tags),
                season=e.season,
                holiday_associations=list(e.holiday_associations),
            )
            for e in entries
        ]
        self.db.add_all(rows)
        await self.db.flush()
        logger.info("Saved %d entries for memory %s", len(rows), memory_id)
        return rows

    async def list_entries(
        self,
        user_id: str,
        memory_id: Optional[str] = None,
        theme: Optional[str] = None,
        query: Optional[str] = None,
    ) -> list[GratitudeEntry]:
        """Oldest first, id as tie-break. The selector depends on this order."""
        stmt = select(GratitudeEntry).where(GratitudeEntry.user_id == user_id)
        if memory_id:
            stmt = stmt.where(GratitudeEntry.memory_id == memory_id)
        if theme:
            stmt = stmt.where(GratitudeEntry.core_theme == theme)
        if query and query.strip():
            term = query.strip()
            stmt = stmt.where(
                or_(
                    GratitudeEntry.core_theme.icontains(term),
                    GratitudeEntry.summary_story.icontains(term),
                    GratitudeEntry.reflection_prompt.icontains(term),
                )
            )
        stmt = stmt.order_by(GratitudeEntry.created_at.asc(), GratitudeEntry.id.asc())
        with _reading("entries"):
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def get_entry(self, user_id: str, entry_id: str) -> Optional[GratitudeEntry]:
        with _reading("entry"):
            result = await self.db.execute(
                select(GratitudeEntry).where(
                    GratitudeEntry.id == entry_id,
                    GratitudeEntry.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()

    # ── Daily surfaces ───────────────────────────────────────────────

    async def get_surface(self, user_id: str, surfaced_date: date) -> Optional[DailySurface]:
        with _reading("daily surface"):
            result = await self.db.execute(
                select(DailySurface).where(
                    DailySurface.user_id == user_id,
                    DailySurface.surfaced_date == surfaced_date,
                )
            )
            return result.scalar_one_or_none()

    async def insert_surface_if_absent(
        self, user_id: str, surfaced_date: date, entry_id: str, reason: str
    ) -> DailySurface:
        """Insert the day's surface, or return the row that got there first."""
        surface, _ = await self.try_insert_surface(user_id, surfaced_date, entry_id, reason)
        return surface

    async def try_insert_surface(
        self, user_id: str, surfaced_date: date, entry_id: str, reason: str
    ) -> tuple[DailySurface, bool]:
        """Like insert_surface_if_absent, plus whether this call wrote the row."""
        existing = await self.get_surface(user_id, surfaced_date)
        if existing:
            return existing, False

        surface = DailySurface(
            user_id=user_id,
            entry_id=entry_id,
            surfaced_date=surfaced_date,
            surfacing_reason=reason,
            viewed=False,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(surface)
        except IntegrityError:
            logger.info("Surface for user=%s on %s already written, re-reading", user_id, surfaced_date)
            winner = await self.get_surface(user_id, surfaced_date)
            if winner is None:
                raise StoreError("Could not load daily surface")
            return winner, False
        return surface, True

    async def list_recent_surfaces(self, user_id: str, since: date) -> list[DailySurface]:
        with _reading("surface history"):
            result = await self.db.execute(
                select(DailySurface)
                .where(
                    DailySurface.user_id == user_id,
                    DailySurface.surfaced_date >= since,
                )
                .order_by(DailySurface.surfaced_date.desc())
            )
            return list(result.scalars().all())

    async def mark_viewed(self, user_id: str, surfaced_date: date) -> Optional[DailySurface]:
        surface = await self.get_surface(user_id, surfaced_date)
        if surface and not surface.viewed:
            surface.viewed = True
            surface.viewed_at = datetime.now(timezone.utc)
            await self.db.flush()
        return surface

    # ── Reflections ──────────────────────────────────────────────────

    async def save_reflection(
        self,
        user_id: str,
        entry_id: Optional[str],
        text: str,
        memory_id: Optional[str] = None,
    ) -> Reflection:
        """Append a reflection and link it into the latest surface of that entry."""
        reflection = Reflection(user_id=user_id, entry_id=entry_id, memory_id=memory_id, text=text)
        self.db.add(reflection)
        await self.db.flush()

        if entry_id:
            result = await self.db.execute(
                select(DailySurface)
                .where(
                    DailySurface.user_id == user_id,
                    DailySurface.entry_id == entry_id,
                )
                .order_by(DailySurface.surfaced_date.desc())
                .limit(1)
            )
            surface = result.scalar_one_or_none()
            if surface:
                surface.reflection_id = reflection.id
                await self.db.flush()

        return reflection

    async def list_reflections(self, user_id: str, entry_id: Optional[str] = None) -> list[Reflection]:
        stmt = select(Reflection).where(Reflection.user_id == user_id)
        if entry_id:
            stmt = stmt.where(Reflection.entry_id == entry_id)
        with _reading("reflections"):
            result = await self.db.execute(stmt.order_by(Reflection.created_at.desc()))
            return list(result.scalars().all())

    # ── Sender voices ────────────────────────────────────────────────

    async def list_voices(self, user_id: str) -> list[SenderVoice]:
        with _reading("voices"):
            result = await self.db.execute(
                select(SenderVoice)
                .where(SenderVoice.user_id == user_id)
                .order_by(SenderVoice.sender_key.asc())
            )
            return list(result.scalars().all())

    async def get_voice_for_sender(self, user_id: str, sender_name: str) -> Optional[SenderVoice]:
        with _reading("voice"):
            result = await self.db.execute(
                select(SenderVoice).where(
                    SenderVoice.user_id == user_id,
                    SenderVoice.sender_key == sender_key(sender_name),
                )
            )
            return result.scalar_one_or_none()

    async def get_default_voice(self, user_id: str) -> Optional[SenderVoice]:
        with _reading("voice"):
            result = await self.db.execute(
                select(SenderVoice).where(
                    SenderVoice.user_id == user_id,
                    SenderVoice.is_default == True,  # noqa: E712
                )
            )
            return result.scalars().first()

    async def upsert_voice(
        self,
        user_id: str,
        sender_name: str,
        voice_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> SenderVoice:
        """Upsert by sender name (case-insensitive)."""
        existing = await self.get_voice_for_sender(user_id, sender_name)
        if existing:
            existing.sender_name = sender_name.strip()
            existing.voice_id = voice_id or None
            existing.notes = notes or None
            await self.db.flush()
            return existing

        voice = SenderVoice(
            user_id=user_id,
            sender_name=sender_name.strip(),
            sender_key=sender_key(sender_name),
            voice_id=voice_id or None,
            notes=notes or None,
            is_default=False,
        )
        self.db.add(voice)
        await self.db.flush()
        logger.debug("Saved voice for %s/%s", user_id, voice.sender_key)
        return voice

    async def delete_voice(self, user_id: str, sender_name: str) -> bool:
        voice = await self.get_voice_for_sender(user_id, sender_name)
        if not voice:
            return False
        await self.db.delete(voice)
        await self.db.flush()
        return True

    async def set_default_voice(self, user_id: str, sender_name: str) -> Optional[SenderVoice]:
        """Make one sender the default. Clears the flag on every other voice first."""
        voice = await self.get_voice_for_sender(user_id, sender_name)
        if not voice:
            return None
        await self.db.execute(
            update(SenderVoice)
            .where(SenderVoice.user_id == user_id, SenderVoice.id != voice.id)
            .values(is_default=False)
        )
        voice.is_default = True
        await self.db.flush()
        return voice

    # ── Admin ────────────────────────────────────────────────────────

    async def copy_memories_to_user(
        self, source_user_id: str, memory_ids: list[str], target_user_id: str
    ) -> int:
        """Copy memories and their entries into another account. Returns memories copied."""
        with _reading("memories"):
            result = await self.db.execute(
                select(Memory).where(
                    Memory.user_id == source_user_id,
                    Memory.id.in_(memory_ids),
                )
            )
            memories = list(result.scalars().all())

        copied = 0
        for memory in memories:
            clone = await self.create_memory(
                target_user_id,
                extracted_text=memory.extracted_text,
                original_image_url=memory.original_image_url,
                audio_url=memory.audio_url,
                source_type=memory.source_type,
                sender_name=memory.sender_name,
                occasion=memory.occasion,
                date_received=memory.date_received,
            )
            entries = await self.list_entries(source_user_id, memory_id=memory.id)
            self.db.add_all(
                GratitudeEntry(
                    user_id=target_user_id,
                    memory_id=clone.id,
                    entry_code=e.entry_code,
                    core_theme=e.core_theme,
                    summary_story=e.summary_story,
                    specific_details=list(e.specific_details or []),
                    reflection_prompt=e.reflection_prompt,
                    tags=list(e.tags or []),
                    season=e.season,
                    holiday_associations=list(e.holiday_associations or []),
                )
                for e in entries
            )
            clone.is_processed = memory.is_processed
            copied += 1

        await self.db.flush()
        logger.info("Copied %d memories from %s to %s", copied, source_user_id, target_user_id)
        return copied
