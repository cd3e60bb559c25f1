"""Tests for the persistence layer."""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from conftest import add_entries
from gratitude.core.errors import StoreError
from gratitude.services.store import GratitudeStore, sender_key

USER = "user-1"


class TestUsers:
    async def test_ensure_user_creates_once(self, store):
        first = await store.ensure_user(USER, email="a@example.com")
        second = await store.ensure_user(USER, email="other@example.com")
        assert first.id == second.id == USER
        assert second.email == "a@example.com"


class TestMemoriesAndEntries:
    async def test_listing_order_is_stable(self, store):
        entries = await add_entries(store, USER, {"core_theme": "A"}, {"core_theme": "B"}, {"core_theme": "C"})
        listed = [e.id for e in await store.list_entries(USER)]
        assert set(listed) == {e.id for e in entries}
        assert [e.id for e in await store.list_entries(USER)] == listed

    async def test_filters(self, store):
        await add_entries(store, USER, {"core_theme": "Family"}, {"core_theme": "Friendship"})
        assert [e.core_theme for e in await store.list_entries(USER, theme="Family")] == ["Family"]
        assert len(await store.list_entries(USER, query="friend")) == 1

    async def test_other_users_entries_hidden(self, store):
        entries = await add_entries(store, USER, {})
        assert await store.get_entry("someone-else", entries[0].id) is None
        assert await store.list_entries("someone-else") == []

    async def test_memory_search(self, store):
        await add_entries(store, USER, {}, sender="Grandma Rose")
        await add_entries(store, USER, {}, sender="Uncle Bob")
        found = await store.list_memories(USER, query="rose")
        assert [m.sender_name for m in found] == ["Grandma Rose"]

    async def test_unique_senders_case_insensitive(self, store):
        await add_entries(store, USER, {}, sender="Grandma")
        await add_entries(store, USER, {}, sender="grandma")
        await add_entries(store, USER, {}, sender="Aunt May")
        assert await store.unique_senders(USER) == ["Aunt May", "Grandma"]


class TestSurfaces:
    async def test_insert_if_absent_keeps_first(self, store):
        a, b = await add_entries(store, USER, {}, {})
        day = date(2026, 3, 1)
        first = await store.insert_surface_if_absent(USER, day, a.id, "random")
        second = await store.insert_surface_if_absent(USER, day, b.id, "variety")
        assert second.id == first.id
        assert second.entry_id == a.id

    async def test_try_insert_reports_who_wrote(self, store):
        (entry,) = await add_entries(store, USER, {})
        day = date(2026, 3, 1)
        first, inserted = await store.try_insert_surface(USER, day, entry.id, "random")
        again, inserted_again = await store.try_insert_surface(USER, day, entry.id, "random")
        assert inserted is True
        assert inserted_again is False
        assert again.id == first.id

    async def test_mark_viewed(self, store):
        (entry,) = await add_entries(store, USER, {})
        day = date(2026, 3, 1)
        assert await store.mark_viewed(USER, day) is None

        await store.insert_surface_if_absent(USER, day, entry.id, "random")
        surface = await store.mark_viewed(USER, day)
        assert surface.viewed
        assert surface.viewed_at is not None


class TestReflections:
    async def test_links_latest_surface(self, store):
        (entry,) = await add_entries(store, USER, {})
        await store.insert_surface_if_absent(USER, date(2026, 3, 1), entry.id, "random")
        latest = await store.insert_surface_if_absent(USER, date(2026, 3, 20), entry.id, "variety")

        reflection = await store.save_reflection(USER, entry.id, "I should call her.")
        assert latest.reflection_id == reflection.id

        old = await store.get_surface(USER, date(2026, 3, 1))
        assert old.reflection_id is None

    async def test_list_by_entry(self, store):
        a, b = await add_entries(store, USER, {}, {})
        await store.save_reflection(USER, a.id, "one")
        await store.save_reflection(USER, b.id, "two")
        texts = [r.text for r in await store.list_reflections(USER, entry_id=a.id)]
        assert texts == ["one"]


class TestVoices:
    async def test_upsert_is_case_insensitive(self, store):
        await store.upsert_voice(USER, "Grandma", voice_id="v1")
        updated = await store.upsert_voice(USER, "GRANDMA ", voice_id="v2", notes="soft")

        voices = await store.list_voices(USER)
        assert len(voices) == 1
        assert updated.voice_id == "v2"
        assert updated.sender_key == sender_key("grandma")
        assert (await store.get_voice_for_sender(USER, "grandma")).notes == "soft"

    async def test_single_default(self, store):
        await store.upsert_voice(USER, "Grandma", voice_id="v1")
        await store.upsert_voice(USER, "Aunt May", voice_id="v2")

        await store.set_default_voice(USER, "Grandma")
        await store.set_default_voice(USER, "aunt may")

        defaults = [v.sender_name for v in await store.list_voices(USER) if v.is_default]
        assert defaults == ["Aunt May"]
        assert (await store.get_default_voice(USER)).voice_id == "v2"

    async def test_default_unknown_sender(self, store):
        assert await store.set_default_voice(USER, "Nobody") is None

    async def test_delete(self, store):
        await store.upsert_voice(USER, "Grandma", voice_id="v1")
        assert await store.delete_voice(USER, "grandma")
        assert not await store.delete_voice(USER, "grandma")
        assert await store.list_voices(USER) == []


class TestCopyMemories:
    async def test_copies_memory_and_entries(self, store):
        entries = await add_entries(store, USER, {"core_theme": "Family"}, {"core_theme": "Love"})
        memory_id = entries[0].memory_id

        copied = await store.copy_memories_to_user(USER, [memory_id, "missing"], "user-2")

        assert copied == 1
        themes = sorted(e.core_theme for e in await store.list_entries("user-2"))
        assert themes == ["Family", "Love"]
        (clone,) = await store.list_memories("user-2")
        assert clone.id != memory_id
        assert clone.sender_name == "Grandma"


class TestReadFailures:
    async def test_read_error_becomes_store_error(self):
        class BrokenSession:
            async def execute(self, *args, **kwargs):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

        store = GratitudeStore(BrokenSession())
        with pytest.raises(StoreError):
            await store.list_entries(USER)
