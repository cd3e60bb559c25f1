"""Tests for daily selection: idempotence, recency, determinism, races."""

from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import func, select

from conftest import add_entries
from gratitude.models.surface import DailySurface
from gratitude.services import realtime
from gratitude.services.scoring import SurfacingContext
from gratitude.services.selector import (
    choose_entry,
    select_for_today,
    surfacing_reason,
    tie_break_index,
)
from gratitude.services.store import GratitudeStore

USER = "user-1"
DEC_20 = date(2026, 12, 20)
AUG_10 = date(2026, 8, 10)


@dataclass
class _Entry:
    id: str
    season: str = "any"
    holiday_associations: list = field(default_factory=list)


async def _surface_count(db, user_id: str = USER) -> int:
    result = await db.execute(
        select(func.count()).select_from(DailySurface).where(DailySurface.user_id == user_id)
    )
    return result.scalar_one()


class TestChooseEntry:
    """Pure selection over in-memory entries."""

    def test_empty(self):
        assert choose_entry(USER, [], set(), DEC_20) is None

    def test_highest_score_wins(self):
        entries = [_Entry("a"), _Entry("b", "winter", ["Christmas"]), _Entry("c", "summer")]
        entry, reason = choose_entry(USER, entries, set(), DEC_20)
        assert entry.id == "b"
        assert reason == "holiday:Christmas"

    def test_season_reason(self):
        entries = [_Entry("a", "summer"), _Entry("b")]
        entry, reason = choose_entry(USER, entries, set(), AUG_10)
        assert entry.id == "a"
        assert reason == "season:summer"

    def test_recent_entries_skipped(self):
        entries = [_Entry("a", "summer"), _Entry("b")]
        entry, reason = choose_entry(USER, entries, {"a"}, AUG_10)
        assert entry.id == "b"
        assert reason == "random"

    def test_all_recent_falls_back_to_full_pool(self):
        entries = [_Entry("a"), _Entry("b", "winter")]
        entry, reason = choose_entry(USER, entries, {"a", "b"}, AUG_10)
        assert entry.id == "a"
        assert reason == "variety"

    def test_forced_repeat_keeps_season_reason(self):
        entries = [_Entry("a", "summer"), _Entry("b")]
        entry, reason = choose_entry(USER, entries, {"a", "b"}, AUG_10)
        assert entry.id == "a"
        assert reason == "season:summer"

    def test_same_inputs_same_pick(self):
        entries = [_Entry(str(i)) for i in range(5)]
        first = choose_entry(USER, entries, set(), AUG_10)
        for _ in range(10):
            assert choose_entry(USER, entries, set(), AUG_10) == first

    def test_ties_vary_across_days(self):
        entries = [_Entry(str(i)) for i in range(5)]
        picks = {
            choose_entry(USER, entries, set(), AUG_10 + timedelta(days=n))[0].id
            for n in range(30)
        }
        assert len(picks) > 1

    def test_tie_break_in_range(self):
        for n in range(1, 8):
            assert 0 <= tie_break_index(USER, DEC_20, n) < n


class TestSurfacingReason:
    def test_holiday_beats_season(self):
        context = SurfacingContext(season="winter", upcoming_holidays=("New Year", "Christmas"))
        entry = _Entry("a", "winter", ["New Year", "Christmas"])
        # Dec 20: Christmas is 5 days away, New Year 12
        assert surfacing_reason(entry, context, DEC_20, forced=False) == "holiday:Christmas"

    def test_forced_without_season_match(self):
        context = SurfacingContext(season="winter")
        assert surfacing_reason(_Entry("a", "summer"), context, DEC_20, forced=True) == "variety"


class TestSelectForToday:
    async def test_no_entries(self, store, db):
        assert await select_for_today(store, USER, DEC_20) is None
        assert await _surface_count(db) == 0

    async def test_idempotent_within_a_day(self, store, db):
        await add_entries(store, USER, {}, {"season": "winter"}, {"season": "summer"})

        first = await select_for_today(store, USER, DEC_20)
        second = await select_for_today(store, USER, DEC_20)

        assert first.entry.id == second.entry.id
        assert first.reason == second.reason == "season:winter"
        assert await _surface_count(db) == 1

    async def test_holiday_entry_surfaces_before_holiday(self, store):
        entries = await add_entries(
            store, USER,
            {"season": "winter"},
            {"season": "winter", "holiday_associations": ["Christmas"]},
        )
        selection = await select_for_today(store, USER, DEC_20)
        assert selection.entry.id == entries[1].id
        assert selection.reason == "holiday:Christmas"
        assert selection.surface.surfaced_date == DEC_20

    async def test_recently_surfaced_entry_not_repeated(self, store):
        entries = await add_entries(store, USER, {"season": "summer"}, {})
        await store.insert_surface_if_absent(USER, AUG_10 - timedelta(days=3), entries[0].id, "season:summer")

        selection = await select_for_today(store, USER, AUG_10)
        assert selection.entry.id == entries[1].id
        assert selection.reason == "random"

    async def test_outside_recency_window_can_repeat(self, store):
        entries = await add_entries(store, USER, {"season": "summer"}, {})
        await store.insert_surface_if_absent(USER, AUG_10 - timedelta(days=20), entries[0].id, "season:summer")

        selection = await select_for_today(store, USER, AUG_10)
        assert selection.entry.id == entries[0].id

    async def test_everything_recent_forces_variety(self, store):
        entries = await add_entries(store, USER, {})
        await store.insert_surface_if_absent(USER, AUG_10 - timedelta(days=1), entries[0].id, "random")

        selection = await select_for_today(store, USER, AUG_10)
        assert selection.entry.id == entries[0].id
        assert selection.reason == "variety"

    async def test_custom_recency_window(self, store):
        entries = await add_entries(store, USER, {"season": "summer"}, {})
        await store.insert_surface_if_absent(USER, AUG_10 - timedelta(days=3), entries[0].id, "season:summer")

        selection = await select_for_today(store, USER, AUG_10, recency_days=2)
        assert selection.entry.id == entries[0].id

    async def test_users_are_independent(self, store, db):
        await add_entries(store, USER, {})
        await add_entries(store, "user-2", {})

        await select_for_today(store, USER, AUG_10)
        assert await _surface_count(db, "user-2") == 0

    async def test_lost_race_returns_winning_row(self, store, db):
        entries = await add_entries(store, USER, {"season": "summer"}, {"season": "summer"})
        winner = entries[1]
        await store.insert_surface_if_absent(USER, AUG_10, winner.id, "random")
        await db.commit()

        racing = _RacingStore(db, misses=2)
        selection = await select_for_today(racing, USER, AUG_10)

        assert selection.entry.id == winner.id
        assert selection.reason == "random"
        assert await _surface_count(db) == 1

    async def test_lost_race_on_same_entry_publishes_nothing(self, store, db, monkeypatch):
        published = _record_surfaced_events(monkeypatch)
        entries = await add_entries(store, USER, {"season": "summer"})
        await store.insert_surface_if_absent(USER, AUG_10, entries[0].id, "season:summer")
        await db.commit()

        selection = await select_for_today(_RacingStore(db, misses=2), USER, AUG_10)

        assert selection.entry.id == entries[0].id
        assert published == []

    async def test_new_surface_published_once(self, store, monkeypatch):
        published = _record_surfaced_events(monkeypatch)
        entries = await add_entries(store, USER, {"season": "summer"})

        await select_for_today(store, USER, AUG_10)
        await select_for_today(store, USER, AUG_10)

        assert published == [(USER, entries[0].id, "season:summer")]


def _record_surfaced_events(monkeypatch) -> list[tuple]:
    published = []

    async def daily_surfaced(user_id, entry_id, reason):
        published.append((user_id, entry_id, reason))

    monkeypatch.setattr(realtime, "daily_surfaced", daily_surfaced)
    return published


class _RacingStore(GratitudeStore):
    """Does not see today's surface on its first reads, like a request that lost the race."""

    def __init__(self, db, misses: int):
        super().__init__(db)
        self.misses = misses

    async def get_surface(self, user_id, surfaced_date):
        if self.misses:
            self.misses -= 1
            return None
        return await super().get_surface(user_id, surfaced_date)
