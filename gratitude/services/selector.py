"""
Daily selector: picks one entry per user per calendar day.

Pipeline:
  1. Reuse today's surface if one exists (idempotent by date).
  2. Score every entry against today's season and upcoming holidays.
  3. Drop entries surfaced in the last `recency_days` days, unless that
     leaves nothing (forced repeat).
  4. Among the top-scoring entries, pick sha256(user_id:date) % n.
  5. Persist the surface. A concurrent insert that wins the
     (user, date) unique constraint is re-read, not overwritten.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Sequence

from . import realtime
from .calendar import closest_of
from .scoring import Scorable, SurfacingContext, matched_holidays, score
from .store import GratitudeStore
from ..models.entry import GratitudeEntry
from ..models.surface import DailySurface

logger = logging.getLogger(__name__)

DEFAULT_RECENCY_DAYS = 14


@dataclass(frozen=True)
class Selection:
    entry: GratitudeEntry
    reason: str
    surface: Optional[DailySurface] = None


def tie_break_index(user_id: str, today: date, size: int) -> int:
    """Stable per (user, day), different across days."""
    digest = hashlib.sha256(f"{user_id}:{today.isoformat()}".encode("utf-8")).hexdigest()
    return int(digest, 16) % size


def surfacing_reason(entry: Scorable, context: SurfacingContext, today: date, forced: bool) -> str:
    matches = matched_holidays(entry, context)
    if matches:
        return f"holiday:{closest_of(matches, today)}"
    if entry.season == context.season:
        return f"season:{context.season}"
    if forced:
        return "variety"
    return "random"


def choose_entry(
    user_id: str,
    entries: Sequence[Scorable],
    recent_entry_ids: set[str],
    today: date,
    context: Optional[SurfacingContext] = None,
) -> Optional[tuple[Scorable, str]]:
    """
    Pure selection over an ordered entry list. Returns (entry, reason),
    or None when there are no entries.
    """
    if not entries:
        return None

    context = context or SurfacingContext.for_date(today)

    eligible = [e for e in entries if e.id not in recent_entry_ids]
    forced = not eligible
    pool = eligible or list(entries)

    scores = [score(e, context) for e in pool]
    best = max(scores)
    top = [e for e, s in zip(pool, scores) if s == best]

    winner = top[tie_break_index(user_id, today, len(top))] if len(top) > 1 else top[0]
    return winner, surfacing_reason(winner, context, today, forced)


async def select_for_today(
    store: GratitudeStore,
    user_id: str,
    today: date,
    recency_days: int = DEFAULT_RECENCY_DAYS,
) -> Optional[Selection]:
    """Today's entry for the user, creating the day's surface on first call."""
    existing = await store.get_surface(user_id, today)
    if existing:
        entry = await store.get_entry(user_id, existing.entry_id)
        if entry is None:
            logger.warning("Surface %s points at missing entry %s", existing.id, existing.entry_id)
            return None
        return Selection(entry=entry, reason=existing.surfacing_reason, surface=existing)

    entries = await store.list_entries(user_id)
    if not entries:
        logger.info("No entries yet for user=%s, nothing to surface", user_id)
        return None

    since = today - timedelta(days=recency_days)
    recent = await store.list_recent_surfaces(user_id, since)
    recent_ids = {s.entry_id for s in recent}

    context = SurfacingContext.for_date(today)
    entry, reason = choose_entry(user_id, entries, recent_ids, today, context)

    surface, inserted = await store.try_insert_surface(user_id, today, entry.id, reason)
    if not inserted:
        # Another request won the day; its pick stands.
        winner = await store.get_entry(user_id, surface.entry_id)
        if winner is None:
            logger.warning("Surface %s points at missing entry %s", surface.id, surface.entry_id)
            return None
        return Selection(entry=winner, reason=surface.surfacing_reason, surface=surface)

    logger.info(
        "Surfaced entry=%s for user=%s on %s (%s, season=%s, holidays=%s)",
        entry.id, user_id, today, reason, context.season, list(context.upcoming_holidays),
    )
    await realtime.daily_surfaced(user_id, entry.id, reason)
    return Selection(entry=entry, reason=surface.surfacing_reason, surface=surface)
