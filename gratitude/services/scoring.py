"""
Relevance scoring for daily surfacing.

    season match  +3   (or +1 for season "any"; only one of the two)
    holiday match +5   per upcoming holiday the entry is associated with

No recency penalty here; the selector handles repeats.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Protocol, Sequence

from .calendar import ANY_SEASON, primary_upcoming_holiday, season_for, upcoming_holidays

SEASON_MATCH_POINTS = 3
ANY_SEASON_POINTS = 1
HOLIDAY_MATCH_POINTS = 5


class Scorable(Protocol):
    id: str
    season: str
    holiday_associations: Sequence[str]


@dataclass(frozen=True)
class SurfacingContext:
    season: str
    upcoming_holidays: tuple[str, ...] = field(default_factory=tuple)
    primary_holiday: Optional[str] = None

    @classmethod
    def for_date(cls, today: date) -> "SurfacingContext":
        return cls(
            season=season_for(today),
            upcoming_holidays=tuple(upcoming_holidays(today)),
            primary_holiday=primary_upcoming_holiday(today),
        )


def matched_holidays(entry: Scorable, context: SurfacingContext) -> list[str]:
    """Upcoming holidays this entry is associated with, in context order."""
    associations = set(entry.holiday_associations or ())
    return [h for h in context.upcoming_holidays if h in associations]


def score(entry: Scorable, context: SurfacingContext) -> int:
    points = 0
    if entry.season == context.season:
        points += SEASON_MATCH_POINTS
    elif entry.season == ANY_SEASON:
        points += ANY_SEASON_POINTS

    points += HOLIDAY_MATCH_POINTS * len(matched_holidays(entry, context))
    return points
