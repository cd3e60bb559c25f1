"""
Seasons and holidays. Pure functions of a date over read-only tables.

Seasons are meteorological (spring = Mar–May, summer = Jun–Aug,
fall = Sep–Nov, winter = Dec–Feb). Holidays use fixed approximate dates,
not the real floating ones: Easter is always Apr 15, Thanksgiving Nov 28.
A holiday is "upcoming" when its next occurrence (today counts) is at most
`window` days away.
"""

from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Optional


@dataclass(frozen=True)
class Holiday:
    name: str
    month: int
    day: int
    window: int  # days before the holiday during which it is "upcoming"


# Iteration order matters: ties in primary_upcoming_holiday go to the earlier row.
HOLIDAYS: tuple[Holiday, ...] = (
    Holiday("New Year", 1, 1, 5),
    Holiday("Valentine's Day", 2, 14, 7),
    Holiday("St. Patrick's Day", 3, 17, 3),
    Holiday("Easter", 4, 15, 7),
    Holiday("Mother's Day", 5, 12, 7),
    Holiday("Memorial Day", 5, 27, 5),
    Holiday("Father's Day", 6, 16, 7),
    Holiday("Independence Day", 7, 4, 5),
    Holiday("Labor Day", 9, 2, 3),
    Holiday("Halloween", 10, 31, 7),
    Holiday("Thanksgiving", 11, 28, 10),
    Holiday("Christmas", 12, 25, 14),
)

HOLIDAYS_BY_NAME = MappingProxyType({h.name: h for h in HOLIDAYS})

SEASONS = MappingProxyType({
    "spring": (3, 4, 5),
    "summer": (6, 7, 8),
    "fall": (9, 10, 11),
    "winter": (12, 1, 2),
})

SEASON_NAMES = tuple(SEASONS)
ANY_SEASON = "any"

SEASON_DISPLAY_NAMES = MappingProxyType({
    "spring": "Spring",
    "summer": "Summer",
    "fall": "Fall",
    "winter": "Winter",
})

# ── Keyword vocabulary (used when tagging new entries) ───────────────

HOLIDAY_KEYWORDS = MappingProxyType({
    "New Year": ("new year", "new years", "new year's"),
    "Valentine's Day": ("valentine",),
    "St. Patrick's Day": ("st. patrick", "st patrick", "saint patrick"),
    "Easter": ("easter",),
    "Mother's Day": ("mother's day", "mothers day"),
    "Memorial Day": ("memorial day",),
    "Father's Day": ("father's day", "fathers day"),
    "Independence Day": ("independence day", "fourth of july", "4th of july"),
    "Labor Day": ("labor day",),
    "Halloween": ("halloween", "trick or treat"),
    "Thanksgiving": ("thanksgiving",),
    "Christmas": ("christmas", "xmas"),
})

SEASON_KEYWORDS = MappingProxyType({
    "spring": ("spring", "blossom", "bloom"),
    "summer": ("summer", "beach", "sunshine", "vacation"),
    "fall": ("autumn", "harvest", "fall leaves", "pumpkin"),
    "winter": ("winter", "snow", "holiday season", "fireplace"),
})

SEASONAL_THEMES = MappingProxyType({
    "spring": ("Renewal", "Growth", "Hope", "New Beginnings", "Nature"),
    "summer": ("Joy", "Adventure", "Family", "Celebration", "Freedom"),
    "fall": ("Gratitude", "Harvest", "Reflection", "Change", "Abundance"),
    "winter": ("Warmth", "Kindness", "Family", "Hope", "Generosity"),
})


# ── Seasons ──────────────────────────────────────────────────────────

def season_for_month(month: int) -> str:
    for season, months in SEASONS.items():
        if month in months:
            return season
    raise ValueError(f"Invalid month: {month}")


def season_for(today: date) -> str:
    """Season label for a date."""
    return season_for_month(today.month)


def season_display_name(season: str) -> str:
    return SEASON_DISPLAY_NAMES.get(season, "Season")


def seasonal_theme_suggestions(season: str) -> list[str]:
    return list(SEASONAL_THEMES.get(season, ()))


# ── Holidays ─────────────────────────────────────────────────────────

def next_occurrence(holiday: Holiday, today: date) -> date:
    """This year's date, or next year's if it already passed."""
    occurrence = date(today.year, holiday.month, holiday.day)
    if occurrence < today:
        occurrence = date(today.year + 1, holiday.month, holiday.day)
    return occurrence


def days_until(holiday: Holiday, today: date) -> int:
    return (next_occurrence(holiday, today) - today).days


def _is_upcoming(holiday: Holiday, today: date) -> bool:
    return days_until(holiday, today) <= holiday.window


def is_holiday_upcoming(name: str, today: date) -> bool:
    """True if the named holiday is within its window. Unknown names → False."""
    holiday = HOLIDAYS_BY_NAME.get(name)
    if holiday is None:
        return False
    return _is_upcoming(holiday, today)


def upcoming_holidays(today: date) -> list[str]:
    """All holidays currently within their windows, in table order."""
    return [h.name for h in HOLIDAYS if _is_upcoming(h, today)]


def primary_upcoming_holiday(today: date) -> Optional[str]:
    """The closest upcoming holiday. Ties go to the earlier table row."""
    closest: Optional[Holiday] = None
    closest_days = None
    for holiday in HOLIDAYS:
        if not _is_upcoming(holiday, today):
            continue
        d = days_until(holiday, today)
        if closest_days is None or d < closest_days:
            closest, closest_days = holiday, d
    return closest.name if closest else None


def closest_of(names: list[str], today: date) -> Optional[str]:
    """Closest holiday among `names` (known ones only), table order on ties."""
    best: Optional[str] = None
    best_days = None
    for holiday in HOLIDAYS:
        if holiday.name not in names:
            continue
        d = days_until(holiday, today)
        if best_days is None or d < best_days:
            best, best_days = holiday.name, d
    return best


# ── Display helpers ──────────────────────────────────────────────────

def surfacing_display_text(reason: Optional[str]) -> str:
    """Human-readable text for a surfacing reason like "holiday:Christmas"."""
    if not reason:
        return ""
    if reason.startswith("holiday:"):
        return f"Surfaced for {reason.removeprefix('holiday:')}"
    if reason.startswith("season:"):
        season = reason.removeprefix("season:")
        return f"A {SEASON_DISPLAY_NAMES.get(season, season)} memory"
    if reason == "variety":
        return "Keeping things fresh"
    if reason == "random":
        return "A treasure from your collection"
    return ""


def formatted_date(today: date) -> str:
    """e.g. "Monday, October 19, 2026"."""
    return f"{today:%A}, {today:%B} {today.day}, {today.year}"


def seasonal_greeting(now: datetime) -> str:
    if now.hour < 12:
        greeting = "Good morning"
    elif now.hour < 17:
        greeting = "Good afternoon"
    else:
        greeting = "Good evening"

    messages = {
        "spring": f"{greeting}. Spring is a time of renewal, so let's cultivate some gratitude.",
        "summer": f"{greeting}. Summer warmth reminds us of life's simple pleasures.",
        "fall": f"{greeting}. Fall invites us to reflect on the harvest of our experiences.",
        "winter": f"{greeting}. Winter's quiet is perfect for warming the heart with memories.",
    }
    return messages[season_for(now.date())]
