"""
Extraction result normalizer.

Validates entries returned by the extraction LLM, repairs what can be
repaired (detail count, story length, duplicate tags), and tags each entry
with a season and holidays from its own text. When nothing usable came back
it builds one fallback entry from keywords in the source text.
"""

import logging
import re
import time
from collections import Counter
from typing import Any, Optional

from pydantic import BaseModel, Field

from .calendar import (
    ANY_SEASON,
    HOLIDAYS,
    HOLIDAY_KEYWORDS,
    SEASON_KEYWORDS,
    SEASON_NAMES,
    season_for_month,
)

logger = logging.getLogger(__name__)

MAX_DETAILS = 3
MAX_STORY_WORDS = 100
REQUIRED_TEXT_FIELDS = ("core_theme", "summary_story", "reflection_prompt")

# Applied in order; a later match replaces the theme, every match adds its tag.
FALLBACK_RULES: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (("thank", "grateful"), "Gratitude", "Thankfulness"),
    (("love", "dear"), "Love & Connection", "Relationships"),
    (("birthday", "congratulations"), "Celebration", "Milestones"),
    (("help", "support"), "Support & Kindness", "People"),
    (("family", "mom", "dad"), "Family Support", "Family"),
)
FALLBACK_THEME = "Appreciation"
FALLBACK_BASE_TAG = "Personal"
FALLBACK_STORY = (
    "A heartfelt message arrived, carrying warmth and appreciation. The words spoke "
    "of connection and the simple yet profound impact of being remembered and valued "
    "by someone special."
)
FALLBACK_PROMPT = (
    "Think about someone who has shown you kindness recently. "
    "How might you express your appreciation to them today?"
)

THEME_CATEGORIES = {
    "Relationships": ["Family Support", "Friendship", "Love & Connection", "Mentorship"],
    "Personal Growth": ["Achievement", "Learning", "Resilience", "Self-Discovery"],
    "Kindness": ["Unexpected Kindness", "Generosity", "Support & Kindness", "Community"],
    "Joy": ["Celebration", "Small Wins", "Nature", "Adventure"],
    "Gratitude": ["Appreciation", "Thankfulness", "Abundance", "Blessing"],
}


class NormalizedEntry(BaseModel):
    """An entry ready to persist."""

    entry_code: str
    core_theme: str
    summary_story: str
    specific_details: list[str] = Field(default_factory=list)
    reflection_prompt: str
    tags: list[str] = Field(default_factory=list)
    season: str = ANY_SEASON
    holiday_associations: list[str] = Field(default_factory=list)


# ── Validation ───────────────────────────────────────────────────────

def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _clean_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        text = _clean_str(item)
        if text and text not in out:
            out.append(text)
    return out


def _truncate_words(text: str, limit: int = MAX_STORY_WORDS) -> str:
    words = text.split()
    if len(words) <= limit:
        return text
    return " ".join(words[:limit]).rstrip(",;:") + "…"


def is_valid_raw_entry(raw: Any) -> bool:
    if not isinstance(raw, dict):
        return False
    if any(not _clean_str(raw.get(f)) for f in REQUIRED_TEXT_FIELDS):
        return False
    return bool(_clean_list(raw.get("tags")))


# ── Season / holiday tagging ─────────────────────────────────────────

def _contains(text: str, keyword: str) -> bool:
    return re.search(rf"(?<![a-z]){re.escape(keyword)}(?:s|'s)?(?![a-z])", text) is not None


def infer_holidays(text: str) -> list[str]:
    """Holidays mentioned in the text, in holiday table order."""
    lowered = text.lower()
    return [
        h.name for h in HOLIDAYS
        if any(_contains(lowered, kw) for kw in HOLIDAY_KEYWORDS.get(h.name, ()))
    ]


def infer_season(text: str, holidays: Optional[list[str]] = None) -> str:
    """
    Season of the first mentioned holiday, else the season with most keyword
    hits (table order on ties), else "any".
    """
    if holidays is None:
        holidays = infer_holidays(text)
    if holidays:
        first = next(h for h in HOLIDAYS if h.name == holidays[0])
        return season_for_month(first.month)

    lowered = text.lower()
    hits = Counter({
        season: sum(1 for kw in SEASON_KEYWORDS[season] if _contains(lowered, kw))
        for season in SEASON_NAMES
    })
    best = max(hits.values())
    if best == 0:
        return ANY_SEASON
    return next(s for s in SEASON_NAMES if hits[s] == best)


def _entry_text(theme: str, story: str, tags: list[str]) -> str:
    return " ".join([theme, story, *tags])


# ── Fallback ─────────────────────────────────────────────────────────

def fallback_theme_and_tags(source_text: str) -> tuple[str, list[str]]:
    text = (source_text or "").lower()
    theme = FALLBACK_THEME
    tags = [FALLBACK_BASE_TAG]
    for keywords, rule_theme, tag in FALLBACK_RULES:
        if any(kw in text for kw in keywords):
            theme = rule_theme
            tags.append(tag)
    return theme, tags


def fallback_raw_entry(source_text: str, metadata: Optional[dict] = None) -> dict:
    metadata = metadata or {}
    theme, tags = fallback_theme_and_tags(source_text)
    sender = _clean_str(metadata.get("sender"))
    occasion = _clean_str(metadata.get("occasion"))
    return {
        "core_theme": theme,
        "summary_story": FALLBACK_STORY,
        "specific_details": [
            f"From {sender}" if sender else "A personal letter",
            occasion or "A moment of connection",
            "Handwritten with care",
        ],
        "reflection_prompt": FALLBACK_PROMPT,
        "tags": tags,
    }


# ── Public API ───────────────────────────────────────────────────────

def normalize_entries(
    raw_entries: Any,
    source_text: str,
    metadata: Optional[dict] = None,
    now_ms: Optional[int] = None,
) -> list[NormalizedEntry]:
    """
    Turn raw extraction output into entries ready to persist.
    Always returns at least one entry.
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)

    candidates = raw_entries if isinstance(raw_entries, list) else []
    valid = [r for r in candidates if is_valid_raw_entry(r)]
    dropped = len(candidates) - len(valid)
    if dropped:
        logger.warning("Dropped %d malformed extracted entries", dropped)

    if not valid:
        logger.info("No usable extracted entries, using keyword fallback")
        valid = [fallback_raw_entry(source_text, metadata)]

    entries = []
    for index, raw in enumerate(valid):
        theme = _clean_str(raw["core_theme"])
        story = _truncate_words(_clean_str(raw["summary_story"]))
        tags = _clean_list(raw["tags"])
        holidays = infer_holidays(_entry_text(theme, story, tags))

        entries.append(NormalizedEntry(
            entry_code=_clean_str(raw.get("entry_id")) or f"MEM-{now_ms}-{index}",
            core_theme=theme,
            summary_story=story,
            specific_details=_clean_list(raw.get("specific_details"))[:MAX_DETAILS],
            reflection_prompt=_clean_str(raw["reflection_prompt"]),
            tags=tags,
            season=infer_season(_entry_text(theme, story, tags), holidays),
            holiday_associations=holidays,
        ))
    return entries


def theme_counts(entries) -> list[dict]:
    """[{theme, count}] most common first, ties by first appearance."""
    counts = Counter(e.core_theme for e in entries if e.core_theme)
    return [{"theme": theme, "count": count} for theme, count in counts.most_common()]
