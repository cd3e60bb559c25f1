"""
Gratitude extraction: asks the LLM for structured entries from a memory's text.

Any failure (no key, HTTP error, no JSON array in the reply) surfaces as
ExtractionError. Callers fall back to the normalizer's keyword entry.
"""

import json
import logging
import re
from typing import Optional

from . import llm
from ..core.errors import ExtractionError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a specialized Gratitude Content Analyst. Your task is to process user-provided personal texts (e.g., letters, stories, journal entries) and extract core gratitude elements while strictly maintaining privacy and focusing only on the *structure* of the positive experience.

Your analysis must convert emotional, narrative content into structured data (JSON) that follows a defined schema:

1. **Identify the Core Theme:** What is the overarching positive emotion or focus (e.g., support, achievement, unexpected kindness, mentorship)?
2. **Extract Sensory/Specific Details:** Note 1-3 concrete details (sights, sounds, specific quotes, locations) that ground the memory.
3. **Formulate an Actionable Prompt:** Create a reflection question based on the content that encourages the user to apply that feeling or experience to their present life.
4. **Create a Short Reflection Story:** Summarize the emotional essence of the original text into a short, inspirational, and *anonymized* story (under 100 words) suitable for being a "gratitude seed" in the app.

Always output valid JSON matching the required schema."""

EXTRACTION_SCHEMA = {
    "type": "array",
    "description": "An array of structured gratitude entries extracted from the source content.",
    "items": {
        "type": "object",
        "properties": {
            "entry_id": {
                "type": "string",
                "description": "A unique identifier for the entry (e.g., 'KIN-001').",
            },
            "core_theme": {
                "type": "string",
                "description": "The central theme of gratitude (e.g., 'Unexpected Kindness', 'Family Support').",
            },
            "summary_story": {
                "type": "string",
                "description": "A brief, anonymized, inspirational narrative (max 100 words).",
            },
            "specific_details": {
                "type": "array",
                "description": "1-3 concrete, specific details that anchor the memory.",
                "items": {"type": "string"},
            },
            "reflection_prompt": {
                "type": "string",
                "description": "An actionable question to encourage current-day reflection.",
            },
            "tags": {
                "type": "array",
                "description": "Categorical tags for filtering (e.g., 'People', 'Career', 'Nature', 'Small Wins').",
                "items": {"type": "string"},
            },
        },
        "required": ["entry_id", "core_theme", "summary_story", "reflection_prompt", "tags"],
    },
}

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


def build_extraction_prompt(text: str, metadata: Optional[dict] = None) -> str:
    metadata = metadata or {}
    lines = [
        "Analyze the following personal document content. Based on this text, generate "
        "a set of 3-5 distinct Gratitude Entries that conform precisely to this JSON schema:",
        "",
        json.dumps(EXTRACTION_SCHEMA, indent=2),
        "",
    ]
    if metadata.get("sender"):
        lines.append(f"This was sent by: {metadata['sender']}")
    if metadata.get("occasion"):
        lines.append(f"Occasion: {metadata['occasion']}")
    if metadata.get("date_received"):
        lines.append(f"Date received: {metadata['date_received']}")

    lines += [
        "",
        "Document content:",
        "---",
        text,
        "---",
        "",
        "Generate the gratitude entries as a valid JSON array. Focus on extracting themes of "
        "appreciation, connection, and positive life events. Anonymize any names in the "
        "summary_story field.",
    ]
    return "\n".join(lines)


def parse_entries(reply: str) -> list:
    """First JSON array in the reply. Raises ExtractionError if there is none."""
    match = _JSON_ARRAY.search(reply or "")
    if not match:
        raise ExtractionError("Could not find a JSON array in the extraction reply")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Extraction reply is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ExtractionError("Extraction reply is not a JSON array")
    return data


async def extract(text: str, metadata: Optional[dict] = None) -> list:
    """Raw entries from the LLM. Raises ExtractionError on any failure."""
    if not text or not text.strip():
        raise ExtractionError("No text to extract from")
    if not llm.is_configured():
        raise ExtractionError("No LLM provider configured")

    try:
        reply = await llm.chat_simple(
            build_extraction_prompt(text, metadata),
            system=SYSTEM_PROMPT,
            temperature=0.4,
            max_tokens=2000,
        )
    except Exception as e:
        logger.error("Extraction request failed: %s", e)
        raise ExtractionError(str(e)) from e

    entries = parse_entries(reply)
    logger.info("Extracted %d raw entries (%d chars of text)", len(entries), len(text))
    return entries
