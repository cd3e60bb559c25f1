"""
Realtime notifications. Thin wrapper around core.redis.
"""

from ..core import redis as _redis


# ── Memory events ────────────────────────────────────────────────────

async def memory_processing(user_id: str, memory_id: str, status: str, data: dict = None):
    """status: processing, completed, failed."""
    payload = {"memory_id": memory_id, "status": status}
    if data:
        payload.update(data)
    await _redis.notify_user(user_id, "memory.processing", payload)


# ── Daily events ─────────────────────────────────────────────────────

async def daily_surfaced(user_id: str, entry_id: str, reason: str):
    await _redis.notify_user(
        user_id, "daily.surfaced", {"entry_id": entry_id, "reason": reason}
    )
