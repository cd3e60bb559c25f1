"""
Daily gratitude API.

GET  /v1/daily         — Today's entry (picked once per day, then cached)
POST /v1/daily/viewed  — Mark today's entry as viewed
POST /v1/reflections   — Save a reflection on an entry
GET  /v1/reflections   — List reflections, newest first
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from .schemas import EntryOut, ReflectionOut
from ..core.auth import AuthenticatedUser
from ..core.config import get_settings
from ..core.dependencies import require_user, get_store, get_now
from ..services.calendar import (
    formatted_date,
    season_display_name,
    season_for,
    seasonal_greeting,
    surfacing_display_text,
)
from ..services.selector import select_for_today
from ..services.store import GratitudeStore

logger = logging.getLogger(__name__)

daily_router = APIRouter(tags=["daily"])


class DailyResponse(BaseModel):
    date: str
    formatted_date: str
    season: str
    season_name: str
    greeting: str
    entry: Optional[EntryOut] = None
    surfacing_reason: Optional[str] = None
    surfacing_text: str = ""
    sender_name: Optional[str] = None
    occasion: Optional[str] = None
    viewed: bool = False
    reflection_id: Optional[str] = None


class ViewedResponse(BaseModel):
    date: str
    viewed: bool


class ReflectionRequest(BaseModel):
    text: str
    entry_id: Optional[str] = None
    memory_id: Optional[str] = None


@daily_router.get("/daily", response_model=DailyResponse)
async def get_daily(
    mark_viewed: bool = True,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Today's gratitude seed. The same entry all day, whatever the number of calls."""
    today = now.date()
    season = season_for(today)
    response = DailyResponse(
        date=today.isoformat(),
        formatted_date=formatted_date(today),
        season=season,
        season_name=season_display_name(season),
        greeting=seasonal_greeting(now),
    )

    selection = await select_for_today(
        store, user.user_id, today, recency_days=get_settings().recency_window_days,
    )
    if selection is None:
        return response

    memory = await store.get_memory(user.user_id, selection.entry.memory_id)
    surface = selection.surface
    if mark_viewed:
        surface = await store.mark_viewed(user.user_id, today) or surface

    response.entry = EntryOut.model_validate(selection.entry)
    response.surfacing_reason = selection.reason
    response.surfacing_text = surfacing_display_text(selection.reason)
    response.sender_name = memory.sender_name if memory else None
    response.occasion = memory.occasion if memory else None
    response.viewed = bool(surface and surface.viewed)
    response.reflection_id = surface.reflection_id if surface else None
    return response


@daily_router.post("/daily/viewed", response_model=ViewedResponse)
async def mark_daily_viewed(
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    today = now.date()
    surface = await store.mark_viewed(user.user_id, today)
    if surface is None:
        raise HTTPException(status_code=404, detail="Nothing surfaced today yet")
    return ViewedResponse(date=today.isoformat(), viewed=surface.viewed)


@daily_router.post("/reflections", response_model=ReflectionOut)
async def save_reflection(
    request: ReflectionRequest,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    """Save what the user wrote in response to an entry's prompt."""
    text = request.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Please write something before saving.")
    if not request.entry_id and not request.memory_id:
        raise HTTPException(status_code=400, detail="entry_id or memory_id is required")

    if request.entry_id and not await store.get_entry(user.user_id, request.entry_id):
        raise HTTPException(status_code=404, detail="Entry not found")
    if request.memory_id and not await store.get_memory(user.user_id, request.memory_id):
        raise HTTPException(status_code=404, detail="Memory not found")

    reflection = await store.save_reflection(
        user.user_id, request.entry_id, text, memory_id=request.memory_id,
    )
    logger.info("Reflection saved: user=%s entry=%s (%d chars)", user.user_id, request.entry_id, len(text))
    return ReflectionOut.model_validate(reflection)


@daily_router.get("/reflections", response_model=list[ReflectionOut])
async def list_reflections(
    entry_id: Optional[str] = None,
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
):
    reflections = await store.list_reflections(user.user_id, entry_id=entry_id)
    return [ReflectionOut.model_validate(r) for r in reflections]
