"""
Admin API.

POST /v1/admin/memories/copy — Copy memories (and their entries) to another account
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..core.auth import AuthenticatedUser
from ..core.dependencies import require_admin, get_store
from ..services.store import GratitudeStore

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/admin", tags=["admin"])


class CopyMemoriesRequest(BaseModel):
    source_user_id: str
    target_user_id: str
    memory_ids: list[str]


class CopyMemoriesResponse(BaseModel):
    copied: int


@admin_router.post("/memories/copy", response_model=CopyMemoriesResponse)
async def copy_memories(
    request: CopyMemoriesRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    store: GratitudeStore = Depends(get_store),
):
    """Seed a family member's garden with memories from another account."""
    if not request.memory_ids:
        raise HTTPException(status_code=400, detail="memory_ids must not be empty")
    if request.source_user_id == request.target_user_id:
        raise HTTPException(status_code=400, detail="Source and target accounts are the same")

    await store.ensure_user(request.target_user_id)
    copied = await store.copy_memories_to_user(
        request.source_user_id, request.memory_ids, request.target_user_id,
    )
    logger.info("Admin %s copied %d memories %s → %s",
                admin.user_id, copied, request.source_user_id, request.target_user_id)
    return CopyMemoriesResponse(copied=copied)
