"""
FastAPI dependencies. Injected into route handlers.
"""

from datetime import datetime

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import AuthenticatedUser, get_current_user
from .database import get_db as _get_db
from .errors import StoreError
from .storage import StorageBackend, get_storage as _get_storage
from ..services.store import GratitudeStore


async def get_db() -> AsyncSession:
    """Yields an async DB session per request."""
    async for session in _get_db():
        yield session


def get_store(db: AsyncSession = Depends(get_db)) -> GratitudeStore:
    """Store bound to the request's session."""
    return GratitudeStore(db)


async def get_user(
    authorization: str = Header(default=""),
) -> AuthenticatedUser:
    """
    Resolve authenticated user from Authorization header.
    Returns dev user if FF_USE_AUTH0=false.
    """
    try:
        return await get_current_user(authorization)
    except PermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_user(
    user: AuthenticatedUser = Depends(get_user),
    store: GratitudeStore = Depends(get_store),
) -> AuthenticatedUser:
    """Same as get_user, but makes sure the account row exists."""
    try:
        await store.ensure_user(user.user_id, email=user.email, name=user.name)
    except StoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not load your account. Please try again.",
        )
    return user


async def require_admin(
    user: AuthenticatedUser = Depends(require_user),
    store: GratitudeStore = Depends(get_store),
) -> AuthenticatedUser:
    """Admin role from the token, or is_admin on the account row."""
    if user.is_admin:
        return user
    account = await store.get_user(user.user_id)
    if not account or not account.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def get_storage_dep() -> StorageBackend:
    """Returns the active storage backend (S3 or local)."""
    return _get_storage()


def get_now() -> datetime:
    """Local wall-clock time. "Today" for surfacing is this date."""
    return datetime.now()
