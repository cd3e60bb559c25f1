"""
Auth0 JWT validation OR dev-mode bypass. Controlled by FF_USE_AUTH0 flag.

Every journal row is keyed by the token's `sub`. Roles and profile fields
come from namespaced custom claims set by an Auth0 Action.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx
from jose import jwt, JWTError

from .config import get_settings
from .flags import get_flags

logger = logging.getLogger(__name__)

CLAIM_NAMESPACE = "https://gratitude.garden"
JWK_FIELDS = ("kty", "kid", "use", "n", "e")


@dataclass
class AuthenticatedUser:
    user_id: str
    email: str = ""
    name: str = ""
    roles: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


# Dev-mode user, returned when FF_USE_AUTH0=false
DEV_USER = AuthenticatedUser(
    user_id="dev-user",
    email="dev@local",
    name="Dev User",
    roles=["admin"],
)


def user_from_claims(claims: dict) -> AuthenticatedUser:
    """Standard claims first, namespaced custom claims as fallback."""
    def claim(name: str, default=""):
        return claims.get(name) or claims.get(f"{CLAIM_NAMESPACE}/{name}") or default

    return AuthenticatedUser(
        user_id=claims.get("sub", ""),
        email=claim("email"),
        name=claim("name"),
        roles=list(claim("roles", [])),
    )


class Auth0Client:
    """Validates Auth0 JWT tokens. Caches JWKS keys."""

    def __init__(self, jwks_ttl: int = 600):
        self._jwks: Optional[dict] = None
        self._jwks_fetched_at: float = 0
        self._jwks_ttl = jwks_ttl

    async def _get_jwks(self, domain: str) -> dict:
        now = time.time()
        if self._jwks and (now - self._jwks_fetched_at) < self._jwks_ttl:
            return self._jwks

        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.get(f"https://{domain}/.well-known/jwks.json")
            resp.raise_for_status()
        self._jwks, self._jwks_fetched_at = resp.json(), now
        logger.info("Fetched JWKS from %s (%d keys)", domain, len(self._jwks.get("keys", [])))
        return self._jwks

    async def _signing_key(self, domain: str, token: str) -> dict:
        kid = jwt.get_unverified_header(token).get("kid")
        for key in (await self._get_jwks(domain)).get("keys", []):
            if key.get("kid") == kid:
                return {k: key[k] for k in JWK_FIELDS if k in key}
        raise JWTError("Unable to find matching key in JWKS")

    async def verify_token(self, token: str) -> AuthenticatedUser:
        settings = get_settings()
        claims = jwt.decode(
            token,
            await self._signing_key(settings.auth0_domain, token),
            algorithms=[settings.auth0_algorithm],
            audience=settings.auth0_audience,
            issuer=f"https://{settings.auth0_domain}/",
        )
        return user_from_claims(claims)


# Singleton
_auth0_client = Auth0Client()


def _bearer_token(authorization: str) -> str:
    if not authorization:
        raise PermissionError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise PermissionError("Invalid Authorization header. Use: Bearer <token>")
    return token.strip()


async def get_current_user(authorization: str = "") -> AuthenticatedUser:
    """
    Resolve the current user from the Authorization header.
    If FF_USE_AUTH0 is false, returns a dev user.
    """
    if not get_flags().use_auth0:
        return DEV_USER

    token = _bearer_token(authorization)
    try:
        user = await _auth0_client.verify_token(token)
    except JWTError as e:
        raise PermissionError(f"Invalid token: {e}")

    if not user.user_id:
        raise PermissionError("Token missing sub claim")
    return user
