"""JWT validation and user authentication dependencies.

This module provides:
- JWT validation against Supabase JWKS
- The token identity (for endpoints that run before the users row exists)
- The current users row
"""

import logging
import time
import uuid as uuid_pkg
from dataclasses import dataclass
from typing import Annotated, Any

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.backends import ECKey
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dischargely.config import settings
from dischargely.core.database import get_db
from dischargely.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cache for JWKS with TTL to handle key rotation
_jwks_cache: dict[str, Any] = {}
_jwks_cache_timestamp: float = 0.0
_JWKS_CACHE_TTL_SECONDS: float = 3600.0  # 1 hour


@dataclass
class AuthUser:
    """Identity carried by a verified Supabase access token."""

    id: uuid_pkg.UUID
    phone: str | None = None


async def _fetch_jwks() -> dict[str, Any]:
    """Fetch JWKS from Supabase and update the cache."""
    global _jwks_cache_timestamp
    async with httpx.AsyncClient() as client:
        response = await client.get(settings.supabase_jwks_url)
        response.raise_for_status()
        jwks = response.json()
        _jwks_cache.clear()
        _jwks_cache.update(jwks)
        _jwks_cache_timestamp = time.monotonic()
        return jwks


async def get_jwks(force_refresh: bool = False) -> dict[str, Any]:
    """Fetch and cache JWKS from Supabase with a 1-hour TTL."""
    cache_age = time.monotonic() - _jwks_cache_timestamp
    if _jwks_cache and not force_refresh and cache_age < _JWKS_CACHE_TTL_SECONDS:
        return _jwks_cache

    return await _fetch_jwks()


def get_signing_key(jwks: dict[str, Any], token: str) -> ECKey:
    """Get the signing key from JWKS that matches the token's kid."""
    unverified_header = jwt.get_unverified_header(token)
    kid = unverified_header.get("kid")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return ECKey(key, algorithm="ES256")

    raise ValueError("Unable to find matching key in JWKS")


def _decode(token: str, jwks: dict[str, Any]) -> AuthUser:
    signing_key = get_signing_key(jwks, token)
    payload = jwt.decode(
        token,
        signing_key,
        algorithms=["ES256"],
        audience="authenticated",
    )
    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise ValueError("Token has no subject")
    return AuthUser(id=uuid_pkg.UUID(user_id_str), phone=payload.get("phone") or None)


async def get_current_auth_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthUser:
    """Validate the Supabase JWT and return the identity it carries."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    token = credentials.credentials

    try:
        return _decode(token, await get_jwks())
    except (JWTError, ValueError) as first_error:
        # Key rotation may have occurred - force a JWKS refresh and retry once
        try:
            logger.info("JWT validation failed with cached JWKS, forcing refresh")
            return _decode(token, await get_jwks(force_refresh=True))
        except (JWTError, ValueError, httpx.HTTPError):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
            ) from first_error
    except httpx.HTTPError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None


async def get_current_user(
    auth_user: AuthUser = Depends(get_current_auth_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Return the users row for the authenticated caller.

    The row is created by POST /users after phone verification; a verified
    token without a row gets 404 so the client can finish sign-up.
    """
    statement = select(User).where(User.id == auth_user.id)  # type: ignore[arg-type]
    result = await db.execute(statement)
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    return user


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Get current user if authenticated, None otherwise."""
    if not credentials:
        return None
    try:
        auth_user = await get_current_auth_user(credentials)
        return await get_current_user(auth_user, db)
    except HTTPException:
        return None


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentAuthUser = Annotated[AuthUser, Depends(get_current_auth_user)]
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_current_user_optional)]
