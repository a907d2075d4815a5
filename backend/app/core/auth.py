"""
Tubely Authentication Module

Bearer-token authentication for the upload and video endpoints:

- HS256 JWT generation with ``sub`` = user id and a configurable expiry
- JWT validation against the shared secret
- A FastAPI dependency yielding the authenticated user id

Missing, malformed, expired or badly signed tokens all raise
``Unauthenticated`` (401). Ownership of a particular video is checked by the
services, not here.

Usage:
    ```python
    from fastapi import Depends
    from app.core.auth import get_current_user_id

    @router.get("/videos")
    async def list_videos(user_id: str = Depends(get_current_user_id)):
        ...
    ```
"""

import logging

from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import Settings, get_settings
from app.core.exceptions import Unauthenticated


# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Security Scheme
# =============================================================================

# Missing credentials resolve to None and are rejected in get_current_user_id
security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


# =============================================================================
# Token Functions
# =============================================================================


def create_access_token(user_id: str, settings: Settings) -> str:
    """
    Create a signed access token for ``user_id``.

    Token claims:
    - sub: User ID (subject)
    - iat: Issued at timestamp
    - exp: Expiration timestamp (``jwt_expiration_hours`` from now)
    - iss: Application name

    Args:
        user_id: The user's unique identifier.
        settings: Settings instance containing secret_key and jwt settings.

    Returns:
        str: The encoded JWT token string.
    """
    now = datetime.now(UTC)
    expire = now + timedelta(hours=settings.jwt_expiration_hours)

    payload = {
        "sub": user_id,
        "iat": now,
        "exp": expire,
        "iss": settings.app_name,
    }

    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    logger.debug("Created access token for user: %s (expires: %s)", user_id, expire.isoformat())
    return token


def decode_access_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Validate a token's signature, expiry and issuer and return its claims.

    Raises:
        Unauthenticated: If the token is invalid, expired or has no subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.app_name,
        )
    except JWTError as e:
        logger.warning("JWT validation failed: %s", str(e))
        raise Unauthenticated() from e

    if not payload.get("sub"):
        logger.warning("Token missing 'sub' claim")
        raise Unauthenticated("Invalid token: missing user identifier")
    return payload


# =============================================================================
# FastAPI Dependencies
# =============================================================================


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Resolve the authenticated user id from the ``Authorization`` header.

    Raises:
        Unauthenticated: No bearer token, or the token does not validate.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Couldn't find JWT")
    payload = decode_access_token(credentials.credentials, settings)
    return str(payload["sub"])
