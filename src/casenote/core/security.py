"""
Auth Context

Resolves the authenticated owner identifier for every note and ingestion
request. Session issuance and password handling live outside this service;
we only verify bearer JWTs signed with the shared secret and read the
owner from the ``sub`` claim (falling back to ``email``).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from casenote.core.config import settings
from casenote.core.exceptions import AuthError

logger = logging.getLogger(__name__)

# auto_error=False: a missing header must become our 401, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)

DEFAULT_TOKEN_TTL_MINUTES = 60


def create_access_token(
    owner_id: str,
    expires_minutes: int = DEFAULT_TOKEN_TTL_MINUTES,
    secret_key: str | None = None,
) -> str:
    """
    Issue a signed access token for ``owner_id``.

    Only used by development tooling and tests; production tokens come
    from the identity provider.
    """
    key = secret_key or settings.JWT_SECRET_KEY
    if not key:
        raise AuthError("JWT_SECRET_KEY is not configured")

    now = datetime.now(UTC)
    payload = {
        "sub": owner_id,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, key, algorithm=settings.JWT_ALGORITHM)


def decode_owner_token(token: str) -> str:
    """
    Validate a bearer token and return the owner identifier it carries.

    Raises:
        AuthError: If the token is expired, malformed, badly signed, or
            carries no usable identity claim.
    """
    if not settings.JWT_SECRET_KEY:
        logger.warning("JWT_SECRET_KEY not configured - rejecting all requests")
        raise AuthError("Authentication is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError as e:
        logger.info("Token has expired")
        raise AuthError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        # Type only: the message can echo token fragments
        logger.info("Invalid token: %s", type(e).__name__)
        raise AuthError("Could not validate credentials") from e

    owner_id = payload.get("sub") or payload.get("email")
    if not owner_id or not isinstance(owner_id, str):
        raise AuthError("Token carries no owner identity")
    return owner_id


async def get_current_owner(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """FastAPI dependency returning the authenticated owner id (401 otherwise)."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Unauthorized")
    return decode_owner_token(credentials.credentials)
