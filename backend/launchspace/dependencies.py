"""FastAPI dependency injection providers."""

import secrets
from typing import Optional

import structlog
from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from launchspace.config import settings
from launchspace.core.exceptions import ForbiddenError, UnauthorizedError
from launchspace.db.utils import get_db
from launchspace.services.auth_service import decode_access_token, is_admin
from launchspace.services.cache_service import get_cache

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

__all__ = [
    "get_db",
    "get_cache",
    "get_current_user_id",
    "get_optional_user_id",
    "get_admin_user_id",
    "require_cron_secret",
]


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> str:
    """Extract and validate the bearer token, return the caller's user id.

    Raises 401 if the token is missing or invalid.
    """
    if not credentials:
        raise UnauthorizedError()

    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        raise UnauthorizedError("Invalid or expired token")
    return user_id


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[str]:
    """Like get_current_user_id but returns None instead of raising 401."""
    if not credentials:
        return None
    return decode_access_token(credentials.credentials)


async def get_admin_user_id(user_id: str = Depends(get_current_user_id)) -> str:
    """Caller must be listed in ADMIN_USER_IDS."""
    if not is_admin(user_id):
        raise ForbiddenError("Admin access required")
    return user_id


async def require_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Guard for scheduler-triggered endpoints (``Authorization: Bearer <CRON_SECRET>``)."""
    if not settings.CRON_SECRET:
        logger.warning("cron_secret_not_configured")
        raise ForbiddenError("Scheduled endpoints are disabled")

    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not secrets.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("cron_secret_rejected")
        raise UnauthorizedError("Invalid cron secret")
