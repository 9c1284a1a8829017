"""Bearer token handling.

Accounts live with the external identity provider; the API only needs the
opaque user id carried in the token's ``sub`` claim.
"""

from typing import Optional

from jose import JWTError, jwt

from launchspace.config import settings


def decode_access_token(token: str) -> Optional[str]:
    """Decode a JWT and return its user id, or None if invalid or expired."""
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) and subject else None


def is_admin(user_id: Optional[str]) -> bool:
    return bool(user_id) and user_id in settings.get_admin_user_ids()
