"""
Magic-link tokens.

A magic link carries an HS256 JWT signed with MAGIC_LINK_JWT_SECRET (or
SESSION_SECRET when unset). Claims: ``userId``, ``email`` and an optional
relative ``redirect``.
"""

import logging
import time
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import get_settings
from app.contracts.auth import MagicLinkClaims

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TTL = 60 * 60  # 1 hour


class MagicLinkError(ValueError):
    """Token could not be verified."""

    def __init__(self, message: str, expired: bool = False):
        super().__init__(message)
        self.expired = expired


def create_magic_link_token(
    user_id: str,
    email: str,
    redirect: Optional[str] = None,
    expires_in: int = DEFAULT_TTL,
) -> str:
    now = int(time.time())
    payload = {"userId": user_id, "email": email, "iat": now, "exp": now + expires_in}
    if redirect:
        payload["redirect"] = redirect
    return jwt.encode(payload, get_settings().magic_link_secret, algorithm=ALGORITHM)


def verify_magic_link_token(token: str) -> MagicLinkClaims:
    """
    Verify a magic-link JWT and return its claims.

    Raises:
        MagicLinkError: If the signature, format or expiry check fails.
    """
    try:
        payload = jwt.decode(token, get_settings().magic_link_secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        raise MagicLinkError(f"Token expired: {e}", expired=True)
    except JWTError as e:
        raise MagicLinkError(f"Token verification failed: {e}")
    return MagicLinkClaims.model_validate(payload)


def safe_redirect(target: Optional[str]) -> Optional[str]:
    """Keep only same-site relative paths."""
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None
