"""
Contracts for the session-backed auth endpoints.
"""

from typing import Optional

from .base import CamelContract


class AuthUserResponse(CamelContract):
    user_id: str
    email: Optional[str] = None
    is_onboarded: bool = False


class FirstRunResponse(CamelContract):
    show_welcome: bool


class MagicLinkClaims(CamelContract):
    user_id: Optional[str] = None
    email: Optional[str] = None
    redirect: Optional[str] = None
