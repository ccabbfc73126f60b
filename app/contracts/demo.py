"""
Contracts for demo code verification.
"""

from typing import Any, Optional

from .base import CamelContract


class DemoVerifyRequest(CamelContract):
    # Left untyped so a non-string code reaches the handler and gets a 400
    code: Optional[Any] = None


class DemoVerifyResponse(CamelContract):
    success: bool = True
    user_id: str
    org_id: str
    mode: str = "demo"
    redirect_to: str = "/onboarding"
