"""
Contracts for onboarding.
"""

from typing import Optional

from .base import CamelContract


class OnboardingRequest(CamelContract):
    business_name: str
    trade: str
    service_area: str
    country: str
    is_gst_registered: Optional[bool] = False


class OnboardingResponse(CamelContract):
    ok: bool = True
    redirect: str = "/dashboard"
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    organization_onboarded: Optional[bool] = None
