"""
Contracts for server-side session state.

The session blob is validated here when it is loaded from the store, so the
rest of the application reads typed fields instead of ad hoc keys.
"""

from enum import Enum
from typing import Literal, Optional

from .base import CamelContract

DEMO_ORG_ID = "demo-org-default"
DEFAULT_ORG_ID = "default-org"


class SessionKind(str, Enum):
    anonymous = "anonymous"
    demo_pending_onboarding = "demo_pending_onboarding"
    demo_onboarded = "demo_onboarded"
    production_pending_onboarding = "production_pending_onboarding"
    production_onboarded = "production_onboarded"

    @property
    def is_demo(self) -> bool:
        return self in (SessionKind.demo_pending_onboarding, SessionKind.demo_onboarded)

    @property
    def is_production(self) -> bool:
        return self in (
            SessionKind.production_pending_onboarding,
            SessionKind.production_onboarded,
        )


class DemoUser(CamelContract):
    """Denormalized demo profile kept in the session for display."""
    id: str
    first_name: str = "Demo"
    last_name: str = "User"
    email: str = "demo@bluetradie.com"
    country: str = "Australia"
    trade: str = "Electrician"
    business_name: str = "Demo Electrical Services"
    profile_image_url: Optional[str] = None
    token_balance: int = 200
    subscription_tier: str = "Demo Access"
    is_onboarded: bool = False
    service_area: str = "Sydney"
    is_gst_registered: bool = True


class SessionState(CamelContract):
    user_id: Optional[str] = None
    email: Optional[str] = None
    password_authenticated: bool = False
    is_onboarded: bool = False
    current_org_id: Optional[str] = None
    mode: Optional[Literal["demo"]] = None
    is_test_authenticated: bool = False
    test_user: Optional[DemoUser] = None
    first_login: bool = False

    @property
    def kind(self) -> SessionKind:
        if self.user_id and self.password_authenticated:
            if self.is_onboarded:
                return SessionKind.production_onboarded
            return SessionKind.production_pending_onboarding
        if self.mode == "demo" and self.is_test_authenticated and self.test_user:
            if self.is_onboarded or self.test_user.is_onboarded:
                return SessionKind.demo_onboarded
            return SessionKind.demo_pending_onboarding
        return SessionKind.anonymous

    @property
    def principal_id(self) -> Optional[str]:
        """The user id the session acts as, for either flavour of login."""
        kind = self.kind
        if kind.is_production:
            return self.user_id
        if kind.is_demo:
            return self.test_user.id
        return None

    def is_empty(self) -> bool:
        return self == SessionState()

    def clear_demo(self) -> None:
        self.test_user = None
        self.is_test_authenticated = False
