"""
This module contains the contracts for the application.
"""

from .base import BaseContract, CamelContract
from .session import DEFAULT_ORG_ID, DEMO_ORG_ID, DemoUser, SessionKind, SessionState
from .auth import AuthUserResponse, FirstRunResponse, MagicLinkClaims
from .onboarding import OnboardingRequest, OnboardingResponse
from .demo import DemoVerifyRequest, DemoVerifyResponse
from .market import MarketConfigResponse
