"""
Enum definitions for the organization and onboarding columns.
Uses (str, Enum) pattern so values serialize correctly in Pydantic.
"""

from enum import Enum


class OrganizationType(str, Enum):
    demo = "demo"
    trial = "trial"
    premium = "premium"


class OrganizationRole(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"


class OnboardingState(str, Enum):
    """Per (user, organization) onboarding state, derived from organization_users."""
    no_org_record = "no_org_record"
    org_record_not_onboarded = "org_record_not_onboarded"
    org_record_onboarded = "org_record_onboarded"
