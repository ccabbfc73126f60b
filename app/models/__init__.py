from .base import Base

# Enums
from .enums import OnboardingState, OrganizationRole, OrganizationType

# Tier 1, no FKs
from .users import User
from .organizations import Organization

# Tier 2
from .organization_users import OrganizationUser
