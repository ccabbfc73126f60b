"""Per-organization onboarding state machine."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.contracts.onboarding import OnboardingRequest
from app.models.enums import OnboardingState, OrganizationRole, OrganizationType
from app.models.organization_users import OrganizationUser
from app.models.organizations import Organization
from app.models.users import User
from app.services import market_config
from app.services.crud import CRUDBase

logger = logging.getLogger(__name__)


class OnboardingServiceError(Exception):
    """Base exception for onboarding service errors."""

    pass


class MarketLockError(OnboardingServiceError):
    """The submitted country is outside the markets currently open."""

    def __init__(self, country: Optional[str], field: str = "country"):
        self.country = country
        self.field = field
        allowed = ", ".join(market_config.get_allowed_countries())
        super().__init__(f"Signups are currently only available in {allowed}")


def organization_defaults(org_id: str) -> dict:
    """Name and type for an organization created on first touch."""
    is_demo = "demo" in org_id
    return {
        "id": org_id,
        "name": "Demo Organization" if is_demo else "Default Organization",
        "type": OrganizationType.demo.value if is_demo else OrganizationType.trial.value,
        "is_demo": is_demo,
    }


class OnboardingService:
    """
    Moves a (user, organization) pair from not onboarded to onboarded.

    States per pair: no_org_record -> org_record_not_onboarded ->
    org_record_onboarded. There is no transition back.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.organizations = CRUDBase(Organization, db)
        self.organization_users = CRUDBase(OrganizationUser, db)
        self.users = CRUDBase(User, db)

    async def get_membership(self, user_id: str, org_id: str) -> Optional[OrganizationUser]:
        return await self.organization_users.get_by(user_id=user_id, organization_id=org_id)

    async def get_state(self, user_id: str, org_id: str) -> OnboardingState:
        membership = await self.get_membership(user_id, org_id)
        if membership is None:
            return OnboardingState.no_org_record
        if membership.is_onboarded:
            return OnboardingState.org_record_onboarded
        return OnboardingState.org_record_not_onboarded

    async def is_onboarded(self, user_id: str, org_id: str) -> bool:
        return await self.get_state(user_id, org_id) == OnboardingState.org_record_onboarded

    async def get_latest_membership(self, user_id: str) -> Optional[OrganizationUser]:
        result = await self.db.execute(
            select(OrganizationUser)
            .where(OrganizationUser.user_id == user_id)
            .order_by(OrganizationUser.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def ensure_organization(self, org_id: str) -> bool:
        return await self.organizations.create_if_missing(organization_defaults(org_id))

    async def ensure_membership(
        self,
        user_id: str,
        org_id: str,
        is_onboarded: bool,
        role: OrganizationRole = OrganizationRole.owner,
    ) -> bool:
        values = {
            "user_id": user_id,
            "organization_id": org_id,
            "role": role.value,
            "is_onboarded": is_onboarded,
        }
        if is_onboarded:
            values["onboarded_at"] = datetime.now(timezone.utc)
        return await self.organization_users.create_if_missing(values)

    async def update_user_onboarding(self, user_id: str, payload: OnboardingRequest) -> int:
        return await self.users.update_where(
            {"id": user_id},
            {
                "business_name": payload.business_name,
                "trade": payload.trade,
                "service_area": payload.service_area,
                "country": payload.country,
                "is_gst_registered": bool(payload.is_gst_registered),
                "is_onboarded": True,
            },
        )

    async def complete_onboarding(
        self,
        user_id: str,
        org_id: str,
        payload: OnboardingRequest,
    ) -> OnboardingState:
        """
        Mark ``user_id`` onboarded in ``org_id`` and store the profile fields.

        The market lock is checked before any write. Each write commits on its
        own and is an insert-or-ignore or a plain update, so a failed request
        can leave the organization without a membership row and a retry is
        safe. A second submission leaves the membership row untouched but
        still rewrites the profile fields.

        Raises:
            MarketLockError: If the country is not open for signups.
        """
        if not market_config.is_country_allowed(payload.country):
            logger.info(
                "Onboarding rejected for user %s: country %r not in %s",
                user_id, payload.country, market_config.get_allowed_countries(),
            )
            raise MarketLockError(payload.country)

        logger.info("User %s completing onboarding for org %s", user_id, org_id)

        await self.ensure_organization(org_id)
        created = await self.ensure_membership(user_id, org_id, is_onboarded=True)
        if not created:
            # Rows minted by demo provisioning start not onboarded; rows already onboarded stay as they are
            flipped = await self.organization_users.update_where(
                {"user_id": user_id, "organization_id": org_id, "is_onboarded": False},
                {
                    "role": OrganizationRole.owner.value,
                    "is_onboarded": True,
                    "onboarded_at": datetime.now(timezone.utc),
                },
            )
            if not flipped:
                logger.info("Membership %s/%s already onboarded, left unchanged", user_id, org_id)

        updated = await self.update_user_onboarding(user_id, payload)
        if not updated:
            logger.warning("No user row for %s, profile fields not stored", user_id)

        return await self.get_state(user_id, org_id)
