"""
Demo code redemption.

A demo code buys an ephemeral identity in the shared demo organization
without any password. Every redemption mints a new user that still has to
go through onboarding.
"""

import logging
import secrets
import string
import time
from datetime import date, datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.contracts.session import DEMO_ORG_ID, DemoUser
from app.models.users import User
from app.services.crud import CRUDBase
from app.services.onboarding_service import OnboardingService

logger = logging.getLogger(__name__)

STATIC_DEMO_CODES: Tuple[str, ...] = ("DEMO2024", "PREVIEW123", "TEST456", "CY789")
DEMO_AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed=demo"

_BASE36 = string.digits + string.ascii_lowercase


class DemoCodeError(Exception):
    """The supplied demo code is not on the allow-list."""

    pass


def daily_demo_code(today: Optional[date] = None) -> str:
    """The date-derived code, ``test-demo-YYYYMMDD``, on the UTC calendar."""
    today = today or datetime.now(timezone.utc).date()
    return f"test-demo-{today.strftime('%Y%m%d')}"


def valid_demo_codes(today: Optional[date] = None) -> Tuple[str, ...]:
    return STATIC_DEMO_CODES + (daily_demo_code(today),)


def is_valid_demo_code(code: str, today: Optional[date] = None) -> bool:
    """Case-sensitive exact match after trimming surrounding whitespace."""
    return code.strip() in valid_demo_codes(today)


def generate_demo_user_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"demo-user-{int(time.time() * 1000)}-{suffix}"


def build_demo_user(user_id: str) -> DemoUser:
    return DemoUser(id=user_id, profile_image_url=DEMO_AVATAR_URL)


class DemoService:
    """Mints demo identities and their backing rows."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = CRUDBase(User, db)
        self.onboarding = OnboardingService(db)

    async def provision(self, code: str, today: Optional[date] = None) -> DemoUser:
        """
        Validate ``code`` and create a fresh demo user in the demo organization.

        The membership row is created not onboarded, which sends every new
        demo user through onboarding even when the organization already
        exists.

        Raises:
            DemoCodeError: If the code is not recognised. Nothing is written.
        """
        if not is_valid_demo_code(code, today):
            raise DemoCodeError(code)

        demo_user = build_demo_user(generate_demo_user_id())

        await self.users.create_if_missing({
            "id": demo_user.id,
            "first_name": demo_user.first_name,
            "last_name": demo_user.last_name,
            "business_name": demo_user.business_name,
            "trade": demo_user.trade,
            "service_area": demo_user.service_area,
            "country": demo_user.country,
            "is_gst_registered": demo_user.is_gst_registered,
            "is_onboarded": False,
            "is_demo_user": True,
        })
        await self.onboarding.ensure_organization(DEMO_ORG_ID)
        await self.onboarding.ensure_membership(demo_user.id, DEMO_ORG_ID, is_onboarded=False)

        logger.info("Demo code verified, user %s created in org %s", demo_user.id, DEMO_ORG_ID)
        return demo_user
