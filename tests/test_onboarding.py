"""
Onboarding tests: the per-organization state machine, the market lock,
the onboarding endpoint and the onboarding gate.
"""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.contracts.onboarding import OnboardingRequest
from app.contracts.session import DEMO_ORG_ID, SessionState
from app.models import OnboardingState, Organization, OrganizationUser, User
from app.services.crud import CRUDBase
from app.services.onboarding_service import (
    MarketLockError,
    OnboardingService,
    organization_defaults,
)


async def membership_row(db: AsyncSession, user_id: str, org_id: str):
    result = await db.execute(
        select(
            OrganizationUser.is_onboarded,
            OrganizationUser.role,
            OrganizationUser.onboarded_at,
        ).where(
            OrganizationUser.user_id == user_id,
            OrganizationUser.organization_id == org_id,
        )
    )
    return result.first()


class TestOnboardingService:
    """Test the state machine directly."""

    @pytest.mark.asyncio
    async def test_states(self, db_session: AsyncSession, test_user, onboarding_payload):
        service = OnboardingService(db_session)
        assert await service.get_state(test_user.id, "org-1") == OnboardingState.no_org_record

        await service.ensure_organization("org-1")
        await service.ensure_membership(test_user.id, "org-1", is_onboarded=False)
        assert await service.get_state(test_user.id, "org-1") == OnboardingState.org_record_not_onboarded

        payload = OnboardingRequest.model_validate(onboarding_payload)
        state = await service.complete_onboarding(test_user.id, "org-1", payload)
        assert state == OnboardingState.org_record_onboarded

        row = await membership_row(db_session, test_user.id, "org-1")
        assert row.is_onboarded is True
        assert row.role == "owner"
        assert row.onboarded_at is not None

    @pytest.mark.asyncio
    async def test_onboarded_in_one_organization_only(self, db_session: AsyncSession, test_user, onboarding_payload):
        service = OnboardingService(db_session)
        payload = OnboardingRequest.model_validate(onboarding_payload)
        await service.complete_onboarding(test_user.id, "org-1", payload)

        assert await service.is_onboarded(test_user.id, "org-1") is True
        assert await service.is_onboarded(test_user.id, "org-2") is False

    @pytest.mark.asyncio
    async def test_market_lock_writes_nothing(self, db_session: AsyncSession, test_user, configure, onboarding_payload):
        configure(app_market_lock="NZ")
        service = OnboardingService(db_session)
        payload = OnboardingRequest.model_validate({**onboarding_payload, "country": "France"})

        with pytest.raises(MarketLockError) as exc_info:
            await service.complete_onboarding(test_user.id, "org-1", payload)

        assert exc_info.value.field == "country"
        assert str(exc_info.value) == "Signups are currently only available in New Zealand"
        assert await CRUDBase(Organization, db_session).count() == 0
        assert await CRUDBase(OrganizationUser, db_session).count() == 0

    def test_organization_defaults(self):
        assert organization_defaults(DEMO_ORG_ID) == {
            "id": DEMO_ORG_ID,
            "name": "Demo Organization",
            "type": "demo",
            "is_demo": True,
        }
        defaults = organization_defaults("org-tradie")
        assert defaults["name"] == "Default Organization"
        assert defaults["type"] == "trial"
        assert defaults["is_demo"] is False


class TestOnboardingEndpoint:
    """Test POST /api/user/onboarding."""

    @pytest.mark.asyncio
    async def test_requires_auth(self, async_client: AsyncClient, onboarding_payload):
        response = await async_client.post("/api/user/onboarding", json=onboarding_payload)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_completes_onboarding(
        self, async_client: AsyncClient, db_session: AsyncSession, login_as, production_session, onboarding_payload
    ):
        await login_as(production_session)

        response = await async_client.post("/api/user/onboarding", json=onboarding_payload)
        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "redirect": "/dashboard",
            "userId": "user-123",
            "organizationId": "org-tradie",
            "organizationOnboarded": True,
        }

        row = await membership_row(db_session, "user-123", "org-tradie")
        assert row.is_onboarded is True

        result = await db_session.execute(
            select(User.business_name, User.country, User.is_gst_registered).where(User.id == "user-123")
        )
        assert tuple(result.first()) == ("Sparks Electrical", "New Zealand", True)

        org = await db_session.execute(select(Organization.name, Organization.type).where(Organization.id == "org-tradie"))
        assert tuple(org.first()) == ("Default Organization", "trial")

        auth_user = await async_client.get("/api/auth/user")
        assert auth_user.json()["isOnboarded"] is True

    @pytest.mark.asyncio
    async def test_resubmission_is_idempotent(
        self, async_client: AsyncClient, db_session: AsyncSession, login_as, production_session, onboarding_payload
    ):
        await login_as(production_session)

        first = await async_client.post("/api/user/onboarding", json=onboarding_payload)
        assert first.status_code == 200
        onboarded_at = (await membership_row(db_session, "user-123", "org-tradie")).onboarded_at

        second = await async_client.post(
            "/api/user/onboarding", json={**onboarding_payload, "trade": "Plumber"}
        )
        assert second.status_code == 200

        assert await CRUDBase(Organization, db_session).count() == 1
        assert await CRUDBase(OrganizationUser, db_session).count() == 1
        assert (await membership_row(db_session, "user-123", "org-tradie")).onboarded_at == onboarded_at

        result = await db_session.execute(select(User.trade).where(User.id == "user-123"))
        assert result.scalar() == "Plumber"

    @pytest.mark.asyncio
    async def test_market_lock_rejection(
        self, async_client: AsyncClient, db_session: AsyncSession, login_as, production_session,
        configure, onboarding_payload,
    ):
        configure(app_market_lock="NZ")
        await login_as(production_session)

        response = await async_client.post(
            "/api/user/onboarding", json={**onboarding_payload, "country": "France"}
        )
        assert response.status_code == 400
        assert response.json() == {
            "message": "Signups are currently only available in New Zealand",
            "field": "country",
        }
        assert await CRUDBase(OrganizationUser, db_session).count() == 0

        auth_user = await async_client.get("/api/auth/user")
        assert auth_user.json()["isOnboarded"] is False

    @pytest.mark.asyncio
    async def test_au_lock_accepts_australia(
        self, async_client: AsyncClient, login_as, production_session, configure, onboarding_payload
    ):
        configure(app_market_lock="AU")
        await login_as(production_session)

        response = await async_client.post(
            "/api/user/onboarding", json={**onboarding_payload, "country": "Australia"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_session_without_org_falls_back_to_demo_org(
        self, async_client: AsyncClient, login_as, session_store, production_session, onboarding_payload
    ):
        production_session.current_org_id = None
        session_id = await login_as(production_session)

        response = await async_client.post("/api/user/onboarding", json=onboarding_payload)
        assert response.json()["organizationId"] == DEMO_ORG_ID

        stored = SessionState.model_validate(await session_store.get(session_id))
        assert stored.current_org_id == DEMO_ORG_ID
        assert stored.is_onboarded is True

        # The gate reads the same organization the user was onboarded in
        page = await async_client.get("/")
        assert page.status_code == 200

    @pytest.mark.asyncio
    async def test_session_save_failure_still_succeeds(
        self, async_client: AsyncClient, db_session: AsyncSession, login_as, session_store,
        production_session, onboarding_payload, monkeypatch,
    ):
        await login_as(production_session)
        monkeypatch.setattr(session_store, "set", AsyncMock(side_effect=RuntimeError("store down")))

        response = await async_client.post("/api/user/onboarding", json=onboarding_payload)
        assert response.status_code == 200
        assert response.json() == {"ok": True, "redirect": "/dashboard"}

        row = await membership_row(db_session, "user-123", "org-tradie")
        assert row.is_onboarded is True

    @pytest.mark.asyncio
    async def test_validation_error_names_field(
        self, async_client: AsyncClient, login_as, production_session, onboarding_payload
    ):
        await login_as(production_session)
        payload = dict(onboarding_payload)
        del payload["businessName"]

        response = await async_client.post("/api/user/onboarding", json=payload)
        assert response.status_code == 422
        assert response.json()["field"] == "businessName"


class TestOnboardingGate:
    """Pages outside the exempt list redirect until onboarding is done."""

    @pytest.mark.asyncio
    async def test_anonymous_passes(self, async_client: AsyncClient):
        response = await async_client.get("/")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_pending_user_redirected(self, async_client: AsyncClient, login_as, production_session):
        await login_as(production_session)
        response = await async_client.get("/")
        assert response.status_code == 302
        assert response.headers["location"] == "/onboarding"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/health", "/api/config/market", "/debug/session", "/assets/app.js"])
    async def test_exempt_paths_pass(self, async_client: AsyncClient, login_as, production_session, path):
        await login_as(production_session)
        response = await async_client.get(path)
        assert response.status_code != 302

    @pytest.mark.asyncio
    async def test_onboarded_user_passes(
        self, async_client: AsyncClient, login_as, production_session, onboarding_payload
    ):
        await login_as(production_session)
        await async_client.post("/api/user/onboarding", json=onboarding_payload)

        response = await async_client.get("/")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_session_flag_alone_does_not_pass(self, async_client: AsyncClient, login_as, production_session):
        production_session.is_onboarded = True
        await login_as(production_session)

        response = await async_client.get("/")
        assert response.status_code == 302

    @pytest.mark.asyncio
    async def test_lookup_failure_lets_request_through(
        self, async_client: AsyncClient, login_as, production_session, monkeypatch
    ):
        await login_as(production_session)
        monkeypatch.setattr(
            OnboardingService, "is_onboarded", AsyncMock(side_effect=RuntimeError("db down"))
        )
        response = await async_client.get("/")
        assert response.status_code == 200


class TestSessionStateMirror:
    """The session flag follows the database after onboarding."""

    @pytest.mark.asyncio
    async def test_flag_matches_membership(
        self, async_client: AsyncClient, login_as, session_store, production_session, onboarding_payload
    ):
        session_id = await login_as(production_session)
        await async_client.post("/api/user/onboarding", json=onboarding_payload)
        stored = SessionState.model_validate(await session_store.get(session_id))
        assert stored.is_onboarded is True
