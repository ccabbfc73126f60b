"""
Demo routes: code verification, demo profile, demo onboarding, demo dashboard.

Code verification is preview-only and must be switched on with
PREVIEW_DISABLE_MAGIC_LINKS=true.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.routes.onboarding import run_onboarding
from app.config import get_settings
from app.contracts.demo import DemoVerifyRequest, DemoVerifyResponse
from app.contracts.onboarding import OnboardingRequest, OnboardingResponse
from app.contracts.session import DEMO_ORG_ID
from app.core.sessions import RequestSession
from app.dependencies.auth import require_demo_session
from app.dependencies.db import get_db
from app.dependencies.sessions import get_session
from app.services.demo_service import DemoCodeError, DemoService

logger = logging.getLogger(__name__)

router = APIRouter()


def demo_verification_enabled() -> bool:
    settings = get_settings()
    return settings.is_preview and settings.preview_disable_magic_links


async def verify_demo_code(
    payload: Optional[DemoVerifyRequest] = None,
    session: RequestSession = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    """
    Redeem a demo code for a fresh demo session in the demo organization.
    """
    if not demo_verification_enabled():
        return JSONResponse(
            status_code=403,
            content={"error": "Code verification only available in preview mode"},
        )

    code = payload.code if payload else None
    if not code or not isinstance(code, str):
        return JSONResponse(status_code=400, content={"error": "Demo code required"})

    try:
        demo_user = await DemoService(db).provision(code)
    except DemoCodeError:
        logger.info("Invalid demo code attempted: %r", code)
        return JSONResponse(status_code=401, content={"error": "Invalid demo code"})
    except Exception as e:
        logger.error("Demo code verification error: %s", e, exc_info=e)
        return JSONResponse(status_code=500, content={"error": "Demo verification failed"})

    data = session.data
    data.test_user = demo_user
    data.is_test_authenticated = True
    data.current_org_id = DEMO_ORG_ID
    data.mode = "demo"
    data.is_onboarded = False

    # Preview traffic is plain HTTP; host-only cookie
    session.cookie_overrides.update(secure=False, httponly=True, samesite="lax", domain=None)

    logger.info("Demo session mode=%s org_id=%s for %s", data.mode, data.current_org_id, demo_user.id)
    return DemoVerifyResponse(user_id=demo_user.id, org_id=DEMO_ORG_ID)


router.add_api_route(
    "/api/demo/verify", verify_demo_code, methods=["POST"], response_model=DemoVerifyResponse
)
router.add_api_route(
    "/auth/demo/verify", verify_demo_code, methods=["POST"], response_model=DemoVerifyResponse,
    include_in_schema=False,
)


@router.get("/api/demo/user")
async def get_demo_user(session: RequestSession = Depends(get_session)):
    data = session.data
    if not data.kind.is_demo:
        return JSONResponse(status_code=401, content={"message": "Not authenticated"})
    return data.test_user.model_dump(by_alias=True)


@router.post("/api/demo/logout")
async def demo_logout(session: RequestSession = Depends(get_session)):
    session.data.clear_demo()
    return {"success": True, "message": "Logged out successfully"}


@router.post(
    "/api/demo/onboarding",
    response_model=OnboardingResponse,
    response_model_exclude_none=True,
)
async def complete_demo_onboarding(
    payload: OnboardingRequest,
    session: RequestSession = Depends(require_demo_session),
    db: AsyncSession = Depends(get_db),
):
    """Run onboarding for the demo user in the demo organization."""
    return await run_onboarding(session, session.data.test_user.id, DEMO_ORG_ID, payload, db)


@router.get("/demo/dashboard")
async def demo_dashboard(session: RequestSession = Depends(require_demo_session)):
    data = session.data
    return {
        "mode": data.mode,
        "orgId": data.current_org_id,
        "user": data.test_user.model_dump(by_alias=True),
    }
