"""
Onboarding routes: POST /api/user/onboarding
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.contracts.onboarding import OnboardingRequest, OnboardingResponse
from app.contracts.session import DEMO_ORG_ID
from app.core.sessions import RequestSession
from app.dependencies.auth import require_auth
from app.dependencies.db import get_db
from app.models.enums import OnboardingState
from app.services.onboarding_service import MarketLockError, OnboardingService

logger = logging.getLogger(__name__)

router = APIRouter()


async def run_onboarding(
    session: RequestSession,
    user_id: str,
    org_id: str,
    payload: OnboardingRequest,
    db: AsyncSession,
):
    """
    Complete onboarding, mirror the result into the session and answer.

    A failed session save is logged but still answers success, since the
    database already holds the onboarding record.
    """
    try:
        state = await OnboardingService(db).complete_onboarding(user_id, org_id, payload)
    except MarketLockError as e:
        return JSONResponse(status_code=400, content={"message": str(e), "field": e.field})
    except Exception as e:
        logger.error("Onboarding failed for user %s: %s", user_id, e, exc_info=e)
        return JSONResponse(status_code=500, content={"message": "Failed to complete onboarding"})

    onboarded = state == OnboardingState.org_record_onboarded
    session.data.current_org_id = org_id
    session.data.is_onboarded = onboarded
    if session.data.test_user is not None and session.data.test_user.id == user_id:
        session.data.test_user = session.data.test_user.model_copy(update={
            "is_onboarded": onboarded,
            "business_name": payload.business_name,
            "trade": payload.trade,
            "service_area": payload.service_area,
            "country": payload.country,
            "is_gst_registered": bool(payload.is_gst_registered),
        })

    try:
        await session.save()
    except Exception as e:
        logger.error("Session save failed after onboarding for %s: %s", user_id, e)
        return OnboardingResponse()

    logger.info("Saved session for %s, org: %s", user_id, org_id)
    return OnboardingResponse(
        user_id=user_id,
        organization_id=org_id,
        organization_onboarded=onboarded,
    )


@router.post(
    "/api/user/onboarding",
    response_model=OnboardingResponse,
    response_model_exclude_none=True,
)
async def complete_onboarding(
    payload: OnboardingRequest,
    session: RequestSession = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    org_id = session.data.current_org_id or DEMO_ORG_ID
    return await run_onboarding(session, session.data.user_id, org_id, payload, db)
