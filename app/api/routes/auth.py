"""
Authentication routes: session check, first run, magic-link login, logout.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.contracts.auth import AuthUserResponse, FirstRunResponse
from app.contracts.session import DEFAULT_ORG_ID
from app.core.magic_link import MagicLinkError, safe_redirect, verify_magic_link_token
from app.core.sessions import RequestSession
from app.dependencies.auth import require_auth, unauthorized
from app.dependencies.db import get_db
from app.dependencies.sessions import get_session
from app.models.users import User
from app.services.crud import CRUDBase
from app.services.onboarding_service import OnboardingService

logger = logging.getLogger(__name__)

router = APIRouter()


def login_redirect(error: str) -> RedirectResponse:
    return RedirectResponse(f"/login?error={error}", status_code=302)


@router.get("/api/auth/user", response_model=AuthUserResponse)
async def get_auth_user(session: RequestSession = Depends(get_session)):
    """
    Return the signed-in user, or 401.
    """
    data = session.data
    logger.info(
        "Session check: session_id=%s user_id=%s password_authenticated=%s is_onboarded=%s",
        session.session_id[:8] if session.session_id else None,
        data.user_id, data.password_authenticated, data.is_onboarded,
    )
    if not data.kind.is_production:
        raise unauthorized()
    return AuthUserResponse(user_id=data.user_id, email=data.email, is_onboarded=data.is_onboarded)


@router.get("/api/user/first-run", response_model=FirstRunResponse)
async def get_first_run(session: RequestSession = Depends(require_auth)):
    """
    Report whether to show the welcome screen. The flag is cleared once read.
    """
    show_welcome = session.data.first_login
    if show_welcome:
        session.data.first_login = False
        try:
            await session.save()
        except Exception as e:
            logger.error("Failed to clear first_login flag: %s", e)
    return FirstRunResponse(show_welcome=show_welcome)


@router.get("/auth/verify")
async def verify_magic_link(
    token: Optional[str] = None,
    session: RequestSession = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange a magic-link token for a password-authenticated session.

    Always answers with a redirect: to the requested page, to onboarding or
    the dashboard on success, or back to /login with an error code.
    """
    if not token:
        logger.info("Magic link verification failed: missing token")
        return login_redirect("invalid_link")

    try:
        claims = verify_magic_link_token(token)
    except MagicLinkError as e:
        logger.info("Magic link verification failed: %s", e)
        return login_redirect("expired_link")

    if not claims.user_id or not claims.email:
        logger.info("Magic link verification failed: token missing userId or email")
        return login_redirect("invalid_link")

    try:
        user = await CRUDBase(User, db).get(claims.user_id)
        if not user or user.email != claims.email:
            logger.info("Magic link verification failed: user %s not found or mismatched", claims.user_id)
            return login_redirect("user_not_found")

        onboarding = OnboardingService(db)
        membership = await onboarding.get_latest_membership(user.id)
        org_id = membership.organization_id if membership else DEFAULT_ORG_ID

        first_login = user.first_login_at is None
        if first_login:
            await CRUDBase(User, db).update_where(
                {"id": user.id}, {"first_login_at": datetime.now(timezone.utc)}
            )

        # New id on login; leftover demo fields go with the old session
        await session.regenerate()
        data = session.data
        data.user_id = user.id
        data.email = claims.email
        data.password_authenticated = True
        data.current_org_id = org_id
        data.is_onboarded = bool(membership and membership.is_onboarded)
        if first_login:
            data.first_login = True

        await session.save()
    except Exception as e:
        logger.error("Magic link verification error: %s", e, exc_info=e)
        return login_redirect("verification_failed")

    target = safe_redirect(claims.redirect)
    if target is None:
        target = "/dashboard" if data.is_onboarded else "/onboarding"

    logger.info("Magic link verified for user %s, redirecting to %s", user.id, target)
    return RedirectResponse(target, status_code=302)


@router.post("/api/auth/logout")
async def logout(session: RequestSession = Depends(get_session)):
    user_id = session.data.principal_id
    try:
        await session.destroy()
    except Exception as e:
        logger.error("Logout failed for %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail="Logout failed")
    logger.info("User %s logged out", user_id)
    return {"success": True}
