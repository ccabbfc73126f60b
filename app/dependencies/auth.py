"""
Authentication dependencies: session-based guards.
"""

import logging

from fastapi import Depends, HTTPException, Request, status

from app.contracts.session import DEMO_ORG_ID
from app.core.sessions import RequestSession
from app.dependencies.sessions import get_session

logger = logging.getLogger(__name__)


def unauthorized() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_auth(
    request: Request,
    session: RequestSession = Depends(get_session),
) -> RequestSession:
    """
    Allow the request only for a password-authenticated session.

    Any session without both ``user_id`` and ``password_authenticated`` is
    rejected with 401, whatever else it carries. The reason is logged.
    """
    data = session.data
    if data.kind.is_production:
        return session

    logger.warning(
        "Auth blocked on %s: has_session=%s has_user_id=%s has_password_auth=%s kind=%s",
        request.url.path,
        not session.is_new,
        bool(data.user_id),
        data.password_authenticated,
        data.kind.value,
    )
    raise unauthorized()


def demo_session_allowed(session: RequestSession) -> bool:
    data = session.data
    return data.mode == "demo" and data.current_org_id == DEMO_ORG_ID


def require_demo_session(
    request: Request,
    session: RequestSession = Depends(get_session),
) -> RequestSession:
    """
    Allow the request only for a demo session bound to the demo organization.
    """
    data = session.data
    if demo_session_allowed(session) and data.kind.is_demo:
        return session

    logger.info(
        "Demo access denied on %s: mode=%s org_id=%s kind=%s",
        request.url.path, data.mode, data.current_org_id, data.kind.value,
    )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "message": "Demo access required",
            "mode": data.mode,
            "orgId": data.current_org_id,
        },
    )

