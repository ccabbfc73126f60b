"""
Path-level guards that run as middleware, after the session is loaded.

- DemoDashboardGuardMiddleware: keeps /demo* pages to demo sessions in the
  demo organization. Preview only.
- OnboardingGateMiddleware: sends authenticated users who have not finished
  onboarding in their current organization to /onboarding.
"""

import html
import logging

from fastapi import Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.config import get_settings
from app.contracts.session import DEFAULT_ORG_ID, DEMO_ORG_ID
from app.dependencies.auth import demo_session_allowed
from app.dependencies.db import get_db
from app.services.onboarding_service import OnboardingService

logger = logging.getLogger(__name__)

DEMO_PATH_PREFIX = "/demo"

ONBOARDING_EXEMPT_PREFIXES = (
    "/api/",
    "/health",
    "/assets/",
    "/onboarding",
    "/auth/",
    "/verify-demo",
    "/debug/",
    "/login",
    "/docs",
    "/openapi.json",
)
ONBOARDING_EXEMPT_SUFFIXES = (".js", ".css", ".png", ".jpg", ".ico")

DEMO_ACCESS_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Demo Access Required</title>
  <style>
    body {{ font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; text-align: center; padding: 20px; }}
    h1 {{ color: #dc2626; }}
    a {{ color: #3b82f6; text-decoration: underline; }}
    .debug {{ background: #f8f9fa; padding: 20px; margin: 20px 0; text-align: left; border-radius: 8px; }}
  </style>
</head>
<body>
  <h1>Demo Access Required</h1>
  <p>You must be authenticated in demo mode to access demo features.</p>
  <div class="debug">
    <strong>Session Debug:</strong><br>
    Mode: {mode}<br>
    Org ID: {org_id}<br>
    Expected: mode='demo', orgId='{expected_org_id}'
  </div>
  <a href="/login">Go to Login</a> |
  <a href="/debug/session">Debug Session</a>
</body>
</html>
"""


def render_demo_access_page(mode, org_id) -> str:
    return DEMO_ACCESS_PAGE.format(
        mode=html.escape(mode or "none"),
        org_id=html.escape(org_id or "none"),
        expected_org_id=DEMO_ORG_ID,
    )


class DemoDashboardGuardMiddleware(BaseHTTPMiddleware):
    """
    Demo pages require ``mode == "demo"`` and the demo organization.

    Inert in production, where routing never reaches the demo pages.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if get_settings().is_production or not request.url.path.startswith(DEMO_PATH_PREFIX):
            return await call_next(request)

        session = request.state.session
        data = session.data
        if not demo_session_allowed(session):
            logger.info(
                "Demo guard denied %s: mode=%s org_id=%s",
                request.url.path, data.mode, data.current_org_id,
            )
            return HTMLResponse(
                render_demo_access_page(data.mode, data.current_org_id),
                status_code=403,
            )

        logger.info(
            "Demo guard granted %s for user %s",
            request.url.path, data.test_user.id if data.test_user else None,
        )
        return await call_next(request)


def is_onboarding_exempt(path: str) -> bool:
    return path.startswith(ONBOARDING_EXEMPT_PREFIXES) or path.endswith(ONBOARDING_EXEMPT_SUFFIXES)


class OnboardingGateMiddleware(BaseHTTPMiddleware):
    """
    Redirects to /onboarding until the session's user is onboarded in the
    session's current organization. Lookup errors let the request through.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if is_onboarding_exempt(request.url.path):
            return await call_next(request)

        data = request.state.session.data
        kind = data.kind
        if not (kind.is_demo or kind.is_production):
            return await call_next(request)

        default_org = DEMO_ORG_ID if kind.is_demo else DEFAULT_ORG_ID
        org_id = data.current_org_id or default_org
        user_id = data.principal_id

        try:
            onboarded = await self._is_onboarded(request, user_id, org_id)
        except Exception as e:
            logger.error("Onboarding gate lookup failed for %s: %s", user_id, e, exc_info=e)
            return await call_next(request)

        if not onboarded:
            logger.info(
                "User %s not onboarded for org %s, redirecting to /onboarding", user_id, org_id
            )
            return RedirectResponse("/onboarding", status_code=302)
        return await call_next(request)

    @staticmethod
    async def _is_onboarded(request: Request, user_id: str, org_id: str) -> bool:
        # Resolve get_db through dependency_overrides so tests can swap the database
        db_dependency = request.app.dependency_overrides.get(get_db, get_db)
        db_gen = db_dependency()
        db = await db_gen.__anext__()
        try:
            return await OnboardingService(db).is_onboarded(user_id, org_id)
        finally:
            await db_gen.aclose()
