"""
Debug routes: GET /debug/session (preview only)
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.core.sessions import RequestSession
from app.dependencies.sessions import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/debug/session")
async def debug_session(session: RequestSession = Depends(get_session)):
    """
    Dump the raw session and the effective cookie policy.
    """
    settings = get_settings()
    if settings.is_production:
        return JSONResponse(
            status_code=403,
            content={"error": "Debug endpoint only available in preview"},
        )

    cookie = session.cookie
    session_data = {
        **session.data.model_dump(mode="json", by_alias=True),
        "kind": session.data.kind.value,
        "sessionId": session.session_id,
        "cookie": {
            "secure": cookie.secure,
            "httpOnly": cookie.httponly,
            "sameSite": cookie.samesite,
            "domain": cookie.domain or "host-only",
        },
        "environment": settings.node_env,
        "previewDisableMagicLinks": settings.preview_disable_magic_links,
    }
    logger.info("Debug session dump: %s", session_data)
    return session_data
