"""
Main application file
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes.auth import router as auth_router
from app.api.routes.debug import router as debug_router
from app.api.routes.demo import router as demo_router
from app.api.routes.market import router as market_router
from app.api.routes.onboarding import router as onboarding_router
from app.config import get_settings
from app.core.guards import DemoDashboardGuardMiddleware, OnboardingGateMiddleware
from app.core.logging import configure_logging
from app.core.sessions import SessionMiddleware, SessionStore, build_session_store, cookie_policy
from app.dependencies.sessions import get_session_store

# Load environment variables from .env file
load_dotenv()

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


# --- Lifespan handler ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    session_store = None

    try:
        logger.info("Initializing session store (%s)…", settings.session_backend)
        policy = cookie_policy(settings)
        logger.info(
            "Session cookie config: name=%s domain=%s samesite=%s secure=%s",
            policy.name, policy.domain, policy.samesite, policy.secure,
        )

        try:
            session_store = await build_session_store(settings)
            app.state.session_store = session_store
            logger.info("Session store ready.")
        except Exception as e:
            logger.error("Session store initialization failed: %s", e)
            raise RuntimeError("Failed to initialize session store") from e

        yield

    finally:
        # --- Shutdown cleanup ---
        if session_store:
            try:
                await session_store.close()
                logger.info("Session store closed.")
            except Exception as e:
                logger.error("Error closing session store: %s", e)


app = FastAPI(lifespan=lifespan)

allowed_origins = [
    "http://localhost:5173",
    "http://localhost:8080",
]

if settings.frontend_url and settings.frontend_url not in allowed_origins:
    allowed_origins.append(settings.frontend_url)

# Middleware added last runs first: CORS, then sessions, then the path guards
app.add_middleware(OnboardingGateMiddleware)
app.add_middleware(DemoDashboardGuardMiddleware)
app.add_middleware(SessionMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = None
    if errors and errors[0].get("loc"):
        field = str(errors[0]["loc"][-1])
    logger.info("Validation failed on %s: %s", request.url.path, errors)
    return JSONResponse(
        status_code=422,
        content={
            "message": "Invalid request",
            "field": field,
            "errors": [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in errors],
        },
    )


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
async def health(store: SessionStore = Depends(get_session_store)):
    return {"status": "ok", "sessionBackend": store.name}


app.include_router(auth_router, tags=["auth"])
app.include_router(onboarding_router, tags=["onboarding"])
app.include_router(demo_router, tags=["demo"])
app.include_router(debug_router, tags=["debug"])
app.include_router(market_router, tags=["config"])
