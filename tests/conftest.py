"""
Pytest fixtures for backend tests.

Tests run against an in-memory SQLite database and an in-memory session
store injected on app.state, so no Postgres or Redis is needed.
"""

import os
import secrets
from typing import AsyncGenerator, Callable, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("NODE_ENV", "development")
os.environ.setdefault("PREVIEW_DISABLE_MAGIC_LINKS", "true")

from app.config import get_settings
from app.contracts.session import SessionState
from app.core.sessions import MemorySessionStore, sign_session_id
from app.dependencies.db import get_db
from app.main import app
from app.models import Base, User


@pytest.fixture(autouse=True)
def fresh_settings():
    """Every test reads settings from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def configure(monkeypatch) -> Callable[..., None]:
    """
    Patch settings through the environment, e.g.
    ``configure(app_market_lock="NZ", node_env="production")``.
    """
    def _configure(**env):
        for key, value in env.items():
            if value is None:
                monkeypatch.delenv(key.upper(), raising=False)
            else:
                monkeypatch.setenv(key.upper(), str(value))
        get_settings.cache_clear()
    return _configure


@pytest_asyncio.fixture(scope="function")
async def db_sessionmaker() -> AsyncGenerator[async_sessionmaker, None]:
    """
    Fresh in-memory database per test. StaticPool keeps one connection so
    every session sees the same data.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """A database session for seeding and assertions."""
    async with db_sessionmaker() as session:
        yield session


@pytest.fixture
def session_store() -> MemorySessionStore:
    return MemorySessionStore(max_entries=100)


@pytest_asyncio.fixture(scope="function")
async def async_client(db_sessionmaker, session_store) -> AsyncGenerator[AsyncClient, None]:
    """
    Async test client for FastAPI, wired to the test database and session store.
    """
    async def _get_db():
        async with db_sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.state.session_store = session_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    del app.state.session_store


@pytest.fixture(scope="function")
def client() -> Generator[TestClient, None, None]:
    """
    Synchronous test client for endpoints that never touch the database.
    The lifespan builds the default session store.
    """
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def login_as(async_client: AsyncClient, session_store: MemorySessionStore):
    """
    Put a session straight into the store and hand the client its cookie.
    Returns the session id.
    """
    async def _login_as(state: SessionState) -> str:
        settings = get_settings()
        session_id = secrets.token_urlsafe(16)
        await session_store.set(session_id, state.model_dump(mode="json"), ttl=settings.session_max_age)
        async_client.cookies.set(settings.session_cookie_name, sign_session_id(session_id, settings))
        return session_id
    return _login_as


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    user = User(id="user-123", email="tradie@bluetradie.com", first_name="Sam", last_name="Sparks")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def production_session(test_user: User) -> SessionState:
    return SessionState(
        user_id=test_user.id,
        email=test_user.email,
        password_authenticated=True,
        current_org_id="org-tradie",
    )


@pytest.fixture
def onboarding_payload() -> dict:
    return {
        "businessName": "Sparks Electrical",
        "trade": "Electrician",
        "serviceArea": "Auckland Central",
        "country": "New Zealand",
        "isGstRegistered": True,
    }
