"""
Server-side sessions bound to a signed cookie.

The cookie only carries an opaque session id signed with SESSION_SECRET; the
session blob lives in a SessionStore injected on ``app.state.session_store``.
The default store is an in-process map, so a restart logs every session out.
A Redis store is available for multi-process deployments.
"""

import asyncio
import copy
import json
import logging
import secrets
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from itsdangerous import BadSignature, TimestampSigner
from pydantic import ValidationError
from redis.asyncio import Redis
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.config import Settings, get_settings
from app.contracts.session import SessionState

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Key/value store for session blobs keyed by session id."""

    name = "abstract"

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def set(self, session_id: str, data: Dict[str, Any], ttl: int) -> None:
        ...

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        ...

    async def prune(self) -> int:
        """Drop expired entries, returning how many were removed."""
        return 0

    async def close(self) -> None:
        return None


class MemorySessionStore(SessionStore):
    """
    Bounded in-process session map.

    Entries expire after their TTL; a background task prunes expired entries
    every ``prune_interval`` seconds. When full, the oldest entry is evicted.
    """

    name = "memory"

    def __init__(
        self,
        max_entries: int = 10000,
        prune_interval: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_entries = max_entries
        self.prune_interval = prune_interval
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Dict[str, Any]]]" = OrderedDict()
        self._prune_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        expires_at, data = entry
        if expires_at <= self._clock():
            self._entries.pop(session_id, None)
            return None
        return copy.deepcopy(data)

    async def set(self, session_id: str, data: Dict[str, Any], ttl: int) -> None:
        if session_id not in self._entries and len(self._entries) >= self.max_entries:
            await self.prune()
            while self._entries and len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.warning("Session store full, evicted session %s", evicted[:8])
        self._entries[session_id] = (self._clock() + ttl, copy.deepcopy(data))
        self._entries.move_to_end(session_id)

    async def delete(self, session_id: str) -> None:
        self._entries.pop(session_id, None)

    async def prune(self) -> int:
        now = self._clock()
        expired = [sid for sid, (expires_at, _) in self._entries.items() if expires_at <= now]
        for sid in expired:
            del self._entries[sid]
        if expired:
            logger.info("Pruned %d expired sessions", len(expired))
        return len(expired)

    def start_pruning(self) -> None:
        if not self.prune_interval or self._prune_task is not None:
            return
        self._prune_task = asyncio.create_task(self._prune_loop())

    async def _prune_loop(self) -> None:
        while True:
            await asyncio.sleep(self.prune_interval)
            try:
                await self.prune()
            except Exception as e:
                logger.error("Session prune failed: %s", e)

    async def close(self) -> None:
        if self._prune_task is not None:
            self._prune_task.cancel()
            try:
                await self._prune_task
            except asyncio.CancelledError:
                pass
            self._prune_task = None


class RedisSessionStore(SessionStore):
    """
    Session blobs stored as JSON in Redis.

    Key pattern: sess:{session_id}. Redis expires the keys, so prune is a no-op.
    """

    name = "redis"
    PREFIX = "sess"

    def __init__(self, redis: Redis):
        self.redis = redis

    def _key(self, session_id: str) -> str:
        return f"{self.PREFIX}:{session_id}"

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        cached = await self.redis.get(self._key(session_id))
        if cached:
            return json.loads(cached)
        return None

    async def set(self, session_id: str, data: Dict[str, Any], ttl: int) -> None:
        await self.redis.set(self._key(session_id), json.dumps(data), ex=ttl)

    async def delete(self, session_id: str) -> None:
        await self.redis.delete(self._key(session_id))

    async def close(self) -> None:
        await self.redis.close()


async def build_session_store(settings: Settings) -> SessionStore:
    """Create the store selected by SESSION_BACKEND."""
    if settings.session_backend == "redis":
        if not settings.redis_url:
            raise RuntimeError("SESSION_BACKEND=redis requires REDIS_URL")
        redis_client = Redis.from_url(settings.redis_url, decode_responses=False)
        await redis_client.ping()
        return RedisSessionStore(redis_client)

    store = MemorySessionStore(
        max_entries=settings.session_max_entries,
        prune_interval=settings.session_prune_interval,
    )
    store.start_pruning()
    return store


@dataclass(frozen=True)
class CookiePolicy:
    name: str
    max_age: int
    domain: Optional[str] = None
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"
    path: str = "/"


def cookie_policy(settings: Settings) -> CookiePolicy:
    """
    Cookie flags for the session cookie.

    The domain is only set in production, so preview deployments get a
    host-only cookie that never leaks across subdomains.
    """
    return CookiePolicy(
        name=settings.session_cookie_name,
        max_age=settings.session_max_age,
        domain=settings.session_domain if settings.is_production else None,
        secure=settings.is_production,
    )


def _signer(settings: Settings) -> TimestampSigner:
    return TimestampSigner(settings.session_secret, salt=settings.session_cookie_name)


def sign_session_id(session_id: str, settings: Settings) -> str:
    return _signer(settings).sign(session_id).decode("utf-8")


def unsign_session_id(value: str, settings: Settings) -> Optional[str]:
    try:
        return _signer(settings).unsign(value, max_age=settings.session_max_age).decode("utf-8")
    except BadSignature:
        return None


class RequestSession:
    """
    The session attached to one request.

    Handlers mutate ``data`` and may call ``save()`` explicitly; the
    middleware persists anything still unsaved once the response is built.
    """

    def __init__(
        self,
        store: SessionStore,
        policy: CookiePolicy,
        session_id: Optional[str] = None,
        data: Optional[SessionState] = None,
    ):
        self.store = store
        self.policy = policy
        self.session_id = session_id
        self.data = data or SessionState()
        self.destroyed = False
        self.persisted = False
        self.cookie_overrides: Dict[str, Any] = {}
        self._snapshot = self._dump() if session_id else SessionState().model_dump(mode="json")

    def _dump(self) -> Dict[str, Any]:
        return self.data.model_dump(mode="json")

    @property
    def is_new(self) -> bool:
        return self.session_id is None

    @property
    def is_dirty(self) -> bool:
        return self._dump() != self._snapshot

    @property
    def cookie(self) -> CookiePolicy:
        return replace(self.policy, **self.cookie_overrides)

    async def save(self) -> None:
        if self.session_id is None:
            self.session_id = secrets.token_urlsafe(32)
        snapshot = self._dump()
        await self.store.set(self.session_id, snapshot, ttl=self.policy.max_age)
        self._snapshot = snapshot
        self.persisted = True
        self.destroyed = False

    async def regenerate(self) -> None:
        """Drop the stored session and start an empty one under a new id on save."""
        if self.session_id is not None:
            await self.store.delete(self.session_id)
        self.session_id = None
        self.data = SessionState()
        self._snapshot = self._dump()
        self.persisted = False

    async def destroy(self) -> None:
        if self.session_id is not None:
            await self.store.delete(self.session_id)
        self.data = SessionState()
        self._snapshot = self._dump()
        self.destroyed = True


async def load_session(request: Request, store: SessionStore, settings: Settings) -> RequestSession:
    policy = cookie_policy(settings)
    raw_cookie = request.cookies.get(policy.name)
    session_id = unsign_session_id(raw_cookie, settings) if raw_cookie else None
    if raw_cookie and session_id is None:
        logger.warning("Rejected session cookie with bad signature on %s", request.url.path)

    if session_id is None:
        return RequestSession(store, policy)

    blob = await store.get(session_id)
    if blob is None:
        return RequestSession(store, policy)

    try:
        data = SessionState.model_validate(blob)
    except ValidationError as e:
        logger.warning("Discarding malformed session %s: %s", session_id[:8], e.errors())
        data = SessionState()
    return RequestSession(store, policy, session_id=session_id, data=data)


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Loads the session onto ``request.state.session`` and persists it after
    the handler runs. Untouched new sessions are never stored.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        store: Optional[SessionStore] = getattr(request.app.state, "session_store", None)
        if store is None:
            logger.error("Session store not initialized")
            return JSONResponse(status_code=500, content={"message": "Session store not initialized."})

        settings = get_settings()
        session = await load_session(request, store, settings)
        request.state.session = session

        response = await call_next(request)

        if session.destroyed:
            response.delete_cookie(
                session.policy.name,
                path=session.policy.path,
                domain=session.policy.domain,
            )
            return response

        if session.is_dirty and not (session.is_new and session.data.is_empty()):
            try:
                await session.save()
            except Exception as e:
                logger.error("Session save failed on %s: %s", request.url.path, e, exc_info=e)

        if session.persisted:
            cookie = session.cookie
            response.set_cookie(
                key=cookie.name,
                value=sign_session_id(session.session_id, settings),
                max_age=cookie.max_age,
                path=cookie.path,
                domain=cookie.domain,
                secure=cookie.secure,
                httponly=cookie.httponly,
                samesite=cookie.samesite,
            )
        return response
