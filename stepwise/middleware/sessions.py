"""
Server-side sessions keyed by a signed cookie.

The cookie only carries a session id signed with ``itsdangerous``; session
data lives in a store. ``MemorySessionStore`` keeps data in process and
suits development and tests, ``RedisSessionStore`` shares sessions between
instances. Session data is available as ``request.state.session`` and via
``get_session(request)``.
"""

import copy
import json
import secrets
import time
from collections.abc import Mapping
from typing import Any, Optional, Protocol

import redis.asyncio as redis
from fastapi import FastAPI, Request
from itsdangerous import BadSignature, URLSafeSerializer
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from stepwise.core.logging import get_logger

logger = get_logger(__name__)

SESSION_ID_BYTES = 24


class SessionStore(Protocol):
    async def get(self, session_id: str) -> Optional[dict[str, Any]]: ...

    async def set(self, session_id: str, data: dict[str, Any], ttl: int) -> None: ...

    async def destroy(self, session_id: str) -> None: ...

    async def close(self) -> None: ...


class MemorySessionStore:
    """
    In-process session store with expiry.

    Expired sessions are dropped when read and swept on every write.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, tuple[float, dict[str, Any]]] = {}

    async def get(self, session_id: str) -> Optional[dict[str, Any]]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        expires_at, data = entry
        if expires_at < time.monotonic():
            del self._sessions[session_id]
            return None
        return copy.deepcopy(data)

    async def set(self, session_id: str, data: dict[str, Any], ttl: int) -> None:
        now = time.monotonic()
        self.sweep(now)
        self._sessions[session_id] = (now + ttl, copy.deepcopy(data))

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop expired sessions, returning how many were removed."""
        now = time.monotonic() if now is None else now
        expired = [
            session_id
            for session_id, (expires_at, _) in self._sessions.items()
            if expires_at < now
        ]
        for session_id in expired:
            del self._sessions[session_id]
        return len(expired)

    async def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def close(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


class RedisSessionStore:
    """
    Redis backed session store.

    Values are stored as JSON under ``<prefix>:<session id>`` with the
    session TTL.
    """

    KEY_PREFIX = "stepwise:session"

    def __init__(self, client: redis.Redis, prefix: str = KEY_PREFIX):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}:{session_id}"

    async def get(self, session_id: str) -> Optional[dict[str, Any]]:
        try:
            raw = await self._client.get(self._key(session_id))
        except RedisError as e:
            logger.error(
                "Failed to read session",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, session_id: str, data: dict[str, Any], ttl: int) -> None:
        try:
            await self._client.set(self._key(session_id), json.dumps(data), ex=ttl)
        except RedisError as e:
            logger.error(
                "Failed to write session",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def destroy(self, session_id: str) -> None:
        await self._client.delete(self._key(session_id))

    async def close(self) -> None:
        await self._client.aclose()


class SessionMiddleware(BaseHTTPMiddleware):
    """Load the session before the request, save it after if it changed."""

    def __init__(
        self,
        app,
        store: SessionStore,
        secret: str,
        cookie_name: str = "stepwise.sid",
        ttl: int = 1800,
        secure: bool = False,
    ):
        super().__init__(app)
        self.store = store
        self.cookie_name = cookie_name
        self.ttl = ttl
        self.secure = secure
        self._serializer = URLSafeSerializer(secret, salt="stepwise.session")

    def _session_id(self, request: Request) -> Optional[str]:
        cookie = request.cookies.get(self.cookie_name)
        if not cookie:
            return None
        try:
            return self._serializer.loads(cookie)
        except BadSignature:
            logger.warning("Session cookie signature mismatch")
            return None

    async def dispatch(self, request: Request, call_next) -> Response:
        session_id = self._session_id(request)
        data = await self.store.get(session_id) if session_id else None
        session = data or {}
        original = copy.deepcopy(session)
        request.state.session = session

        response = await call_next(request)

        if session != original:
            session_id = session_id or secrets.token_urlsafe(SESSION_ID_BYTES)
            await self.store.set(session_id, session, self.ttl)
            response.set_cookie(
                self.cookie_name,
                self._serializer.dumps(session_id),
                max_age=self.ttl,
                httponly=True,
                secure=self.secure,
                samesite="lax",
            )
        return response


def get_session(request: Request) -> dict[str, Any]:
    """
    Get the current session.

    Raises:
        LookupError: If the session middleware did not run for this request
    """
    try:
        return request.state.session
    except AttributeError:
        raise LookupError(
            "No active session. Ensure the session middleware is registered."
        ) from None


def create_store(config: Mapping[str, Any]) -> SessionStore:
    """Create the session store selected by ``session_store``."""
    if config["session_store"] == "redis":
        return RedisSessionStore.from_url(config["redis_url"])
    return MemorySessionStore()


def session_store(app: FastAPI, config: Mapping[str, Any]) -> dict[str, Any]:
    """
    Create the session store and the middleware options for it.

    Args:
        app: Application being assembled
        config: Effective configuration

    Returns:
        Keyword arguments for ``SessionMiddleware``
    """
    store = create_store(config)
    app.state.session_store = store
    logger.debug("Session store configured", store=type(store).__name__)
    return {
        "store": store,
        "secret": config["session_secret"],
        "cookie_name": config["session_name"],
        "ttl": config["session_ttl"],
        "secure": config["protocol"] == "https",
    }
