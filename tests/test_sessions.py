"""
Test suite for session stores and the session middleware.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from itsdangerous import URLSafeSerializer
from redis.exceptions import ConnectionError as RedisConnectionError

from stepwise.middleware.sessions import (
    MemorySessionStore,
    RedisSessionStore,
    create_store,
)


# ============================================================================
# UNIT TESTS - Stores
# ============================================================================


class TestMemorySessionStore:
    """Test suite for the in-process store."""

    @pytest.mark.asyncio
    async def test_set_and_get(self):
        store = MemorySessionStore()

        await store.set("abc", {"apply": {"values": {"name": "Ada"}}}, ttl=60)

        assert await store.get("abc") == {"apply": {"values": {"name": "Ada"}}}

    @pytest.mark.asyncio
    async def test_get_returns_a_copy(self):
        store = MemorySessionStore()
        await store.set("abc", {"count": [1]}, ttl=60)

        data = await store.get("abc")
        data["count"].append(2)

        assert await store.get("abc") == {"count": [1]}

    @pytest.mark.asyncio
    async def test_expired_session_is_dropped(self):
        store = MemorySessionStore()

        with patch("stepwise.middleware.sessions.time.monotonic", return_value=100.0):
            await store.set("abc", {"a": 1}, ttl=10)
        with patch("stepwise.middleware.sessions.time.monotonic", return_value=111.0):
            assert await store.get("abc") is None

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_write_sweeps_abandoned_sessions(self):
        store = MemorySessionStore()

        with patch("stepwise.middleware.sessions.time.monotonic", return_value=100.0):
            await store.set("abandoned", {"a": 1}, ttl=10)
            await store.set("active", {"b": 2}, ttl=60)
        with patch("stepwise.middleware.sessions.time.monotonic", return_value=111.0):
            await store.set("new", {}, ttl=10)

        assert len(store) == 2
        assert "abandoned" not in store._sessions

    def test_sweep_reports_removed_count(self):
        store = MemorySessionStore()
        store._sessions["old"] = (1.0, {})

        assert store.sweep(now=2.0) == 1
        assert store.sweep(now=3.0) == 0

    @pytest.mark.asyncio
    async def test_destroy_and_close(self):
        store = MemorySessionStore()
        await store.set("a", {}, ttl=60)
        await store.set("b", {}, ttl=60)

        await store.destroy("a")
        assert len(store) == 1

        await store.close()
        assert len(store) == 0


class TestRedisSessionStore:
    """Test suite for the redis store with a mocked client."""

    @pytest.fixture
    def client(self) -> AsyncMock:
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_set_writes_json_with_ttl(self, client: AsyncMock):
        store = RedisSessionStore(client)

        await store.set("abc", {"a": 1}, ttl=30)

        client.set.assert_awaited_once_with(
            "stepwise:session:abc", json.dumps({"a": 1}), ex=30
        )

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, client: AsyncMock):
        client.get.return_value = '{"a": 1}'
        store = RedisSessionStore(client, prefix="svc")

        assert await store.get("abc") == {"a": 1}
        client.get.assert_awaited_once_with("svc:abc")

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, client: AsyncMock):
        client.get.return_value = None

        assert await RedisSessionStore(client).get("abc") is None

    @pytest.mark.asyncio
    async def test_redis_errors_propagate(self, client: AsyncMock):
        client.get.side_effect = RedisConnectionError("down")

        with pytest.raises(RedisConnectionError):
            await RedisSessionStore(client).get("abc")

    @pytest.mark.asyncio
    async def test_close_closes_client(self, client: AsyncMock):
        await RedisSessionStore(client).close()

        client.aclose.assert_awaited_once()

    def test_create_store_selects_backend(self):
        assert isinstance(create_store({"session_store": "memory"}), MemorySessionStore)
        store = create_store(
            {"session_store": "redis", "redis_url": "redis://localhost:6379/1"}
        )
        assert isinstance(store, RedisSessionStore)


# ============================================================================
# INTEGRATION TESTS - Middleware
# ============================================================================


class TestSessionMiddleware:
    """Test suite for session cookies on step submissions."""

    def submit_name(self, client: TestClient):
        client.get("/apply/name")
        return client.post(
            "/apply/name", data={"name": "Ada"}, follow_redirects=False
        )

    def test_cookie_set_when_session_changes(self, test_client: TestClient):
        response = self.submit_name(test_client)

        assert "stepwise.sid=" in response.headers["set-cookie"]
        assert "HttpOnly" in response.headers["set-cookie"]

    def test_no_cookie_when_session_unchanged(self, test_client: TestClient):
        response = test_client.get("/healthz/ping")

        assert "stepwise.sid" not in response.headers.get("set-cookie", "")

    def test_cookie_carries_signed_session_id(self, test_client, instance):
        self.submit_name(test_client)
        cookie = test_client.cookies.get("stepwise.sid")

        serializer = URLSafeSerializer(
            instance.config["session_secret"], salt="stepwise.session"
        )
        session_id = serializer.loads(cookie)
        store = instance.app.state.session_store

        assert session_id in store._sessions

    def test_tampered_cookie_starts_new_session(self, test_client: TestClient):
        self.submit_name(test_client)
        test_client.cookies.clear()
        test_client.cookies.set("stepwise-cookie-check", "1")
        test_client.cookies.set("stepwise.sid", "forged.value")

        response = test_client.get("/apply/name")

        assert 'value="Ada"' not in response.text
