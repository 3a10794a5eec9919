"""
Redis session manager tests
"""

import json
import pytest
from unittest.mock import AsyncMock
from redis.exceptions import ConnectionError as RedisConnectionError

from portal_service.config import settings
from portal_service.models.records import GatewaySession, UserIdentity, PortalSession
from portal_service.utils.redis_session import RedisSessionManager


@pytest.fixture
def identity():
    return UserIdentity(id="user-1", email="sam@example.com", user_metadata={"full_name": "Sam Carter"})


class TestSessions:

    @pytest.mark.asyncio
    async def test_create_and_read(self, sessions, redis_client, identity):
        token = await sessions.create_session(identity, GatewaySession(access_token="access"))

        data = await sessions.get_session(token)
        assert data["user_id"] == "user-1"
        assert data["access_token"] == "access"
        assert redis_client.ttls[f"session:{token}"] == settings.session_ttl_days * 86400

        session = PortalSession.from_session_data(token, data)
        assert session.user.user_metadata == {"full_name": "Sam Carter"}

    @pytest.mark.asyncio
    async def test_remember_me_extends_ttl(self, sessions, redis_client, identity):
        token = await sessions.create_session(identity, GatewaySession(access_token="access"), remember_me=True)
        assert redis_client.ttls[f"session:{token}"] == settings.remember_me_ttl_days * 86400

    @pytest.mark.asyncio
    async def test_delete(self, sessions, identity):
        token = await sessions.create_session(identity, GatewaySession(access_token="access"))
        assert await sessions.delete_session(token)
        assert await sessions.get_session(token) is None
        assert not await sessions.delete_session(token)

    @pytest.mark.asyncio
    async def test_unreadable_session_discarded(self, sessions, redis_client):
        redis_client.data["session:broken"] = "{not json"
        assert await sessions.get_session("broken") is None

    @pytest.mark.asyncio
    async def test_redis_down(self, identity):
        client = AsyncMock()
        client.setex.side_effect = RedisConnectionError("down")
        client.get.side_effect = RedisConnectionError("down")
        sessions = RedisSessionManager(client=client)

        assert await sessions.create_session(identity, GatewaySession(access_token="access")) is None
        assert await sessions.get_session("token") is None


class TestOAuthFlows:

    @pytest.mark.asyncio
    async def test_flow_is_single_use(self, sessions, redis_client):
        flow_id = await sessions.create_oauth_flow("verifier")

        assert redis_client.ttls[f"oauth_flow:{flow_id}"] == settings.oauth_flow_ttl_seconds
        assert await sessions.pop_oauth_flow(flow_id) == "verifier"
        assert await sessions.pop_oauth_flow(flow_id) is None

    @pytest.mark.asyncio
    async def test_stored_as_json_session(self, sessions, redis_client, identity):
        token = await sessions.create_session(identity, GatewaySession(access_token="access"))
        assert json.loads(redis_client.data[f"session:{token}"])["email"] == "sam@example.com"
