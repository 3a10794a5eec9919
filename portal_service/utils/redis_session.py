"""
Redis Session Manager
Keeps identity-backend tokens server side and hands the browser an opaque
session token. Also holds short-lived OAuth PKCE flow state.

Uses async Redis (redis.asyncio) to avoid blocking the event loop.
"""

import json
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from portal_service.config import settings
from portal_service.models.records import UserIdentity, GatewaySession

logger = logging.getLogger(__name__)

# Global async Redis client instance
_redis_client: Optional[aioredis.Redis] = None


async def init_redis_client() -> aioredis.Redis:
    """Create the shared client and ping it; a failed ping is logged, not raised"""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    _redis_client = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password or None,
        db=settings.redis_db,
        decode_responses=True,
        socket_keepalive=True,
        health_check_interval=30
    )

    try:
        await _redis_client.ping()
        logger.info("Async Redis client initialized successfully")
    except RedisError as e:
        logger.error(f"Redis ping failed, sessions unavailable until it recovers: {e}")

    return _redis_client


async def get_redis_client() -> aioredis.Redis:
    """Shared client, created on first use"""
    if _redis_client is None:
        return await init_redis_client()
    return _redis_client


async def close_redis_client():
    """Close async Redis client connection"""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Async Redis client closed")


def generate_session_token() -> str:
    """Generate secure session token"""
    return secrets.token_urlsafe(32)


class RedisSessionManager:
    """Manages portal sessions and OAuth flow state in Redis with automatic expiration"""

    # Key prefixes
    SESSION_PREFIX = "session"
    OAUTH_FLOW_PREFIX = "oauth_flow"

    @staticmethod
    def _key(prefix: str, token: str) -> str:
        return f"{prefix}:{token}"

    def __init__(self, client: Optional[aioredis.Redis] = None):
        self._client = client

    async def _get_redis_client(self) -> aioredis.Redis:
        if self._client is not None:
            return self._client
        return await get_redis_client()

    async def create_session(
        self,
        user: UserIdentity,
        gateway_session: GatewaySession,
        remember_me: bool = False
    ) -> Optional[str]:
        """
        Store the gateway tokens under a fresh opaque session token

        Args:
            user: Signed-in user
            gateway_session: Tokens issued by the identity backend
            remember_me: Extended session flag

        Returns:
            str: Session token, or None if the session could not be stored
        """
        session_token = generate_session_token()
        days = settings.remember_me_ttl_days if remember_me else settings.session_ttl_days
        ttl = int(timedelta(days=days).total_seconds())
        now = datetime.now(timezone.utc)

        session_data = {
            **user.to_session_data(),
            'access_token': gateway_session.access_token,
            'refresh_token': gateway_session.refresh_token,
            'created_at': now.isoformat(),
            'expires_at': (now + timedelta(seconds=ttl)).isoformat()
        }

        try:
            redis_client = await self._get_redis_client()
            key = self._key(self.SESSION_PREFIX, session_token)
            success = await redis_client.setex(key, ttl, json.dumps(session_data))
        except RedisError as e:
            logger.error(f"Error creating session: {e}")
            return None

        if not success:
            logger.error(f"Failed to create session for user {user.id}")
            return None

        logger.info(f"Session created for user {user.id} with TTL {ttl}s")
        return session_token

    async def get_session(self, session_token: str) -> Optional[Dict[str, Any]]:
        """
        Look up a session; unreadable entries count as missing

        Args:
            session_token: Session token

        Returns:
            dict: Session data or None if not found/expired
        """
        try:
            redis_client = await self._get_redis_client()
            raw = await redis_client.get(self._key(self.SESSION_PREFIX, session_token))
        except RedisError as e:
            logger.error(f"Error retrieving session: {e}")
            return None

        if not raw:
            logger.debug(f"Session not found or expired for token {session_token[:10]}...")
            return None

        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Discarding unreadable session {session_token[:10]}...")
            return None

    async def delete_session(self, session_token: str) -> bool:
        """
        Delete session from Redis (sign-out)

        Returns:
            bool: True if a session was removed
        """
        try:
            redis_client = await self._get_redis_client()
            deleted = await redis_client.delete(self._key(self.SESSION_PREFIX, session_token))
        except RedisError as e:
            logger.error(f"Error deleting session: {e}")
            return False

        if deleted > 0:
            logger.info(f"Session deleted: {session_token[:10]}...")
            return True
        return False

    async def create_oauth_flow(self, code_verifier: str) -> Optional[str]:
        """Store a PKCE code verifier until the auth callback consumes it"""
        flow_id = generate_session_token()
        try:
            redis_client = await self._get_redis_client()
            await redis_client.setex(
                self._key(self.OAUTH_FLOW_PREFIX, flow_id),
                settings.oauth_flow_ttl_seconds,
                code_verifier
            )
        except RedisError as e:
            logger.error(f"Error storing OAuth flow: {e}")
            return None
        return flow_id

    async def pop_oauth_flow(self, flow_id: str) -> Optional[str]:
        """Return and forget the code verifier of an OAuth flow"""
        key = self._key(self.OAUTH_FLOW_PREFIX, flow_id)
        try:
            redis_client = await self._get_redis_client()
            code_verifier = await redis_client.get(key)
            if code_verifier is not None:
                await redis_client.delete(key)
            return code_verifier
        except RedisError as e:
            logger.error(f"Error reading OAuth flow: {e}")
            return None


session_manager = RedisSessionManager()
