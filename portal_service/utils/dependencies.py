"""
FastAPI Dependencies
Backend clients and authentication dependencies
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional, Annotated
import logging

from portal_service.config import settings
from portal_service.models.records import PortalSession, UserIdentity
from portal_service.utils.supabase_client import IdentityGateway, identity_gateway
from portal_service.utils.profile_store import ProfileStore, profile_store
from portal_service.utils.redis_session import RedisSessionManager, session_manager

logger = logging.getLogger(__name__)

# Bearer tokens are optional; browsers use the session cookie instead
security = HTTPBearer(auto_error=False)


def get_identity_gateway() -> IdentityGateway:
    """Identity gateway dependency"""
    return identity_gateway


def get_profile_store() -> ProfileStore:
    """Profile store dependency"""
    return profile_store


def get_session_manager() -> RedisSessionManager:
    """Session manager dependency"""
    return session_manager


def extract_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    """Session token from the Authorization header, falling back to the cookie"""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.session_cookie_name)


async def get_optional_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    sessions: RedisSessionManager = Depends(get_session_manager)
) -> Optional[PortalSession]:
    """
    Get the current session if there is one

    Returns:
        PortalSession or None when the request is anonymous or the token expired
    """
    token = extract_session_token(request, credentials)
    if not token:
        return None

    data = await sessions.get_session(token)
    if not data or not data.get('user_id'):
        return None

    return PortalSession.from_session_data(token, data)


async def get_current_session(
    session: Optional[PortalSession] = Depends(get_optional_session)
) -> PortalSession:
    """
    Get current authenticated session

    Raises:
        HTTPException: If there is no valid session
    """
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


async def get_optional_user(
    session: Optional[PortalSession] = Depends(get_optional_session)
) -> Optional[UserIdentity]:
    return session.user if session else None


async def get_current_user(
    session: PortalSession = Depends(get_current_session)
) -> UserIdentity:
    return session.user


# Type aliases for cleaner dependency injection
GatewayDep = Annotated[IdentityGateway, Depends(get_identity_gateway)]
StoreDep = Annotated[ProfileStore, Depends(get_profile_store)]
SessionsDep = Annotated[RedisSessionManager, Depends(get_session_manager)]
CurrentSession = Annotated[PortalSession, Depends(get_current_session)]
OptionalSession = Annotated[Optional[PortalSession], Depends(get_optional_session)]
CurrentUser = Annotated[UserIdentity, Depends(get_current_user)]
OptionalUser = Annotated[Optional[UserIdentity], Depends(get_optional_user)]
