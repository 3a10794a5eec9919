"""
Supabase Client Configuration
Identity gateway wrapper around Supabase Auth
"""

import asyncio
from typing import Any, Callable, Dict, Optional, TypeVar
import logging

from supabase import create_client, Client, ClientOptions

from portal_service.config import settings
from portal_service.models.records import AuthResult, GatewaySession, UserIdentity

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GatewayError(Exception):
    """The identity backend rejected a request or could not be reached"""

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        self.message = message
        self.code = code
        self.status = status
        super().__init__(message)


class FlowStorage:
    """
    Per-call auth storage

    Each request gets its own client so no session leaks between users; the
    storage only exists to capture the PKCE code verifier.
    """

    def __init__(self, code_verifier: Optional[str] = None, storage_key: Optional[str] = None):
        self.items: Dict[str, str] = {}
        if code_verifier and storage_key:
            self.items[f"{storage_key}-code-verifier"] = code_verifier

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    def code_verifier(self) -> Optional[str]:
        for key, value in self.items.items():
            if key.endswith("-code-verifier"):
                return value
        return None


class SupabaseConnection:
    """Holds the Supabase project settings and the service-role client"""

    def __init__(self, url: str, anon_key: str, service_key: str):
        self.url = url
        self.anon_key = anon_key
        self.service_key = service_key
        self.service_client: Optional[Client] = None

    @classmethod
    def from_settings(cls, config=settings) -> "SupabaseConnection":
        return cls(config.supabase_url, config.supabase_anon_key, config.supabase_service_key)

    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    def is_available(self) -> bool:
        """Check if Supabase is available and configured"""
        return self.service_client is not None

    def storage_key(self) -> str:
        """Key prefix supabase-auth uses for its storage entries"""
        host = self.url.split("//")[-1].split(".")[0]
        return f"sb-{host}-auth-token"

    async def connect(
        self,
        attempts: int = 30,
        interval: float = 0.1,
        cancel_event: Optional[asyncio.Event] = None
    ) -> bool:
        """
        Create the service-role client, retrying a bounded number of times

        Args:
            attempts: Maximum number of construction attempts
            interval: Seconds to wait between attempts
            cancel_event: Set when the application shuts down; stops retrying

        Returns:
            bool: True once the client exists
        """
        if not self.is_configured():
            logger.warning("Supabase credentials not found in environment")
            return False

        for attempt in range(1, attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Supabase connection cancelled")
                return False

            try:
                self.service_client = create_client(
                    self.url,
                    self.service_key or self.anon_key,
                    options=ClientOptions(auto_refresh_token=False, persist_session=False)
                )
                logger.info("Supabase client initialized successfully")
                return True
            except Exception as e:
                logger.warning(f"Supabase client init failed (attempt {attempt}/{attempts}): {e}")

            if attempt == attempts:
                break
            if cancel_event is not None:
                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=interval)
                    logger.info("Supabase connection cancelled")
                    return False
                except asyncio.TimeoutError:
                    pass
            else:
                await asyncio.sleep(interval)

        logger.error(f"Failed to initialize Supabase client after {attempts} attempts")
        return False

    def new_auth_client(self, storage: FlowStorage) -> Client:
        """Fresh anon-key client using the PKCE flow and the given storage"""
        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
            flow_type="pkce",
            storage=storage
        )
        return create_client(self.url, self.anon_key, options=options)

    def require_service_client(self) -> Client:
        if self.service_client is None:
            raise GatewayError("Supabase client not available")
        return self.service_client


def _to_user(user: Any) -> Optional[UserIdentity]:
    if user is None:
        return None
    identities = getattr(user, "identities", None)
    return UserIdentity(
        id=str(user.id),
        email=getattr(user, "email", None),
        user_metadata=getattr(user, "user_metadata", None) or {},
        identities=[identity.model_dump() for identity in identities] if identities is not None else None
    )


def _to_auth_result(response: Any, code_verifier: Optional[str] = None) -> AuthResult:
    session = getattr(response, "session", None)
    return AuthResult(
        user=_to_user(getattr(response, "user", None)),
        session=GatewaySession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=session.expires_at
        ) if session else None,
        code_verifier=code_verifier
    )


class IdentityGateway:
    """Supabase Auth operations used by the portal"""

    def __init__(self, connection: SupabaseConnection):
        self.connection = connection

    async def _run(self, action: str, func: Callable[[], T]) -> T:
        """Run a blocking Supabase call in a worker thread, normalizing errors"""
        try:
            return await asyncio.to_thread(func)
        except GatewayError:
            raise
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.warning(f"Supabase {action} error: {message}")
            raise GatewayError(
                message,
                code=getattr(e, "code", None),
                status=getattr(e, "status", None)
            ) from e

    async def sign_up(self, email: str, password: str, redirect_to: str) -> AuthResult:
        """
        Sign up a new user with email and password

        Args:
            email: User email
            password: User password
            redirect_to: Where the verification link should land

        Returns:
            AuthResult: session is None while the email awaits verification
        """
        storage = FlowStorage()

        def call():
            client = self.connection.new_auth_client(storage)
            return client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"email_redirect_to": redirect_to}
            })

        response = await self._run("sign up", call)
        logger.info(f"Sign up accepted for: {email}")
        return _to_auth_result(response, storage.code_verifier())

    async def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        """Sign in with email and password"""
        def call():
            client = self.connection.new_auth_client(FlowStorage())
            return client.auth.sign_in_with_password({"email": email, "password": password})

        response = await self._run("sign in", call)
        logger.info(f"User signed in successfully: {email}")
        return _to_auth_result(response)

    async def sign_in_with_id_token(self, provider: str, token: str) -> AuthResult:
        """Sign in with an OpenID Connect ID token, e.g. a Google One Tap credential"""
        def call():
            client = self.connection.new_auth_client(FlowStorage())
            return client.auth.sign_in_with_id_token({"provider": provider, "token": token})

        response = await self._run("id token sign in", call)
        return _to_auth_result(response)

    async def start_oauth(self, provider: str, redirect_to: str) -> AuthResult:
        """
        Begin an OAuth redirect sign-in

        Returns:
            AuthResult: no user or session yet; provider_url is where the
            browser goes and code_verifier must be kept for the callback
        """
        storage = FlowStorage()

        def call():
            client = self.connection.new_auth_client(storage)
            return client.auth.sign_in_with_oauth({
                "provider": provider,
                "options": {"redirect_to": redirect_to}
            })

        response = await self._run("oauth start", call)
        return AuthResult(provider_url=response.url, code_verifier=storage.code_verifier())

    async def exchange_code(self, code: str, code_verifier: Optional[str] = None) -> AuthResult:
        """Exchange an auth code from the callback URL for a session"""
        storage = FlowStorage(code_verifier, self.connection.storage_key())

        def call():
            client = self.connection.new_auth_client(storage)
            params = {"auth_code": code}
            if code_verifier:
                params["code_verifier"] = code_verifier
            return client.auth.exchange_code_for_session(params)

        response = await self._run("code exchange", call)
        return _to_auth_result(response)

    async def get_user(self, access_token: str) -> Optional[UserIdentity]:
        """Fetch the user an access token belongs to"""
        def call():
            return self.connection.require_service_client().auth.get_user(access_token)

        response = await self._run("get user", call)
        return _to_user(getattr(response, "user", None)) if response else None

    async def sign_out(self, access_token: str) -> None:
        """Revoke the refresh tokens behind an access token"""
        def call():
            return self.connection.require_service_client().auth.admin.sign_out(access_token)

        await self._run("sign out", call)

    async def resend_verification(self, type: str, email: str, redirect_to: str) -> Optional[str]:
        """
        Resend the sign-up verification email

        Returns:
            str: PKCE code verifier for the new link, if one was issued
        """
        storage = FlowStorage()

        def call():
            client = self.connection.new_auth_client(storage)
            return client.auth.resend({
                "type": type,
                "email": email,
                "options": {"email_redirect_to": redirect_to}
            })

        await self._run("resend verification", call)
        logger.info(f"Verification email resent to: {email}")
        return storage.code_verifier()


# Global Supabase instances
supabase_connection = SupabaseConnection.from_settings()
identity_gateway = IdentityGateway(supabase_connection)
