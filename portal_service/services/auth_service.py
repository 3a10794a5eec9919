"""
Authentication Service
Sign-up, sign-in, OAuth and verification flows against the identity gateway
"""

from typing import Optional
from pydantic import BaseModel
from urllib.parse import quote
import logging

from portal_shared.schemas.auth import (
    AuthResponseSchema, SignUpState, SignUpSchema, SignInSchema, ResendVerificationSchema
)
from portal_shared.utils.logger import audit_logger
from portal_shared.utils.validators import classify_gateway_error, is_duplicate_account_message
from portal_service.config import settings
from portal_service.models.navigation import (
    Destination, DestinationKind, safe_next_path, HOME_PATH, ONBOARDING_PATH
)
from portal_service.models.records import AuthResult, PortalSession
from portal_service.services.role_resolver import (
    resolve_destination, SIGN_IN_DEFAULT_NEXT, SIGN_UP_DEFAULT_NEXT, CALLBACK_DEFAULT_NEXT
)
from portal_service.utils.profile_store import ProfileStore
from portal_service.utils.redis_session import RedisSessionManager
from portal_service.utils.supabase_client import IdentityGateway, GatewayError

logger = logging.getLogger(__name__)

GOOGLE_PROVIDER = "google"

ACCOUNT_EXISTS_MESSAGE = "An account with this email already exists. Sign in instead or use a different email."
VERIFY_EMAIL_MESSAGE = "Check your email to verify your account."
SESSION_FAILED_MESSAGE = "Could not start your session. Please try again."


class AuthOutcome(BaseModel):
    """
    Result of an auth flow

    The route turns session_token into the session cookie and flow_id into
    the OAuth flow cookie.
    """
    response: AuthResponseSchema
    flow_id: Optional[str] = None
    remember_me: bool = False


def callback_url(next_path: str) -> str:
    """Absolute auth callback URL that forwards to next_path"""
    return f"{settings.callback_url}?next={quote(next_path, safe='/')}"


class AuthService:
    """Authentication flows"""

    @staticmethod
    def _error_outcome(message: str) -> AuthOutcome:
        field, text = classify_gateway_error(message)
        response = AuthResponseSchema(success=False, state=SignUpState.ERROR)
        if field:
            response.field_errors[field] = text
        else:
            response.message = text
        return AuthOutcome(response=response)

    @staticmethod
    def _account_exists_outcome(next_path: str) -> AuthOutcome:
        return AuthOutcome(response=AuthResponseSchema(
            success=False,
            state=SignUpState.ACCOUNT_EXISTS,
            message=ACCOUNT_EXISTS_MESSAGE,
            actions={
                'sign_in': Destination.sign_in(next_path).path,
                'retry': Destination.sign_up(next_path).path,
            }
        ))

    @staticmethod
    async def _start_session(
        store: ProfileStore,
        sessions: RedisSessionManager,
        result: AuthResult,
        next_path: str,
        action: str,
        remember_me: bool = False
    ) -> AuthOutcome:
        """Store the gateway session server side and resolve where the user goes next"""
        session_token = await sessions.create_session(result.user, result.session, remember_me)
        if not session_token:
            return AuthOutcome(response=AuthResponseSchema(
                success=False, state=SignUpState.ERROR, message=SESSION_FAILED_MESSAGE
            ))

        destination = await resolve_destination(store, result.user, next_path)
        audit_logger.log_user_action(action, result.user.id, {'destination': destination.kind.value})

        return AuthOutcome(
            response=AuthResponseSchema(
                success=True,
                state=SignUpState.SIGNED_IN,
                redirect_to=destination.path,
                session_token=session_token,
                user={'id': result.user.id, 'email': result.user.email}
            ),
            remember_me=remember_me
        )

    @staticmethod
    async def sign_up(
        gateway: IdentityGateway,
        store: ProfileStore,
        sessions: RedisSessionManager,
        data: SignUpSchema
    ) -> AuthOutcome:
        """
        Sign up with email and password

        Returns:
            AuthOutcome with state signed_in, verify_email_pending,
            account_exists or error
        """
        next_path = safe_next_path(data.next, SIGN_UP_DEFAULT_NEXT)

        try:
            result = await gateway.sign_up(data.email, data.password, callback_url(next_path))
        except GatewayError as e:
            if is_duplicate_account_message(e.message):
                logger.info(f"Sign up for existing account: {data.email}")
                return AuthService._account_exists_outcome(next_path)
            return AuthService._error_outcome(e.message)

        if result.is_duplicate_signup:
            logger.info(f"Sign up for existing account: {data.email}")
            return AuthService._account_exists_outcome(next_path)

        if result.session is None:
            flow_id = None
            if result.code_verifier:
                flow_id = await sessions.create_oauth_flow(result.code_verifier)
            audit_logger.log_user_action('sign_up', result.user.id if result.user else None, {'verified': False})
            return AuthOutcome(
                response=AuthResponseSchema(
                    success=True,
                    state=SignUpState.VERIFY_EMAIL_PENDING,
                    message=VERIFY_EMAIL_MESSAGE
                ),
                flow_id=flow_id
            )

        return await AuthService._start_session(store, sessions, result, next_path, 'sign_up')

    @staticmethod
    async def sign_in(
        gateway: IdentityGateway,
        store: ProfileStore,
        sessions: RedisSessionManager,
        data: SignInSchema
    ) -> AuthOutcome:
        """Sign in with email and password"""
        next_path = safe_next_path(data.next, SIGN_IN_DEFAULT_NEXT)

        try:
            result = await gateway.sign_in_with_password(data.email, data.password)
        except GatewayError as e:
            audit_logger.log_user_action('sign_in_failed', None, {'email': data.email})
            return AuthService._error_outcome(e.message)

        if result.user is None or result.session is None:
            return AuthService._error_outcome("Invalid email or password")

        return await AuthService._start_session(
            store, sessions, result, next_path, 'sign_in', remember_me=bool(data.remember_me)
        )

    @staticmethod
    async def start_oauth(
        gateway: IdentityGateway,
        sessions: RedisSessionManager,
        next_path: str
    ) -> AuthOutcome:
        """
        Begin a Google OAuth redirect

        Returns:
            AuthOutcome whose redirect_to is the provider URL
        """
        try:
            result = await gateway.start_oauth(GOOGLE_PROVIDER, callback_url(next_path))
        except GatewayError as e:
            return AuthService._error_outcome(e.message)

        flow_id = None
        if result.code_verifier:
            flow_id = await sessions.create_oauth_flow(result.code_verifier)

        return AuthOutcome(
            response=AuthResponseSchema(success=True, redirect_to=result.provider_url),
            flow_id=flow_id
        )

    @staticmethod
    async def one_tap(
        gateway: IdentityGateway,
        store: ProfileStore,
        sessions: RedisSessionManager,
        credential: Optional[str],
        next_path: Optional[str],
        default_next: str
    ) -> AuthOutcome:
        """
        Sign in with a Google One Tap credential

        A missing or rejected credential falls back to the OAuth redirect
        flow so the user can still continue with Google.
        """
        next_path = safe_next_path(next_path, default_next)

        if credential:
            try:
                result = await gateway.sign_in_with_id_token(GOOGLE_PROVIDER, credential)
                if result.user is not None and result.session is not None:
                    return await AuthService._start_session(store, sessions, result, next_path, 'one_tap')
            except GatewayError as e:
                logger.warning(f"One tap sign in failed, falling back to OAuth redirect: {e.message}")

        return await AuthService.start_oauth(gateway, sessions, next_path)

    @staticmethod
    async def complete_callback(
        gateway: IdentityGateway,
        store: ProfileStore,
        sessions: RedisSessionManager,
        code: Optional[str],
        next_path: Optional[str],
        flow_id: Optional[str] = None,
        current: Optional[PortalSession] = None
    ) -> AuthOutcome:
        """
        Handle the OAuth or email-verification callback

        Exchange failures, and sessions that cannot be stored, are ignored;
        the user is routed with whatever session they already have.
        """
        next_path = safe_next_path(next_path, CALLBACK_DEFAULT_NEXT)

        if code:
            code_verifier = await sessions.pop_oauth_flow(flow_id) if flow_id else None
            result = None
            try:
                result = await gateway.exchange_code(code, code_verifier)
            except GatewayError as e:
                logger.warning(f"Auth code exchange failed: {e.message}")

            if result is not None and result.user is not None and result.session is not None:
                outcome = await AuthService._start_session(store, sessions, result, next_path, 'auth_callback')
                if outcome.response.success:
                    return outcome
                logger.warning(f"Session for {result.user.id} not stored after code exchange")

        user = current.user if current else None
        destination = await resolve_destination(
            store, user, next_path, unauthenticated=DestinationKind.SIGN_IN
        )
        return AuthOutcome(response=AuthResponseSchema(
            success=user is not None,
            redirect_to=destination.path
        ))

    @staticmethod
    async def sign_out(
        gateway: IdentityGateway,
        sessions: RedisSessionManager,
        session: Optional[PortalSession]
    ) -> str:
        """
        Sign out, best effort

        Returns:
            str: Path to send the browser to
        """
        if session is None:
            return HOME_PATH

        await sessions.delete_session(session.token)
        if session.access_token:
            try:
                await gateway.sign_out(session.access_token)
            except GatewayError as e:
                logger.warning(f"Token revocation failed for {session.user.id}: {e.message}")

        audit_logger.log_user_action('sign_out', session.user.id)
        return HOME_PATH

    @staticmethod
    async def resend_verification(
        gateway: IdentityGateway,
        sessions: RedisSessionManager,
        data: ResendVerificationSchema
    ) -> AuthOutcome:
        """Resend the verification email; its link lands on onboarding"""
        try:
            code_verifier = await gateway.resend_verification(
                data.type, data.email, callback_url(ONBOARDING_PATH)
            )
        except GatewayError as e:
            return AuthService._error_outcome(e.message)

        flow_id = await sessions.create_oauth_flow(code_verifier) if code_verifier else None
        return AuthOutcome(
            response=AuthResponseSchema(
                success=True,
                state=SignUpState.VERIFY_EMAIL_PENDING,
                message="Verification email sent."
            ),
            flow_id=flow_id
        )
