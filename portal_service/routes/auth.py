"""
Authentication Routes
Sign-up, sign-in, Google sign-in, auth callback, sign-out and verification
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
import logging

from portal_shared.schemas.auth import (
    SignUpSchema, SignInSchema, OneTapSchema, ResendVerificationSchema, SignUpState
)
from portal_service.config import settings
from portal_service.models.navigation import role_from_next, safe_next_path
from portal_service.services.auth_service import AuthService, AuthOutcome
from portal_service.services.role_resolver import SIGN_IN_DEFAULT_NEXT, SIGN_UP_DEFAULT_NEXT
from portal_service.utils.cookies import (
    set_session_cookie, clear_session_cookie, set_flow_cookie, clear_flow_cookie
)
from portal_service.utils.dependencies import (
    GatewayDep, StoreDep, SessionsDep, CurrentSession, OptionalSession
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _outcome_response(outcome: AuthOutcome, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """JSON response for an auth outcome, carrying its cookies"""
    body = outcome.response
    if body.success:
        status_code = success_status
    elif body.state == SignUpState.ACCOUNT_EXISTS:
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST

    response = JSONResponse(content=body.model_dump(mode="json"), status_code=status_code)
    if body.session_token:
        set_session_cookie(response, body.session_token, outcome.remember_me)
    set_flow_cookie(response, outcome.flow_id)
    return response


def _page_config(next_path: Optional[str], default_next: str, signed_in: bool) -> dict:
    next_path = safe_next_path(next_path, default_next)
    role = role_from_next(next_path)
    return {
        "next": next_path,
        "role": role.value if role else None,
        "signed_in": signed_in,
        "google_client_id": settings.google_client_id or None,
    }


@router.get("/sign-up", response_model=dict)
async def sign_up_page(session: OptionalSession, next: Optional[str] = Query(None)):
    """Sign-up page settings; the role comes from ?role= inside next"""
    return _page_config(next, SIGN_UP_DEFAULT_NEXT, session is not None)


@router.post("/sign-up", response_model=dict)
async def sign_up(
    data: SignUpSchema,
    gateway: GatewayDep,
    store: StoreDep,
    sessions: SessionsDep
):
    """
    Sign up with email and password

    Responds 201 with state signed_in or verify_email_pending, 409 with
    account_exists, or 400 with field errors
    """
    try:
        outcome = await AuthService.sign_up(gateway, store, sessions, data)
        return _outcome_response(outcome, success_status=status.HTTP_201_CREATED)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Sign up error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Sign up failed"
        )


@router.post("/sign-up/one-tap", response_model=dict)
async def sign_up_one_tap(data: OneTapSchema, gateway: GatewayDep, store: StoreDep, sessions: SessionsDep):
    """Google One Tap from the sign-up page"""
    outcome = await AuthService.one_tap(
        gateway, store, sessions, data.credential, data.next, SIGN_UP_DEFAULT_NEXT
    )
    return _outcome_response(outcome)


@router.get("/sign-in", response_model=dict)
async def sign_in_page(session: OptionalSession, next: Optional[str] = Query(None)):
    """Sign-in page settings"""
    return _page_config(next, SIGN_IN_DEFAULT_NEXT, session is not None)


@router.post("/sign-in", response_model=dict)
async def sign_in(
    data: SignInSchema,
    gateway: GatewayDep,
    store: StoreDep,
    sessions: SessionsDep
):
    """
    Sign in with email and password

    Sets the session cookie and returns where to go next
    """
    try:
        outcome = await AuthService.sign_in(gateway, store, sessions, data)
        return _outcome_response(outcome)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Sign in error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Sign in failed"
        )


@router.post("/sign-in/one-tap", response_model=dict)
async def sign_in_one_tap(data: OneTapSchema, gateway: GatewayDep, store: StoreDep, sessions: SessionsDep):
    """Google One Tap from the sign-in page"""
    outcome = await AuthService.one_tap(
        gateway, store, sessions, data.credential, data.next, SIGN_IN_DEFAULT_NEXT
    )
    return _outcome_response(outcome)


@router.get("/oauth/google")
async def google_oauth(gateway: GatewayDep, sessions: SessionsDep, next: Optional[str] = Query(None)):
    """Redirect to Google; the provider returns to /auth/callback"""
    outcome = await AuthService.start_oauth(
        gateway, sessions, safe_next_path(next, SIGN_IN_DEFAULT_NEXT)
    )
    if not outcome.response.success or not outcome.response.redirect_to:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Google sign in is unavailable"
        )

    response = RedirectResponse(outcome.response.redirect_to, status_code=status.HTTP_303_SEE_OTHER)
    set_flow_cookie(response, outcome.flow_id)
    return response


@router.get("/callback")
async def auth_callback(
    request: Request,
    gateway: GatewayDep,
    store: StoreDep,
    sessions: SessionsDep,
    session: OptionalSession,
    code: Optional[str] = Query(None),
    next: Optional[str] = Query(None)
):
    """
    OAuth and email-link callback

    Exchanges the code for a session when possible, then redirects
    """
    outcome = await AuthService.complete_callback(
        gateway, store, sessions, code, next,
        flow_id=request.cookies.get(settings.oauth_flow_cookie_name),
        current=session
    )

    response = RedirectResponse(outcome.response.redirect_to, status_code=status.HTTP_303_SEE_OTHER)
    if outcome.response.session_token:
        set_session_cookie(response, outcome.response.session_token)
    if code:
        clear_flow_cookie(response)
    return response


@router.api_route("/sign-out", methods=["GET", "POST"])
async def sign_out(gateway: GatewayDep, sessions: SessionsDep, session: OptionalSession):
    """Sign out and return to the home page"""
    destination = await AuthService.sign_out(gateway, sessions, session)
    response = RedirectResponse(destination, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response)
    return response


@router.post("/resend-verification", response_model=dict)
async def resend_verification(data: ResendVerificationSchema, gateway: GatewayDep, sessions: SessionsDep):
    """Resend the sign-up verification email"""
    outcome = await AuthService.resend_verification(gateway, sessions, data)
    return _outcome_response(outcome)


@router.get("/me", response_model=dict)
async def get_me(session: CurrentSession, store: StoreDep):
    """Current user and the stage of each of their roles"""
    records = await store.list_role_stages(session.user.id)
    return {
        "id": session.user.id,
        "email": session.user.email,
        "roles": {record.role.value: record.stage.value for record in records},
    }
