"""
Onboarding Routes
Role selection and the two onboarding steps
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, HTTPException, Query, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
import logging

from portal_shared.schemas.roles import Role
from portal_shared.schemas.onboarding import (
    BasicsSchema, SelectRoleSchema, role_profile_form_adapter
)
from portal_service.models.navigation import Destination
from portal_service.services.auth_service import AuthService
from portal_service.services.onboarding_service import OnboardingService, onboarding_steps
from portal_service.utils.cookies import clear_session_cookie
from portal_service.utils.dependencies import (
    GatewayDep, StoreDep, SessionsDep, CurrentUser, OptionalUser, OptionalSession
)
from portal_service.utils.profile_store import StoreError

logger = logging.getLogger(__name__)

router = APIRouter()


def _sign_up_redirect(destination: Destination) -> RedirectResponse:
    return RedirectResponse(
        Destination.sign_up(destination.path).path,
        status_code=status.HTTP_303_SEE_OTHER
    )


@router.get("/select-role", response_model=dict)
async def select_role_page(user: OptionalUser):
    """Roles that can be chosen"""
    return {
        "roles": [role.value for role in Role],
        "signed_in": user is not None,
    }


@router.post("/select-role", response_model=dict)
async def select_role(data: SelectRoleSchema, store: StoreDep, user: OptionalUser):
    """
    Choose a role

    Signed-in users have the role enabled and go to its onboarding;
    anonymous users go to sign-up first
    """
    try:
        destination = await OnboardingService.select_role(store, user, data.role)
    except StoreError as e:
        logger.error(f"Role selection failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not save your role. Please try again."
        )

    return {"success": True, "redirect_to": destination.path}


@router.get("/onboarding")
async def onboarding_page(
    store: StoreDep,
    user: OptionalUser,
    role: Role = Query(Role.CUSTOMER)
):
    """Step 1: basic info pre-filled from the identity provider"""
    if user is None:
        return _sign_up_redirect(Destination.onboarding(role))

    prefill = await OnboardingService.prefill_basics(store, user, role)
    return prefill.model_dump(mode="json")


@router.post("/onboarding", response_model=dict)
async def submit_basics(
    data: BasicsSchema,
    store: StoreDep,
    user: CurrentUser,
    role: Role = Query(Role.CUSTOMER)
):
    """
    Save step 1

    Advances the role to basics_done and points at the profile step
    """
    try:
        destination = await OnboardingService.submit_basics(store, user, role, data)
    except StoreError as e:
        logger.error(f"Saving basic info failed for {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not save your details. Please try again."
        )

    return {"success": True, "redirect_to": destination.path}


@router.post("/onboarding/back")
async def back_from_basics(gateway: GatewayDep, sessions: SessionsDep, session: OptionalSession):
    """Previous on step 1 signs out and returns home"""
    destination = await AuthService.sign_out(gateway, sessions, session)
    response = JSONResponse(content={"success": True, "redirect_to": destination})
    clear_session_cookie(response)
    return response


@router.get("/setup-profile")
async def setup_profile_page(
    store: StoreDep,
    user: OptionalUser,
    role: Role = Query(Role.CUSTOMER)
):
    """Step 2: the role-specific profile form"""
    if user is None:
        return _sign_up_redirect(Destination.setup_profile(role))

    form = await OnboardingService.profile_form_defaults(store, user, role)
    return {
        "role": role.value,
        "steps": [step.model_dump() for step in onboarding_steps(2)],
        "form": form.model_dump(mode="json"),
    }


def _role_profile_form(body: Dict[str, Any], role: Optional[Role]):
    """Validate the step 2 body; ?role= supplies the role when the body has none"""
    body_role = body.get("role")
    if role is not None:
        if body_role is not None and body_role != role.value:
            raise RequestValidationError([{
                "loc": ("body", "role"),
                "msg": f"Role does not match the {role.value} profile being set up",
                "type": "value_error",
            }])
        body = {**body, "role": role.value}
    elif body_role is None:
        raise RequestValidationError([{
            "loc": ("query", "role"),
            "msg": "Choose a role",
            "type": "missing",
        }])

    try:
        return role_profile_form_adapter.validate_python(body)
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("body",) + tuple(error["loc"])} for error in e.errors()]
        )


@router.post("/setup-profile", response_model=dict)
async def submit_profile(
    store: StoreDep,
    user: CurrentUser,
    body: Dict[str, Any] = Body(...),
    role: Optional[Role] = Query(None)
):
    """
    Save step 2

    Advances the role to profile_done and points at its portal
    """
    data = _role_profile_form(body, role)
    try:
        destination = await OnboardingService.submit_profile(store, user, data)
    except StoreError as e:
        logger.error(f"Saving {data.role} profile failed for {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not save your profile. Please try again."
        )

    return {"success": True, "redirect_to": destination.path}


@router.post("/setup-profile/back", response_model=dict)
async def back_from_profile(user: CurrentUser, role: Role = Query(Role.CUSTOMER)):
    """Previous on step 2 returns to step 1"""
    return {"success": True, "redirect_to": OnboardingService.back_from_profile(role).path}
