"""
Portal Routes
Role-specific portal shell and the worker profile editor
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import RedirectResponse
import logging

from portal_shared.schemas.roles import Role
from portal_shared.schemas.onboarding import PortalWorkerForm
from portal_service.models.navigation import Destination, PORTAL_PATH
from portal_service.services.portal_shell import PortalShellService, search_listings
from portal_service.utils.dependencies import StoreDep, CurrentUser, OptionalUser
from portal_service.utils.profile_store import StoreError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def portal_page(
    store: StoreDep,
    user: OptionalUser,
    role: Optional[Role] = Query(None),
    tab: Optional[str] = Query(None),
    q: Optional[str] = Query(None)
):
    """Portal for one role; anonymous visitors are sent to sign-in"""
    if user is None:
        next_path = Destination.portal(role).path if role else PORTAL_PATH
        return RedirectResponse(Destination.sign_in(next_path).path, status_code=status.HTTP_303_SEE_OTHER)

    view = await PortalShellService.build_view(store, user, role, tab, q)
    return view.model_dump(mode="json")


@router.get("/search", response_model=dict)
async def search(q: Optional[str] = Query(None)):
    """Filter the listings shown on the find tab"""
    return {"query": q or "", "results": search_listings(q)}


@router.get("/worker-profile", response_model=PortalWorkerForm)
async def get_worker_profile(store: StoreDep, user: CurrentUser):
    """Worker profile editor values"""
    try:
        return await PortalShellService.get_worker_form(store, user)
    except StoreError as e:
        logger.error(f"Loading worker profile failed for {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not load your profile. Please try again."
        )


@router.put("/worker-profile", response_model=dict)
async def save_worker_profile(data: PortalWorkerForm, store: StoreDep, user: CurrentUser):
    """Save the worker profile editor"""
    try:
        form = await PortalShellService.save_worker_form(store, user, data)
    except StoreError as e:
        logger.error(f"Saving worker profile failed for {user.id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to save. Please try again."
        )

    return {"success": True, "message": "Saved", "profile": form.model_dump(mode="json")}
