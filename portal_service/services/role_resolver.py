"""
Role-Stage Resolver
Decides where a user lands after sign-in, sign-up, one-tap or the auth
callback, based on the onboarding stage of their roles.

Resolution order:
    1. exact match on the requested role (explicit or from ?role= in next)
    2. any role with a completed profile, when no role was requested
    3. the caller's next path
A user without a session is sent to sign-up or sign-in instead.
"""

from typing import Dict, Optional
import logging

from portal_shared.schemas.roles import Role, Stage
from portal_service.models.navigation import (
    Destination, DestinationKind, role_from_next,
    HOME_PATH, PORTAL_PATH, ONBOARDING_PATH
)
from portal_service.models.records import RecordValidationError, RoleStageRecord, UserIdentity
from portal_service.utils.profile_store import ProfileStore, StoreError

logger = logging.getLogger(__name__)

# One table for every call site. A role that has been selected at all is
# routed to its portal; the portal prompts for whatever onboarding is left.
STAGE_DESTINATIONS: Dict[Stage, DestinationKind] = {
    Stage.ENABLED: DestinationKind.PORTAL,
    Stage.BASICS_DONE: DestinationKind.PORTAL,
    Stage.PROFILE_DONE: DestinationKind.PORTAL,
}

# Fallback next path per call site
SIGN_IN_DEFAULT_NEXT = PORTAL_PATH
SIGN_UP_DEFAULT_NEXT = ONBOARDING_PATH
CALLBACK_DEFAULT_NEXT = HOME_PATH


def destination_for_record(record: RoleStageRecord) -> Destination:
    """Map a stage record to its navigation target"""
    kind = STAGE_DESTINATIONS[record.stage]
    if kind == DestinationKind.PORTAL:
        return Destination.portal(record.role)
    if kind == DestinationKind.SETUP_PROFILE:
        return Destination.setup_profile(record.role)
    return Destination.onboarding(record.role)


async def resolve_destination(
    store: ProfileStore,
    user: Optional[UserIdentity],
    next_path: str,
    requested_role: Optional[Role] = None,
    allow_any_completed: bool = False,
    unauthenticated: DestinationKind = DestinationKind.SIGN_UP
) -> Destination:
    """
    Resolve the destination for a user

    Never writes to the store, and never raises: lookup failures degrade to
    the caller's next path.

    Args:
        store: Profile store to read stage records from
        user: Signed-in user, or None
        next_path: Caller's fallback path
        requested_role: Role the caller asked for; read from ?role= in
            next_path when omitted
        allow_any_completed: Also try any completed role when the requested
            role has no record
        unauthenticated: SIGN_UP or SIGN_IN, used when there is no user

    Returns:
        Destination
    """
    if user is None:
        if unauthenticated == DestinationKind.SIGN_IN:
            return Destination.sign_in(next_path)
        return Destination.sign_up(next_path)

    if requested_role is None:
        requested_role = role_from_next(next_path)

    try:
        if requested_role is not None:
            record = await store.get_role_stage(user.id, requested_role)
            if record is not None:
                return destination_for_record(record)

        if requested_role is None or allow_any_completed:
            completed = await store.list_role_stages(user.id, stage=Stage.PROFILE_DONE)
            if completed:
                return Destination.portal(completed[0].role)
    except (StoreError, RecordValidationError) as e:
        logger.warning(f"Role lookup failed for {user.id}, falling back to {next_path}: {e}")

    return Destination.unresolved(next_path)

