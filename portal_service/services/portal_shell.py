"""
Portal Shell Service
Role-specific tabs, listing search and the worker profile editor
"""

from typing import Dict, List, Optional
import logging

from portal_shared.schemas.roles import Role, Stage
from portal_shared.schemas.onboarding import PortalWorkerForm
from portal_shared.schemas.portal import PortalTabSchema, PortalViewSchema
from portal_shared.utils.logger import audit_logger
from portal_service.models.records import RecordValidationError, UserIdentity, WorkerProfile
from portal_service.services.onboarding_service import split_list, to_cents
from portal_service.utils.profile_store import ProfileStore, StoreError

logger = logging.getLogger(__name__)

FIND_TAB = "find"
WORKER_TAB = "worker"

PORTAL_TABS: Dict[Role, List[PortalTabSchema]] = {
    Role.CUSTOMER: [
        PortalTabSchema(key=FIND_TAB, label="Post Work"),
        PortalTabSchema(key=WORKER_TAB, label="My Tasks"),
    ],
    Role.WORKER: [
        PortalTabSchema(key=FIND_TAB, label="Search Jobs"),
        PortalTabSchema(key=WORKER_TAB, label="My Work"),
    ],
    Role.BUSINESS: [
        PortalTabSchema(key=FIND_TAB, label="Projects"),
        PortalTabSchema(key=WORKER_TAB, label="Workers"),
    ],
}

FEATURED_LISTINGS = [
    "John Doe · Plumbing",
    "Jane Smith · Electrical",
    "Mark Lee · Carpentry",
]

# Columns the portal editor owns
PORTAL_WORKER_COLUMNS = (
    "bio", "trades", "certifications", "years_experience",
    "rate_type", "rate_cents", "availability", "portfolio_urls"
)


def default_tab(role: Role) -> str:
    return WORKER_TAB if role == Role.WORKER else FIND_TAB


def search_listings(query: Optional[str]) -> List[str]:
    """Case-insensitive substring filter over the listings"""
    needle = (query or "").strip().lower()
    if not needle:
        return list(FEATURED_LISTINGS)
    return [listing for listing in FEATURED_LISTINGS if needle in listing.lower()]


def worker_form_from_profile(profile: Optional[WorkerProfile]) -> PortalWorkerForm:
    if profile is None:
        return PortalWorkerForm()
    return PortalWorkerForm(
        specialties=", ".join(profile.trades),
        years_experience=profile.years_experience,
        hourly_rate=profile.rate_cents / 100 if profile.rate_cents is not None else None,
        credentials=", ".join(profile.certifications),
        portfolio=profile.portfolio_urls[0] if profile.portfolio_urls else "",
        about=profile.bio or "",
        availability=(profile.availability or {}).get("note") or ""
    )


def worker_profile_from_form(user_id: str, form: PortalWorkerForm) -> WorkerProfile:
    """Map the portal editor to the worker profile; rates are always hourly"""
    return WorkerProfile(
        user_id=user_id,
        bio=form.about.strip() or None,
        trades=split_list(form.specialties),
        certifications=split_list(form.credentials),
        years_experience=form.years_experience,
        rate_type="hourly",
        rate_cents=to_cents(form.hourly_rate),
        availability={"note": form.availability.strip()} if form.availability.strip() else None,
        portfolio_urls=[form.portfolio.strip()] if form.portfolio.strip() else []
    )


class PortalShellService:
    """Portal shell business logic"""

    @staticmethod
    async def build_view(
        store: ProfileStore,
        user: UserIdentity,
        role: Optional[Role],
        tab: Optional[str] = None,
        query: Optional[str] = None
    ) -> PortalViewSchema:
        """
        Build the portal for a role

        The stage is re-read on every visit. Without a role the first
        completed role is used, then customer.
        """
        stage: Optional[Stage] = None
        worker_profile: Optional[WorkerProfile] = None

        try:
            if role is None:
                completed = await store.list_role_stages(user.id, stage=Stage.PROFILE_DONE)
                role = completed[0].role if completed else Role.CUSTOMER
            record = await store.get_role_stage(user.id, role)
            stage = record.stage if record else None
            profile = await store.get_role_profile(user.id, Role.WORKER)
            if isinstance(profile, WorkerProfile):
                worker_profile = profile
        except (StoreError, RecordValidationError) as e:
            logger.warning(f"Portal lookups failed for {user.id}: {e}")
            role = role or Role.CUSTOMER

        tabs = PORTAL_TABS[role]
        active = tab if tab in {t.key for t in tabs} else default_tab(role)

        return PortalViewSchema(
            role=role,
            stage=stage,
            tabs=tabs,
            active_tab=active,
            query=query or "",
            listings=search_listings(query),
            worker_form=worker_form_from_profile(worker_profile)
        )

    @staticmethod
    async def get_worker_form(store: ProfileStore, user: UserIdentity) -> PortalWorkerForm:
        """
        Raises:
            StoreError: If the profile cannot be read
        """
        profile = await store.get_role_profile(user.id, Role.WORKER)
        return worker_form_from_profile(profile if isinstance(profile, WorkerProfile) else None)

    @staticmethod
    async def save_worker_form(store: ProfileStore, user: UserIdentity, form: PortalWorkerForm) -> PortalWorkerForm:
        """
        Save the worker editor

        Raises:
            StoreError: If the upsert fails
        """
        profile = worker_profile_from_form(user.id, form)
        await store.upsert_role_profile(profile, columns=PORTAL_WORKER_COLUMNS)
        audit_logger.log_user_action('worker_profile_saved', user.id)
        return worker_form_from_profile(profile)
