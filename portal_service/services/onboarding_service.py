"""
Onboarding Service
Two-step onboarding per role: basic info, then the role-specific profile
"""

from typing import Any, Dict, List, Optional, Tuple, Union
import logging

from portal_shared.schemas.roles import Role, Stage
from portal_shared.schemas.onboarding import (
    BasicsSchema, BasicsPrefillSchema, StepSchema,
    WorkerProfileForm, CustomerProfileForm, BusinessProfileForm
)
from portal_shared.utils.logger import audit_logger
from portal_service.models.navigation import Destination
from portal_service.models.records import (
    GenericProfile, WorkerProfile, CustomerProfile, BusinessProfile,
    RecordValidationError, UserIdentity
)
from portal_service.utils.profile_store import ProfileStore, StoreError

logger = logging.getLogger(__name__)

ONBOARDING_STEPS = [(1, "Basic info"), (2, "Profile")]

ProfileForm = Union[WorkerProfileForm, CustomerProfileForm, BusinessProfileForm]
ProfileRecord = Union[WorkerProfile, CustomerProfile, BusinessProfile]

# Columns the profile step owns; the portal editor owns the rest
SETUP_PROFILE_COLUMNS = {
    Role.WORKER: (
        "headline", "bio", "trades", "certifications",
        "years_experience", "rate_cents", "service_radius_km"
    ),
    Role.CUSTOMER: ("default_city", "preferred_contact_method"),
    Role.BUSINESS: ("company_name", "website", "hq_city"),
}


def onboarding_steps(current: int) -> List[StepSchema]:
    """Progress indicator entries with the given step number active"""
    return [
        StepSchema(number=number, label=label, completed=number < current, current=number == current)
        for number, label in ONBOARDING_STEPS
    ]


def split_list(value: Optional[str]) -> List[str]:
    """Split a comma separated form value into trimmed, non-empty items"""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def to_cents(amount: Optional[float]) -> Optional[int]:
    if amount is None:
        return None
    return int(round(amount * 100))


def _first_present(*sources: Tuple[Dict[str, Any], str]) -> str:
    for data, key in sources:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def name_from_identity(user: UserIdentity) -> Tuple[str, str]:
    """
    First and last name from the identity provider's metadata

    Lookup order: metadata given/family names, then the metadata full name
    split on its first space, then the first identity's given/family names.
    Identity full names are never split.
    """
    meta = user.user_metadata

    first = _first_present((meta, "given_name"), (meta, "first_name"))
    last = _first_present((meta, "family_name"), (meta, "last_name"))

    if not first or not last:
        full = _first_present((meta, "full_name"), (meta, "name"))
        if full:
            parts = full.split()
            first = first or parts[0]
            last = last or " ".join(parts[1:])

    if not first or not last:
        identity = user.first_identity_data()
        first = first or _first_present((identity, "given_name"), (identity, "first_name"))
        last = last or _first_present((identity, "family_name"), (identity, "last_name"))

    return first, last


class OnboardingService:
    """Onboarding business logic"""

    @staticmethod
    async def prefill_basics(store: ProfileStore, user: UserIdentity, role: Role) -> BasicsPrefillSchema:
        """
        Pre-fill the basic-info form from the identity and any saved profile

        Returns:
            BasicsPrefillSchema: the email is read-only when the identity
            already supplies one
        """
        first, last = name_from_identity(user)
        email = user.email or _first_present((user.user_metadata, "email"), (user.first_identity_data(), "email"))

        location = ""
        try:
            profile = await store.get_profile(user.id)
            if profile and profile.city:
                location = profile.city
        except (StoreError, RecordValidationError) as e:
            logger.warning(f"Could not load saved profile for {user.id}: {e}")

        return BasicsPrefillSchema(
            role=role,
            first_name=first,
            last_name=last,
            email=email,
            email_read_only=bool(email),
            location=location,
            steps=onboarding_steps(1)
        )

    @staticmethod
    async def submit_basics(
        store: ProfileStore,
        user: UserIdentity,
        role: Role,
        form: BasicsSchema
    ) -> Destination:
        """
        Save step 1 and move the role to basics_done

        Raises:
            StoreError: If either write fails; the user stays on step 1
        """
        await store.upsert_profile(GenericProfile(
            user_id=user.id,
            full_name=form.full_name,
            city=form.location
        ))
        record = await store.advance_role_stage(user.id, role, Stage.BASICS_DONE)
        audit_logger.log_user_action('onboarding_basics', user.id, {'role': role.value, 'stage': record.stage.value})
        return Destination.setup_profile(role)

    @staticmethod
    def build_role_profile(user_id: str, form: ProfileForm) -> ProfileRecord:
        """Map a profile-step form to the role's stored profile"""
        if isinstance(form, WorkerProfileForm):
            return WorkerProfile(
                user_id=user_id,
                headline=form.headline,
                bio=form.about,
                trades=split_list(form.specialties),
                certifications=split_list(form.credentials),
                years_experience=form.years_experience,
                rate_cents=to_cents(form.hourly_rate),
                service_radius_km=form.service_radius_km
            )
        if isinstance(form, CustomerProfileForm):
            return CustomerProfile(
                user_id=user_id,
                default_city=form.location,
                preferred_contact_method="app"
            )
        return BusinessProfile(
            user_id=user_id,
            company_name=form.company_name,
            website=form.portfolio,
            hq_city=form.service_area
        )

    @staticmethod
    async def submit_profile(store: ProfileStore, user: UserIdentity, form: ProfileForm) -> Destination:
        """
        Save step 2 and move the role to profile_done

        Raises:
            StoreError: If either write fails; the user stays on step 2
        """
        role = Role(form.role)
        profile = OnboardingService.build_role_profile(user.id, form)
        await store.upsert_role_profile(profile, columns=SETUP_PROFILE_COLUMNS[role])
        await store.advance_role_stage(user.id, role, Stage.PROFILE_DONE)
        audit_logger.log_user_action('onboarding_profile', user.id, {'role': role.value})
        return Destination.portal(role)

    @staticmethod
    async def profile_form_defaults(store: ProfileStore, user: UserIdentity, role: Role) -> ProfileForm:
        """Profile-step form filled from the stored role profile, if there is one"""
        try:
            profile = await store.get_role_profile(user.id, role)
        except (StoreError, RecordValidationError) as e:
            logger.warning(f"Could not load {role.value} profile for {user.id}: {e}")
            profile = None

        if isinstance(profile, WorkerProfile):
            return WorkerProfileForm(
                headline=profile.headline,
                about=profile.bio,
                specialties=", ".join(profile.trades) or None,
                credentials=", ".join(profile.certifications) or None,
                years_experience=profile.years_experience,
                hourly_rate=profile.rate_cents / 100 if profile.rate_cents is not None else None,
                service_radius_km=profile.service_radius_km
            )
        if isinstance(profile, CustomerProfile):
            return CustomerProfileForm(location=profile.default_city)
        if isinstance(profile, BusinessProfile):
            return BusinessProfileForm(
                company_name=profile.company_name,
                service_area=profile.hq_city,
                portfolio=profile.website
            )

        return {
            Role.WORKER: WorkerProfileForm,
            Role.CUSTOMER: CustomerProfileForm,
            Role.BUSINESS: BusinessProfileForm,
        }[role]()

    @staticmethod
    async def select_role(store: ProfileStore, user: Optional[UserIdentity], role: Role) -> Destination:
        """
        Enable a role and start its onboarding

        Anonymous users are sent to sign-up first, with onboarding for the
        chosen role as the next path.
        """
        onboarding = Destination.onboarding(role)
        if user is None:
            return Destination.sign_up(onboarding.path)

        await store.advance_role_stage(user.id, role, Stage.ENABLED)
        audit_logger.log_user_action('role_selected', user.id, {'role': role.value})
        return onboarding

    @staticmethod
    def back_from_profile(role: Role) -> Destination:
        """Previous on step 2 returns to step 1 without touching stored progress"""
        return Destination.onboarding(role)