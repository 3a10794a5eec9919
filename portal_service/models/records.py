"""
Store Records
Typed rows of the profile store tables and the identity backend's user
"""

from typing import Optional, Dict, Any, List, Union, Literal, Annotated
from datetime import datetime, timezone
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from portal_shared.schemas.roles import Role, Stage


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordValidationError(Exception):
    """A row returned by the store does not match its expected shape"""

    def __init__(self, table: str, detail: str):
        self.table = table
        self.detail = detail
        super().__init__(f"Invalid row in {table}: {detail}")


class UserIdentity(BaseModel):
    """Authenticated user as reported by the identity backend"""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    identities: Optional[List[Dict[str, Any]]] = None

    @field_validator('user_metadata', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return v or {}

    def first_identity_data(self) -> Dict[str, Any]:
        """identity_data of the first linked identity, if any"""
        if not self.identities:
            return {}
        return self.identities[0].get('identity_data') or {}

    def to_session_data(self) -> Dict[str, Any]:
        return {
            'user_id': self.id,
            'email': self.email,
            'user_metadata': self.user_metadata,
            'identities': self.identities,
        }


class GatewaySession(BaseModel):
    """Tokens issued by the identity backend"""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None


class AuthResult(BaseModel):
    """Normalized result of any sign-up or sign-in call"""
    user: Optional[UserIdentity] = None
    session: Optional[GatewaySession] = None
    provider_url: Optional[str] = None
    code_verifier: Optional[str] = None

    @property
    def is_duplicate_signup(self) -> bool:
        """
        Sign-up of an already registered email: the backend returns the user
        with its identities cleared and no session
        """
        return (
            self.user is not None
            and self.session is None
            and self.user.identities is not None
            and len(self.user.identities) == 0
        )


class RoleStageRecord(BaseModel):
    """One row of user_roles: onboarding progress of a user in one role"""
    user_id: str
    role: Role
    stage: Stage
    enabled_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')


class GenericProfile(BaseModel):
    """One row of profiles: identity attributes shared by every role"""
    user_id: str
    full_name: Optional[str] = None
    city: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')


class _RoleProfileBase(BaseModel):
    user_id: str
    updated_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> Dict[str, Any]:
        """Row for the role's own table, which has no role column"""
        return self.model_dump(mode='json', exclude={'role'})


class WorkerProfile(_RoleProfileBase):
    role: Literal["worker"] = "worker"
    headline: Optional[str] = None
    bio: Optional[str] = None
    trades: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    years_experience: Optional[int] = None
    rate_type: Optional[Literal["hourly", "fixed"]] = None
    rate_cents: Optional[int] = None
    service_radius_km: Optional[float] = None
    portfolio_urls: List[str] = Field(default_factory=list)
    availability: Optional[Dict[str, Any]] = None

    @field_validator('trades', 'certifications', 'portfolio_urls', mode='before')
    @classmethod
    def none_to_list(cls, v):
        return v or []


class CustomerProfile(_RoleProfileBase):
    role: Literal["customer"] = "customer"
    default_city: Optional[str] = None
    preferred_contact_method: Optional[str] = None


class BusinessProfile(_RoleProfileBase):
    role: Literal["business"] = "business"
    company_name: Optional[str] = None
    website: Optional[str] = None
    hq_city: Optional[str] = None


RoleProfile = Annotated[
    Union[WorkerProfile, CustomerProfile, BusinessProfile],
    Field(discriminator="role")
]

_role_profile_adapter = TypeAdapter(RoleProfile)

ROLE_PROFILE_TABLES = {
    Role.WORKER: "worker_profiles",
    Role.CUSTOMER: "customer_profiles",
    Role.BUSINESS: "business_profiles",
}


def parse_role_profile(role: Role, row: Dict[str, Any]) -> Union[WorkerProfile, CustomerProfile, BusinessProfile]:
    """
    Validate a role table row into its tagged profile variant

    Args:
        role: Role whose table the row came from
        row: Raw row

    Returns:
        The matching WorkerProfile, CustomerProfile or BusinessProfile

    Raises:
        RecordValidationError: If the row does not fit the variant
    """
    try:
        return _role_profile_adapter.validate_python({**row, 'role': role.value})
    except ValidationError as e:
        raise RecordValidationError(ROLE_PROFILE_TABLES[role], str(e)) from e


class WaitlistSubmission(BaseModel):
    """One row of waitlist_submissions"""
    name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    role: Optional[Role] = None
    source: str = "landing_page"
    notes: Optional[str] = None
    user_agent: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')


class PortalSession(BaseModel):
    """A signed-in browser session as stored server side"""
    token: str
    user: UserIdentity
    access_token: Optional[str] = None

    @classmethod
    def from_session_data(cls, token: str, data: Dict[str, Any]) -> "PortalSession":
        return cls(
            token=token,
            user=UserIdentity(
                id=data['user_id'],
                email=data.get('email'),
                user_metadata=data.get('user_metadata'),
                identities=data.get('identities')
            ),
            access_token=data.get('access_token')
        )
