"""
Onboarding schemas for Trade Portal

Forms for the basic-info step, the role-specific profile step and the
portal's worker profile editor.
"""

from typing import Optional, List, Union, Literal, Annotated
from pydantic import BaseModel, EmailStr, Field, TypeAdapter, field_validator

from portal_shared.schemas.roles import Role


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class BasicsSchema(BaseModel):
    """Step 1: basic information"""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    location: str = Field(..., min_length=1, max_length=200)

    @field_validator('first_name', 'last_name', 'location')
    @classmethod
    def strip_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('This field is required')
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class WorkerProfileForm(BaseModel):
    """Step 2 for workers"""
    role: Literal["worker"] = "worker"
    headline: Optional[str] = Field(None, max_length=200)
    about: Optional[str] = None
    specialties: Optional[str] = None
    credentials: Optional[str] = None
    years_experience: Optional[int] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    # Accepted for the form; worker_profiles has no column for it
    service_area: Optional[str] = None
    service_radius_km: Optional[float] = Field(None, ge=0)

    @field_validator(
        'headline', 'about', 'specialties', 'credentials', 'service_area',
        'years_experience', 'hourly_rate', 'service_radius_km', mode='before'
    )
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class CustomerProfileForm(BaseModel):
    """Step 2 for customers"""
    role: Literal["customer"] = "customer"
    location: Optional[str] = None

    @field_validator('location', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class BusinessProfileForm(BaseModel):
    """Step 2 for businesses"""
    role: Literal["business"] = "business"
    company_name: Optional[str] = Field(None, max_length=200)
    service_area: Optional[str] = None
    portfolio: Optional[str] = None

    @field_validator('company_name', 'service_area', 'portfolio', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


RoleProfileForm = Annotated[
    Union[WorkerProfileForm, CustomerProfileForm, BusinessProfileForm],
    Field(discriminator="role")
]

role_profile_form_adapter = TypeAdapter(RoleProfileForm)


class PortalWorkerForm(BaseModel):
    """Worker profile editor shown in the portal's worker tab"""
    specialties: str = ""
    years_experience: Optional[int] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    # Not stored; worker_profiles has no service area column
    service_area: str = ""
    credentials: str = ""
    portfolio: str = ""
    about: str = ""
    availability: str = ""

    @field_validator('years_experience', 'hourly_rate', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class SelectRoleSchema(BaseModel):
    """Role chosen on the select-role page"""
    role: Role


class StepSchema(BaseModel):
    """One entry of the onboarding progress indicator"""
    number: int
    label: str
    completed: bool
    current: bool


class BasicsPrefillSchema(BaseModel):
    """Values pre-filled into the basic-info form"""
    role: Role
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    email_read_only: bool = False
    location: str = ""
    steps: List[StepSchema] = Field(default_factory=list)
