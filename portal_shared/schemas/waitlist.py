"""
Waitlist schemas for Trade Portal
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from portal_shared.schemas.roles import Role
from portal_shared.utils.validators import validate_phone


class WaitlistSubmissionSchema(BaseModel):
    """Schema for joining the launch waitlist"""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=32)
    role: Optional[Role] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name is required')
        return v

    @field_validator('phone', 'role', 'notes', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('phone')
    @classmethod
    def validate_phone_number(cls, v):
        """Validate phone number"""
        error = validate_phone(v)
        if error:
            raise ValueError(error)
        return v.strip() if v else v
