"""
Authentication schemas for Trade Portal

Pydantic models for sign-up, sign-in and verification requests and the
responses the auth routes return.
"""

from typing import Optional, Dict, Any
from enum import Enum
from pydantic import BaseModel, EmailStr, Field, field_validator

from portal_shared.utils.validators import validate_password


class SignUpState(str, Enum):
    """Outcome of a sign-up attempt"""
    SIGNED_IN = "signed_in"
    VERIFY_EMAIL_PENDING = "verify_email_pending"
    ACCOUNT_EXISTS = "account_exists"
    ERROR = "error"


class SignUpSchema(BaseModel):
    """Schema for password sign-up"""
    email: EmailStr
    password: str = Field(..., max_length=128)
    next: Optional[str] = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v):
        """Validate password strength"""
        error = validate_password(v)
        if error:
            raise ValueError(error)
        return v


class SignInSchema(BaseModel):
    """Schema for password sign-in"""
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: Optional[bool] = False
    next: Optional[str] = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class OneTapSchema(BaseModel):
    """Google One Tap credential callback payload"""
    credential: Optional[str] = None
    next: Optional[str] = None


class ResendVerificationSchema(BaseModel):
    """Schema for resending the sign-up verification email"""
    email: EmailStr
    type: str = Field("signup", pattern=r'^(signup|email_change)$')


class AuthResponseSchema(BaseModel):
    """Result of an authentication action"""
    success: bool
    state: Optional[SignUpState] = None
    redirect_to: Optional[str] = None
    session_token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    field_errors: Dict[str, str] = Field(default_factory=dict)
    actions: Dict[str, str] = Field(default_factory=dict)
