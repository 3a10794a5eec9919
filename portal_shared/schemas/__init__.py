"""
Shared data schemas for Trade Portal
"""

from .roles import Role, Stage
from .auth import (
    SignUpState, SignUpSchema, SignInSchema, OneTapSchema,
    ResendVerificationSchema, AuthResponseSchema
)
from .onboarding import (
    BasicsSchema, WorkerProfileForm, CustomerProfileForm, BusinessProfileForm,
    RoleProfileForm, PortalWorkerForm, SelectRoleSchema, StepSchema, BasicsPrefillSchema
)
from .portal import PortalTabSchema, PortalViewSchema
from .waitlist import WaitlistSubmissionSchema

__all__ = [
    "Role",
    "Stage",
    "SignUpState",
    "SignUpSchema",
    "SignInSchema",
    "OneTapSchema",
    "ResendVerificationSchema",
    "AuthResponseSchema",
    "BasicsSchema",
    "WorkerProfileForm",
    "CustomerProfileForm",
    "BusinessProfileForm",
    "RoleProfileForm",
    "PortalWorkerForm",
    "SelectRoleSchema",
    "StepSchema",
    "BasicsPrefillSchema",
    "PortalTabSchema",
    "PortalViewSchema",
    "WaitlistSubmissionSchema",
]
