"""
Navigation Targets
Where a user should land after an auth or onboarding action
"""

from typing import Optional
from enum import Enum
from urllib.parse import quote, urlsplit, parse_qs
from pydantic import BaseModel

from portal_shared.schemas.roles import Role

HOME_PATH = "/"
PORTAL_PATH = "/portal"
ONBOARDING_PATH = "/onboarding"
SETUP_PROFILE_PATH = "/setup-profile"
SELECT_ROLE_PATH = "/select-role"
SIGN_UP_PATH = "/auth/sign-up"
SIGN_IN_PATH = "/auth/sign-in"


class DestinationKind(str, Enum):
    PORTAL = "portal"
    ONBOARDING = "onboarding"
    SETUP_PROFILE = "setup_profile"
    SIGN_UP = "sign_up"
    SIGN_IN = "sign_in"
    UNRESOLVED = "unresolved"


_ROLE_PATHS = {
    DestinationKind.PORTAL: PORTAL_PATH,
    DestinationKind.ONBOARDING: ONBOARDING_PATH,
    DestinationKind.SETUP_PROFILE: SETUP_PROFILE_PATH,
}


def safe_next_path(next_path: Optional[str], default: str) -> str:
    """
    Keep a caller-supplied next path only when it stays on this site

    Args:
        next_path: Requested path, typically from a ?next= query parameter
        default: Path used when next_path is missing or points off-site

    Returns:
        str: A relative path starting with a single '/'
    """
    if not next_path:
        return default
    if not next_path.startswith("/") or next_path.startswith("//") or "\\" in next_path:
        return default
    return next_path


def role_from_next(next_path: Optional[str]) -> Optional[Role]:
    """Extract a valid ?role= value embedded in a next path"""
    if not next_path:
        return None
    values = parse_qs(urlsplit(next_path).query).get("role")
    if not values:
        return None
    try:
        return Role(values[0])
    except ValueError:
        return None


class Destination(BaseModel):
    """A resolved navigation target"""
    kind: DestinationKind
    role: Optional[Role] = None
    next: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def portal(cls, role: Role) -> "Destination":
        return cls(kind=DestinationKind.PORTAL, role=role)

    @classmethod
    def onboarding(cls, role: Role) -> "Destination":
        return cls(kind=DestinationKind.ONBOARDING, role=role)

    @classmethod
    def setup_profile(cls, role: Role) -> "Destination":
        return cls(kind=DestinationKind.SETUP_PROFILE, role=role)

    @classmethod
    def sign_up(cls, next_path: str) -> "Destination":
        return cls(kind=DestinationKind.SIGN_UP, next=next_path)

    @classmethod
    def sign_in(cls, next_path: str) -> "Destination":
        return cls(kind=DestinationKind.SIGN_IN, next=next_path)

    @classmethod
    def unresolved(cls, next_path: str) -> "Destination":
        return cls(kind=DestinationKind.UNRESOLVED, next=next_path)

    @property
    def path(self) -> str:
        """Relative URL the browser should be sent to"""
        if self.kind in _ROLE_PATHS:
            return f"{_ROLE_PATHS[self.kind]}?role={self.role.value}"
        if self.kind == DestinationKind.SIGN_UP:
            return f"{SIGN_UP_PATH}?next={quote(self.next or ONBOARDING_PATH, safe='/')}"
        if self.kind == DestinationKind.SIGN_IN:
            return f"{SIGN_IN_PATH}?next={quote(self.next or PORTAL_PATH, safe='/')}"
        return self.next or HOME_PATH
