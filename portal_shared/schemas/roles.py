"""
Role and stage enumerations

A user may hold several roles at once; each role moves through the
onboarding stages independently.
"""

from enum import Enum


class Role(str, Enum):
    """Portal role enumeration"""
    CUSTOMER = "customer"
    WORKER = "worker"
    BUSINESS = "business"


class Stage(str, Enum):
    """Onboarding stage for one role, in progression order"""
    ENABLED = "enabled"
    BASICS_DONE = "basics_done"
    PROFILE_DONE = "profile_done"

    @property
    def rank(self) -> int:
        """Position in the onboarding progression"""
        return list(Stage).index(self)

    @property
    def is_complete(self) -> bool:
        return self is Stage.PROFILE_DONE

    @classmethod
    def furthest(cls, first: "Stage", second: "Stage") -> "Stage":
        """Return whichever stage is further along"""
        return first if first.rank >= second.rank else second
