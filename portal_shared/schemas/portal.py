"""
Portal schemas for Trade Portal
"""

from typing import Optional, List
from pydantic import BaseModel, Field

from portal_shared.schemas.roles import Role, Stage
from portal_shared.schemas.onboarding import PortalWorkerForm


class PortalTabSchema(BaseModel):
    key: str
    label: str


class PortalViewSchema(BaseModel):
    """Everything the portal shell renders for one role"""
    role: Role
    stage: Optional[Stage] = None
    tabs: List[PortalTabSchema]
    active_tab: str
    query: str = ""
    listings: List[str] = Field(default_factory=list)
    worker_form: PortalWorkerForm = Field(default_factory=PortalWorkerForm)
