"""
Waitlist Routes
"""

from typing import Optional
from fastapi import APIRouter, Header, HTTPException, status
import logging

from portal_shared.schemas.waitlist import WaitlistSubmissionSchema
from portal_service.services.waitlist_service import WaitlistService
from portal_service.utils.dependencies import StoreDep

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    data: WaitlistSubmissionSchema,
    store: StoreDep,
    user_agent: Optional[str] = Header(None)
):
    """
    Join the launch waitlist

    One submission per email and role; repeats are rejected with 409
    """
    result = await WaitlistService.join(store, data, user_agent)

    if not result['success']:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT if result['duplicate'] else status.HTTP_502_BAD_GATEWAY,
            detail=result['message']
        )

    return {"success": True, "message": result['message']}
