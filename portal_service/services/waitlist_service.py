"""
Waitlist Service
Landing-page waitlist capture
"""

from typing import Dict, Optional
import logging

from portal_shared.schemas.waitlist import WaitlistSubmissionSchema
from portal_service.models.records import WaitlistSubmission
from portal_service.utils.profile_store import ProfileStore, StoreError

logger = logging.getLogger(__name__)

JOINED_MESSAGE = "Thanks! You're on the waitlist."
DUPLICATE_MESSAGE = "You have already joined the waitlist with this email and role."
FAILED_MESSAGE = "Failed to submit. Please try again."


class WaitlistService:
    """Waitlist business logic"""

    @staticmethod
    async def join(
        store: ProfileStore,
        data: WaitlistSubmissionSchema,
        user_agent: Optional[str] = None
    ) -> Dict:
        """
        Record a waitlist submission

        Args:
            store: Profile store
            data: Validated form
            user_agent: Submitting browser's User-Agent

        Returns:
            dict: success flag, message, and duplicate=True when this email
            already joined for this role
        """
        submission = WaitlistSubmission(
            name=data.name,
            email=data.email,
            phone=data.phone,
            role=data.role,
            notes=data.notes,
            user_agent=user_agent
        )

        try:
            await store.insert_waitlist(submission)
        except StoreError as e:
            if e.is_unique_violation:
                logger.info(f"Duplicate waitlist submission for {data.email}")
                return {'success': False, 'duplicate': True, 'message': DUPLICATE_MESSAGE}
            logger.error(f"Waitlist submission failed for {data.email}: {e.message}")
            return {'success': False, 'duplicate': False, 'message': FAILED_MESSAGE}

        logger.info(f"Waitlist submission recorded for {data.email}")
        return {'success': True, 'duplicate': False, 'message': JOINED_MESSAGE}
