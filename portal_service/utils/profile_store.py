"""
Profile Store
Supabase table access for profiles, role stages and waitlist submissions
"""

import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar, Union
import logging

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError

from portal_shared.schemas.roles import Role, Stage
from portal_service.models.records import (
    RoleStageRecord, GenericProfile, WorkerProfile, CustomerProfile, BusinessProfile,
    WaitlistSubmission, RecordValidationError, ROLE_PROFILE_TABLES, parse_role_profile
)
from portal_service.utils.supabase_client import SupabaseConnection, GatewayError, supabase_connection

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNIQUE_VIOLATION = "23505"

RoleProfileRecord = Union[WorkerProfile, CustomerProfile, BusinessProfile]


class StoreError(Exception):
    """A profile store request failed"""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message)

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION


class ProfileStore:
    """Profile store operations; every write is keyed on user_id (and role)"""

    USER_ROLES = "user_roles"
    PROFILES = "profiles"
    WAITLIST = "waitlist_submissions"

    def __init__(self, connection: SupabaseConnection):
        self.connection = connection

    # Table primitives

    async def _run(self, table: str, action: str, func: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(func)
        except APIError as e:
            logger.error(f"Profile store {action} on {table} failed: {e.message} ({e.code})")
            raise StoreError(e.message or f"{action} failed", code=e.code) from e
        except httpx.HTTPError as e:
            logger.error(f"Profile store {action} on {table} unreachable: {e}")
            raise StoreError(str(e) or f"{action} failed") from e
        except GatewayError as e:
            raise StoreError(e.message) from e

    async def _select(self, table: str, filters: Dict[str, Any], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        def call():
            query = self.connection.require_service_client().table(table).select("*")
            for column, value in filters.items():
                query = query.eq(column, value)
            if limit is not None:
                query = query.limit(limit)
            return query.execute()

        response = await self._run(table, "select", call)
        return list(response.data or [])

    async def _upsert(self, table: str, row: Dict[str, Any], on_conflict: str) -> None:
        def call():
            return self.connection.require_service_client().table(table).upsert(
                row, on_conflict=on_conflict
            ).execute()

        await self._run(table, "upsert", call)

    async def _insert(self, table: str, row: Dict[str, Any]) -> None:
        def call():
            return self.connection.require_service_client().table(table).insert(row).execute()

        await self._run(table, "insert", call)

    @staticmethod
    def _validate_stage_row(row: Dict[str, Any]) -> RoleStageRecord:
        try:
            return RoleStageRecord.model_validate(row)
        except ValidationError as e:
            raise RecordValidationError(ProfileStore.USER_ROLES, str(e)) from e

    # Role stages

    async def get_role_stage(self, user_id: str, role: Role) -> Optional[RoleStageRecord]:
        """
        Get the stage record of one role

        Args:
            user_id: User ID
            role: Role to look up

        Returns:
            RoleStageRecord or None if the role was never selected
        """
        rows = await self._select(self.USER_ROLES, {"user_id": user_id, "role": role.value}, limit=1)
        return self._validate_stage_row(rows[0]) if rows else None

    async def list_role_stages(self, user_id: str, stage: Optional[Stage] = None) -> List[RoleStageRecord]:
        """List a user's role stage records, optionally only those at one stage"""
        filters = {"user_id": user_id}
        if stage is not None:
            filters["stage"] = stage.value
        rows = await self._select(self.USER_ROLES, filters)
        return [self._validate_stage_row(row) for row in rows]

    async def upsert_role_stage(self, record: RoleStageRecord) -> RoleStageRecord:
        """Write a stage record unconditionally; the last write wins"""
        await self._upsert(self.USER_ROLES, record.to_row(), on_conflict="user_id,role")
        return record

    async def advance_role_stage(self, user_id: str, role: Role, stage: Stage) -> RoleStageRecord:
        """
        Move a role forward to the given stage, never backward

        Args:
            user_id: User ID
            role: Role being onboarded
            stage: Stage just reached

        Returns:
            RoleStageRecord: The record as written
        """
        existing = await self.get_role_stage(user_id, role)
        target = Stage.furthest(existing.stage, stage) if existing else stage
        if existing and target != stage:
            logger.info(f"Keeping {role.value} at {target.value} for {user_id}; ignoring {stage.value}")
        record = RoleStageRecord(user_id=user_id, role=role, stage=target)
        return await self.upsert_role_stage(record)

    # Profiles

    async def get_profile(self, user_id: str) -> Optional[GenericProfile]:
        rows = await self._select(self.PROFILES, {"user_id": user_id}, limit=1)
        if not rows:
            return None
        try:
            return GenericProfile.model_validate(rows[0])
        except ValidationError as e:
            raise RecordValidationError(self.PROFILES, str(e)) from e

    async def upsert_profile(self, profile: GenericProfile) -> GenericProfile:
        await self._upsert(self.PROFILES, profile.to_row(), on_conflict="user_id")
        return profile

    async def get_role_profile(self, user_id: str, role: Role) -> Optional[RoleProfileRecord]:
        """Get the role-specific profile as its tagged variant"""
        rows = await self._select(ROLE_PROFILE_TABLES[role], {"user_id": user_id}, limit=1)
        return parse_role_profile(role, rows[0]) if rows else None

    async def upsert_role_profile(
        self,
        profile: RoleProfileRecord,
        columns: Optional[Iterable[str]] = None
    ) -> RoleProfileRecord:
        """
        Upsert a role-specific profile

        Args:
            profile: Profile variant; its role picks the table
            columns: Only write these columns (user_id and updated_at are
                always written), leaving the others as stored
        """
        table = ROLE_PROFILE_TABLES[Role(profile.role)]
        row = profile.to_row()
        if columns is not None:
            keep = set(columns) | {"user_id", "updated_at"}
            row = {key: value for key, value in row.items() if key in keep}
        await self._upsert(table, row, on_conflict="user_id")
        return profile

    # Waitlist

    async def insert_waitlist(self, submission: WaitlistSubmission) -> None:
        """
        Insert a waitlist submission

        Raises:
            StoreError: is_unique_violation is set when the email and role
            already joined
        """
        await self._insert(self.WAITLIST, submission.to_row())


profile_store = ProfileStore(supabase_connection)
