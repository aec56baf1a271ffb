"""Smart groups: recipient lists described in plain language and resolved by AI."""

import uuid
from datetime import datetime, timedelta, timezone

from ..errors import AINotConfiguredError, NotFoundError, ValidationError
from ..llm import AIService
from ..logging_config import get_logger
from ..models import (
    EnrichedUserInfo,
    SmartGroup,
    SmartGroupMember,
    SmartGroupResolutionResult,
)
from ..storage import IStorage
from ..users import GraphUserService

logger = get_logger(__name__)

RESOLUTION_CACHE_TTL = timedelta(hours=1)
MAX_USERS_FOR_RESOLUTION = 500


class SmartGroupService:
    def __init__(
        self,
        storage: IStorage,
        user_service: GraphUserService,
        ai_service: AIService | None = None,
    ):
        self._storage = storage
        self._users = user_service
        self._ai = ai_service

    def _require_ai(self) -> AIService:
        if not self._ai:
            raise AINotConfiguredError(
                "AI is not configured. Smart groups require an AI provider (set ANTHROPIC_API_KEY)."
            )
        return self._ai

    async def create_group(
        self, name: str, description: str, created_by_upn: str
    ) -> SmartGroup:
        if not name or not name.strip():
            raise ValidationError("Group name is required")
        if not description or not description.strip():
            raise ValidationError("Group description is required")

        group = SmartGroup(
            id=str(uuid.uuid4()),
            name=name.strip(),
            description=description.strip(),
            created_by_upn=created_by_upn,
            created_date=datetime.now(timezone.utc),
        )
        await self._storage.save_smart_group(group)
        logger.info(f"Created smart group '{group.name}' ({group.id})")
        return group

    async def get_group(self, group_id: str) -> SmartGroup | None:
        return await self._storage.get_smart_group(group_id)

    async def get_all_groups(self) -> list[SmartGroup]:
        return await self._storage.get_all_smart_groups()

    async def update_group(self, group_id: str, name: str, description: str) -> SmartGroup:
        if not name or not name.strip():
            raise ValidationError("Group name is required")
        if not description or not description.strip():
            raise ValidationError("Group description is required")

        group = await self._get_existing(group_id)
        description_changed = group.description != description.strip()
        group.name = name.strip()
        group.description = description.strip()
        if description_changed:
            # Cached members no longer reflect the description
            group.last_resolved_date = None
            group.last_resolved_member_count = None
            await self._storage.replace_smart_group_members(group.id, [])
        await self._storage.save_smart_group(group)
        return group

    async def delete_group(self, group_id: str) -> None:
        if not await self._storage.delete_smart_group(group_id):
            raise NotFoundError(f"Smart group {group_id} not found")
        logger.info(f"Deleted smart group {group_id}")

    async def resolve_group_members(
        self, group_id: str, force_refresh: bool = False
    ) -> SmartGroupResolutionResult:
        """Members of the group, from cache when resolved within the last hour."""
        group = await self._get_existing(group_id)

        if not force_refresh and group.last_resolved_date:
            age = datetime.now(timezone.utc) - group.last_resolved_date
            cached = await self._storage.get_smart_group_members(group_id)
            if age < RESOLUTION_CACHE_TTL and cached:
                logger.info(f"Using cached members for smart group {group_id}")
                return SmartGroupResolutionResult(
                    group_id=group_id,
                    members=cached,
                    resolved_at=group.last_resolved_date,
                    from_cache=True,
                )

        ai = self._require_ai()
        users = await self._users.get_all_users_with_metadata(MAX_USERS_FOR_RESOLUTION)
        members = await self._match(ai, group_id, group.description, users)

        now = datetime.now(timezone.utc)
        await self._storage.replace_smart_group_members(group_id, members)
        group.last_resolved_date = now
        group.last_resolved_member_count = len(members)
        await self._storage.save_smart_group(group)

        logger.info(f"Resolved smart group {group_id}: {len(members)} members")
        return SmartGroupResolutionResult(
            group_id=group_id, members=members, resolved_at=now, from_cache=False
        )

    async def preview_group_members(
        self, description: str, max_users: int = MAX_USERS_FOR_RESOLUTION
    ) -> list[SmartGroupMember]:
        """Resolve a description without saving a group or caching members."""
        if not description or not description.strip():
            raise ValidationError("Group description is required")
        ai = self._require_ai()
        users = await self._users.get_all_users_with_metadata(max_users)
        return await self._match(ai, "", description, users)

    async def get_group_member_upns(self, group_id: str) -> list[str]:
        result = await self.resolve_group_members(group_id)
        return [m.user_principal_name for m in result.members]

    async def _get_existing(self, group_id: str) -> SmartGroup:
        group = await self._storage.get_smart_group(group_id)
        if not group:
            raise NotFoundError(f"Smart group {group_id} not found")
        return group

    @staticmethod
    async def _match(
        ai: AIService,
        group_id: str,
        description: str,
        users: list[EnrichedUserInfo],
    ) -> list[SmartGroupMember]:
        matches = await ai.resolve_smart_group_members(description, users)
        by_upn = {u.user_principal_name.lower(): u for u in users}
        now = datetime.now(timezone.utc)

        members = []
        for match in matches:
            user = by_upn[match.user_principal_name.lower()]
            members.append(
                SmartGroupMember(
                    group_id=group_id,
                    user_principal_name=user.user_principal_name,
                    display_name=user.display_name,
                    department=user.department,
                    job_title=user.job_title,
                    confidence_score=match.confidence_score,
                    reason=match.reason,
                    cached_date=now,
                )
            )
        return members
