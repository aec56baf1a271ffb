"""Local cache of directory users, kept current with Graph delta queries."""

from dataclasses import fields
from datetime import datetime, timezone

from ..config import UserCacheConfig
from ..graph import GraphClient
from ..logging_config import get_logger
from ..models import (
    COPILOT_ACTIVITY_FIELDS,
    CopilotUsageRecord,
    EnrichedUserInfo,
    SyncMetadata,
    SyncStatus,
)
from ..storage import IStorage
from .copilot_stats import GraphCopilotStatsLoader
from .mapping import is_active_member, is_deactivated, map_to_enriched_user, merge_graph_changes

logger = get_logger(__name__)

# CopilotUsageRecord field -> EnrichedUserInfo field
_USAGE_TO_USER = dict(
    zip(
        [f.name for f in fields(CopilotUsageRecord) if f.name != "user_principal_name"],
        COPILOT_ACTIVITY_FIELDS,
    )
)


class UserCacheManager:
    """
    Keeps directory_users in step with the tenant.

    A full sync (initial delta round) runs when there has never been one, when
    the last one is older than full_sync_interval, or when no delta link is
    stored. Otherwise only delta changes are applied.
    """

    def __init__(
        self,
        storage: IStorage,
        graph: GraphClient | None,
        config: UserCacheConfig,
        copilot_loader: GraphCopilotStatsLoader | None = None,
    ):
        self._storage = storage
        self._graph = graph
        self._config = config
        self._copilot_loader = copilot_loader

    def _require_graph(self) -> GraphClient:
        if not self._graph:
            raise RuntimeError("Graph is not configured")
        return self._graph

    async def get_all_cached_users(self, force_refresh: bool = False) -> list[EnrichedUserInfo]:
        if await self.is_sync_needed(force_refresh):
            await self.sync_users()
        return await self._storage.get_directory_users()

    async def get_cached_user(self, upn: str) -> EnrichedUserInfo | None:
        return await self._storage.get_directory_user(upn)

    async def get_sync_metadata(self) -> SyncMetadata:
        return await self._storage.get_sync_metadata() or SyncMetadata()

    async def is_sync_needed(self, force: bool = False) -> bool:
        if force:
            return True
        metadata = await self.get_sync_metadata()
        if not metadata.last_sync_date:
            return True
        return datetime.now(timezone.utc) - metadata.last_sync_date > self._config.cache_expiration

    def _needs_full_sync(self, metadata: SyncMetadata) -> bool:
        if not metadata.last_full_sync_date or not metadata.delta_link:
            return True
        age = datetime.now(timezone.utc) - metadata.last_full_sync_date
        return age > self._config.full_sync_interval

    async def sync_users(self, force_full_sync: bool = False) -> SyncMetadata:
        graph = self._require_graph()
        metadata = await self.get_sync_metadata()
        full = force_full_sync or self._needs_full_sync(metadata)

        metadata.last_sync_status = SyncStatus.IN_PROGRESS.value
        metadata.last_sync_error = None
        await self._storage.save_sync_metadata(metadata)

        try:
            if full:
                count = await self._full_sync(graph, metadata)
            else:
                count = await self._delta_sync(graph, metadata)
        except Exception as e:
            logger.error(f"User sync failed: {e}", exc_info=True)
            metadata.last_sync_status = SyncStatus.FAILED.value
            metadata.last_sync_error = str(e)
            await self._storage.save_sync_metadata(metadata)
            raise

        metadata.last_sync_status = SyncStatus.SUCCESS.value
        metadata.last_sync_user_count = count
        await self._storage.save_sync_metadata(metadata)
        return metadata

    async def _full_sync(self, graph: GraphClient, metadata: SyncMetadata) -> int:
        logger.info("Starting full user sync")
        changes, delta_link = await graph.get_users_delta()

        # Copilot stats are refreshed on their own schedule; keep them
        previous = {u.id: u for u in await self._storage.get_directory_users()}
        users = []
        for change in changes:
            if not is_active_member(change):
                continue
            user = map_to_enriched_user(change)
            old = previous.get(user.id)
            if old:
                for name in COPILOT_ACTIVITY_FIELDS:
                    setattr(user, name, getattr(old, name))
            users.append(user)

        await self._storage.replace_directory_users(users)
        now = datetime.now(timezone.utc)
        metadata.delta_link = delta_link
        metadata.last_full_sync_date = now
        metadata.last_delta_sync_date = now
        logger.info(f"Full user sync complete: {len(users)} users")
        return len(users)

    async def _delta_sync(self, graph: GraphClient, metadata: SyncMetadata) -> int:
        logger.info("Starting delta user sync")
        changes, delta_link = await graph.get_users_delta(delta_link=metadata.delta_link)

        existing = {u.id: u for u in await self._storage.get_directory_users()}
        updated = []
        removed = 0
        for change in changes:
            if is_deactivated(change):
                await self._storage.mark_directory_user_deleted(change["id"])
                removed += 1
                continue

            user = existing.get(change["id"])
            if user:
                merge_graph_changes(user, change)
            else:
                user = map_to_enriched_user(change)
            if user.user_principal_name:
                updated.append(user)

        if updated:
            await self._storage.upsert_directory_users(updated)

        metadata.delta_link = delta_link or metadata.delta_link
        metadata.last_delta_sync_date = datetime.now(timezone.utc)
        logger.info(f"Delta user sync complete: {len(updated)} updated, {removed} removed")
        return len(await self._storage.get_directory_users())

    async def update_copilot_stats(self, force: bool = False) -> int:
        """Apply the latest Copilot usage report to cached users. Returns users updated."""
        if not self._copilot_loader:
            raise RuntimeError("Graph is not configured")

        metadata = await self.get_sync_metadata()
        if not force and metadata.last_copilot_stats_update:
            age = datetime.now(timezone.utc) - metadata.last_copilot_stats_update
            if age < self._config.copilot_stats_refresh_interval:
                logger.info("Copilot stats are fresh, skipping update")
                return 0

        records = await self._copilot_loader.get_copilot_usage(self._config.copilot_stats_period)
        by_upn = {r.user_principal_name.lower(): r for r in records}

        updated = []
        for user in await self._storage.get_directory_users():
            record = by_upn.get(user.user_principal_name.lower())
            if not record:
                continue
            for source, target in _USAGE_TO_USER.items():
                setattr(user, target, getattr(record, source))
            updated.append(user)

        if updated:
            await self._storage.upsert_directory_users(updated)

        metadata.last_copilot_stats_update = datetime.now(timezone.utc)
        await self._storage.save_sync_metadata(metadata)
        logger.info(f"Updated Copilot stats for {len(updated)} users")
        return len(updated)

    async def clear_cache(self) -> None:
        await self._storage.clear_directory_users()
        await self._storage.save_sync_metadata(SyncMetadata())
        logger.info("User cache cleared")
