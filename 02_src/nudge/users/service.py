"""Directory user lookups for targeting and smart groups."""

from ..graph import GraphClient
from ..logging_config import get_logger
from ..models import EnrichedUserInfo
from .cache import UserCacheManager
from .mapping import map_to_enriched_user

logger = get_logger(__name__)


class GraphUserService:
    """Cache-first access to users, with Graph as the fallback."""

    def __init__(self, cache: UserCacheManager, graph: GraphClient | None):
        self._cache = cache
        self._graph = graph

    async def get_all_users_with_metadata(
        self, max_users: int | None = None, force_refresh: bool = False
    ) -> list[EnrichedUserInfo]:
        users = await self._cache.get_all_cached_users(force_refresh)
        return users[:max_users] if max_users else users

    async def get_users_by_department(self, department: str) -> list[EnrichedUserInfo]:
        users = await self._cache.get_all_cached_users()
        wanted = department.strip().lower()
        return [u for u in users if (u.department or "").strip().lower() == wanted]

    async def get_user_with_metadata(self, upn: str) -> EnrichedUserInfo | None:
        cached = await self._cache.get_cached_user(upn)
        if cached:
            return cached
        if not self._graph:
            return None

        logger.info(f"User {upn} not in cache, loading from Graph")
        user = await self._graph.get_user(upn)
        if not user:
            return None
        manager = await self._graph.get_user_manager(user["id"])
        return map_to_enriched_user(user, manager)

