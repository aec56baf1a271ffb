"""Users the bot can message proactively, with their conversation details."""

from botbuilder.core import TurnContext
from botbuilder.schema import Activity

from ..graph import GraphClient
from ..logging_config import get_logger
from ..models import BotUser, CachedUserAndConversationData
from ..storage import IStorage

logger = get_logger(__name__)


class BotConversationCache:
    """In-memory view over the conversation_cache table, loaded lazily."""

    def __init__(
        self,
        storage: IStorage,
        graph: GraphClient | None = None,
        test_upn: str | None = None,
    ):
        self._storage = storage
        self._graph = graph
        self._test_upn = test_upn
        self._users: dict[str, CachedUserAndConversationData] = {}

    async def populate_mem_cache_if_empty(self) -> None:
        if self._users:
            return
        for user in await self._storage.get_all_cached_users():
            self._users[user.user_id] = user
        logger.info(f"Loaded {len(self._users)} cached conversations")

    def contains_user_id(self, user_id: str) -> bool:
        return user_id in self._users

    def get_cached_user(self, user_id: str) -> CachedUserAndConversationData | None:
        return self._users.get(user_id)

    def get_cached_users(self) -> list[CachedUserAndConversationData]:
        return list(self._users.values())

    async def add_conversation_reference_to_cache(
        self, activity: Activity, bot_user: BotUser
    ) -> CachedUserAndConversationData:
        """Remember where to reach this user, resolving their UPN."""
        reference = TurnContext.get_conversation_reference(activity)

        upn = None
        if bot_user.is_azure_ad_user_id and self._graph:
            user = await self._graph.get_user(
                bot_user.user_id, select=["id", "userPrincipalName"]
            )
            upn = user.get("userPrincipalName") if user else None
        elif not bot_user.is_azure_ad_user_id:
            # Emulator and other non-AAD channels
            upn = self._test_upn

        data = CachedUserAndConversationData(
            user_id=bot_user.user_id,
            service_url=reference.service_url,
            conversation_id=reference.conversation.id,
            user_principal_name=upn,
        )
        await self.save(data)
        return data

    async def save(self, data: CachedUserAndConversationData) -> None:
        await self._storage.save_cached_user(data)
        self._users[data.user_id] = data
        logger.info(
            f"Cached conversation for user {data.user_id} ({data.user_principal_name})"
        )

    async def remove_from_cache(self, user_id: str) -> None:
        self._users.pop(user_id, None)
        await self._storage.delete_cached_user(user_id)

    def clear_mem_cache(self) -> None:
        """Drop the in-memory view; the next lookup reloads from storage."""
        self._users.clear()
