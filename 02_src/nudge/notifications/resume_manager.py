"""Proactive messaging: reach a user by UPN, installing the app if needed."""

from dataclasses import dataclass
from enum import Enum

from botbuilder.core import BotAdapter, MessageFactory, TurnContext
from botbuilder.schema import ChannelAccount, ConversationAccount, ConversationReference

from ..bot.conversation_cache import BotConversationCache
from ..config import BotConfig
from ..graph import GraphClient
from ..logging_config import get_logger
from ..models import CachedUserAndConversationData
from .handlers import IConversationResumeHandler

logger = get_logger(__name__)

TEAMS_CHANNEL_ID = "msteams"
TEAMS_BOT_ID_PREFIX = "28:"


class ConversationResumeStatus(str, Enum):
    MESSAGE_SENT = "MessageSent"
    APP_INSTALLED_PENDING = "AppInstalledPending"
    FAILED = "Failed"


@dataclass
class ConversationResumeResult:
    status: ConversationResumeStatus
    error_message: str | None = None


class BotConvoResumeManager:
    """
    Sends a card to a user outside of a turn.

    A user the bot has talked to before is messaged straight away. Otherwise
    the Teams app is installed for them and the member-added turn that follows
    delivers the card. If the app turns out to be installed already, the 1:1
    chat is looked up through Graph and messaged directly.
    """

    def __init__(
        self,
        adapter: BotAdapter,
        conversation_cache: BotConversationCache,
        graph: GraphClient | None,
        config: BotConfig,
        default_handler: IConversationResumeHandler,
    ):
        self._adapter = adapter
        self._cache = conversation_cache
        self._graph = graph
        self._config = config
        self._default_handler = default_handler

    async def resume_conversation(
        self, upn: str, handler: IConversationResumeHandler | None = None
    ) -> ConversationResumeResult:
        handler = handler or self._default_handler
        try:
            if not self._graph:
                raise RuntimeError("Graph is not configured")

            user = await self._graph.get_user(upn, select=["id", "userPrincipalName"])
            if not user:
                logger.warning(f"User {upn} not found in Graph")
                return ConversationResumeResult(
                    ConversationResumeStatus.FAILED, f"User {upn} not found"
                )

            user_id = user["id"]
            await self._cache.populate_mem_cache_if_empty()
            cached = self._cache.get_cached_user(user_id)
            if cached:
                await self._send_card(cached, upn, handler)
                return ConversationResumeResult(ConversationResumeStatus.MESSAGE_SENT)

            return await self._install_app(user_id, upn, handler)

        except Exception as e:
            logger.error(f"Failed to resume conversation with {upn}: {e}", exc_info=True)
            return ConversationResumeResult(ConversationResumeStatus.FAILED, str(e))

    async def _install_app(
        self, user_id: str, upn: str, handler: IConversationResumeHandler
    ) -> ConversationResumeResult:
        teams_app_id = self._config.app_catalog_team_app_id
        if not teams_app_id:
            raise RuntimeError("App catalog Teams app id is not configured")

        if await self._graph.install_app_for_user(user_id, teams_app_id):
            logger.info(f"Installed app for {upn}; card follows on conversation update")
            return ConversationResumeResult(ConversationResumeStatus.APP_INSTALLED_PENDING)

        chat_id = await self._graph.get_installed_app_chat_id(user_id, teams_app_id)
        if not chat_id:
            logger.warning(f"App already installed for {upn} but no chat found")
            return ConversationResumeResult(ConversationResumeStatus.APP_INSTALLED_PENDING)

        cached = CachedUserAndConversationData(
            user_id=user_id,
            service_url=self._config.teams_service_url,
            conversation_id=chat_id,
            user_principal_name=upn,
        )
        await self._cache.save(cached)
        await self._send_card(cached, upn, handler)
        return ConversationResumeResult(ConversationResumeStatus.MESSAGE_SENT)

    async def _send_card(
        self,
        cached: CachedUserAndConversationData,
        upn: str,
        handler: IConversationResumeHandler,
    ) -> None:
        reference = ConversationReference(
            channel_id=TEAMS_CHANNEL_ID,
            service_url=cached.service_url,
            conversation=ConversationAccount(id=cached.conversation_id),
            bot=ChannelAccount(id=f"{TEAMS_BOT_ID_PREFIX}{self._config.bot_app_id}"),
            user=ChannelAccount(id=cached.user_id),
        )

        async def send(turn_context: TurnContext) -> None:
            _, attachment = await handler.load_data_and_resume_conversation(upn)
            await turn_context.send_activity(MessageFactory.attachment(attachment))

        await self._adapter.continue_conversation(
            reference, send, self._config.bot_app_id
        )
        logger.info(f"Sent proactive card to {upn}")
