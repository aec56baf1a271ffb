"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from botbuilder.core import ConversationState, MemoryStorage, UserState

from .batching import BatchMessageProcessor, BatchQueueService
from .bot.adapter import AdapterWithErrorHandler
from .bot.conversation_cache import BotConversationCache
from .bot.dialogs import MainDialogue
from .bot.teams_bot import TeamsBot
from .config import BotConfig, load_config, resolve_db_path
from .graph import GraphClient
from .llm import AIService, ILLMProvider, LLMProvider
from .logging_config import get_logger
from .notifications import (
    BotConvoResumeManager,
    DefaultConversationResumeHandler,
    MessageSenderService,
    PendingCardConversationResumeHandler,
)
from .settings import SettingsManager
from .smart_groups import SmartGroupService
from .statistics import StatisticsService
from .storage import IStorage, Storage
from .templates import (
    DefaultTemplateInitializer,
    MessageTemplateService,
    PendingCardLookupService,
)
from .users import GraphCopilotStatsLoader, GraphUserService, UserCacheManager

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Clear stored data."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(self, config: BotConfig | None = None, db_path: str | None = None):
        self._config = config or load_config()
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)

        # Components (will be initialized in start())
        self._started = False
        self._storage: IStorage | None = None
        self._graph: GraphClient | None = None
        self._llm: ILLMProvider | None = None
        self._ai_service: AIService | None = None
        self._settings: SettingsManager | None = None
        self._conversation_cache: BotConversationCache | None = None
        self._queue: BatchQueueService | None = None
        self._template_service: MessageTemplateService | None = None
        self._pending_lookup: PendingCardLookupService | None = None
        self._pending_card_handler: PendingCardConversationResumeHandler | None = None
        self._adapter: AdapterWithErrorHandler | None = None
        self._bot: TeamsBot | None = None
        self._resume_manager: BotConvoResumeManager | None = None
        self._sender: MessageSenderService | None = None
        self._processor: BatchMessageProcessor | None = None
        self._user_cache: UserCacheManager | None = None
        self._user_service: GraphUserService | None = None
        self._smart_groups: SmartGroupService | None = None
        self._statistics: StatisticsService | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")
        config = self._config

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Graph (optional)
        if config.graph.configured:
            self._graph = GraphClient(config.graph)
            logger.info("Graph client initialized")
        else:
            logger.warning("Graph is not configured; user lookups and proactive sends are disabled")

        # 3. Settings, then AI (optional, reads the prompt from settings)
        self._settings = SettingsManager(self._storage)
        if config.is_ai_enabled:
            self._llm = LLMProvider(config.ai)
            self._ai_service = AIService(self._llm, self._settings)
            logger.info(f"AI enabled with model {config.ai.model}")
        else:
            logger.info("AI is not configured; follow-up chat and smart groups are disabled")

        # 4. Conversation cache (depends on Storage, Graph)
        self._conversation_cache = BotConversationCache(
            self._storage, self._graph, config.test_upn
        )

        # 5. Queue and templates (depend on Storage)
        self._queue = BatchQueueService(self._storage)
        self._template_service = MessageTemplateService(self._storage, self._queue)
        self._pending_lookup = PendingCardLookupService(self._storage)
        self._pending_card_handler = PendingCardConversationResumeHandler(
            self._pending_lookup, self._template_service
        )

        # 6. Bot (depends on cache, pending cards, AI)
        memory = MemoryStorage()
        conversation_state = ConversationState(memory)
        user_state = UserState(memory)
        self._adapter = AdapterWithErrorHandler(config, conversation_state)
        dialog = MainDialogue(
            self._conversation_cache, config, user_state, self._ai_service
        )
        self._bot = TeamsBot(
            conversation_state,
            user_state,
            dialog,
            self._conversation_cache,
            self._pending_card_handler,
        )
        logger.info(f"Bot '{config.bot_name}' initialized")

        # 7. Proactive sending (depends on adapter, cache, Graph, templates)
        self._resume_manager = BotConvoResumeManager(
            self._adapter,
            self._conversation_cache,
            self._graph,
            config,
            DefaultConversationResumeHandler(),
        )
        self._sender = MessageSenderService(
            self._resume_manager, self._template_service, self._pending_card_handler
        )
        self._processor = BatchMessageProcessor(
            self._queue, self._sender, poll_interval=config.batch_poll_interval
        )
        await self._processor.start()

        # 8. Default templates
        await DefaultTemplateInitializer(self._template_service).initialize()

        # 9. Users, smart groups, statistics
        copilot_loader = GraphCopilotStatsLoader(self._graph) if self._graph else None
        self._user_cache = UserCacheManager(
            self._storage, self._graph, config.user_cache, copilot_loader
        )
        self._user_service = GraphUserService(self._user_cache, self._graph)
        self._smart_groups = SmartGroupService(
            self._storage, self._user_service, self._ai_service
        )
        self._statistics = StatisticsService(self._storage, self._graph)

        self._started = True
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._processor:
            await self._processor.stop()
        if self._graph:
            await self._graph.close()
            logger.info("Graph client closed")
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")
        self._started = False

    async def reset(self) -> None:
        """Clear stored data, pausing the batch processor meanwhile."""
        if self._processor:
            await self._processor.stop()

        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

        if self._conversation_cache:
            self._conversation_cache.clear_mem_cache()

        if self._processor:
            await self._processor.start()
            logger.info("Reset complete")

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError("Application not started")

    @property
    def config(self) -> BotConfig:
        return self._config

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def graph(self) -> GraphClient | None:
        """Graph client, or None when Graph is not configured."""
        self._require_started()
        return self._graph

    @property
    def ai_service(self) -> AIService | None:
        """AI service, or None when AI is not configured."""
        self._require_started()
        return self._ai_service

    @property
    def settings_manager(self) -> SettingsManager:
        if not self._settings:
            raise RuntimeError("Application not started")
        return self._settings

    @property
    def template_service(self) -> MessageTemplateService:
        if not self._template_service:
            raise RuntimeError("Application not started")
        return self._template_service

    @property
    def queue(self) -> BatchQueueService:
        if not self._queue:
            raise RuntimeError("Application not started")
        return self._queue

    @property
    def adapter(self) -> AdapterWithErrorHandler:
        if not self._adapter:
            raise RuntimeError("Application not started")
        return self._adapter

    @property
    def bot(self) -> TeamsBot:
        if not self._bot:
            raise RuntimeError("Application not started")
        return self._bot

    @property
    def resume_manager(self) -> BotConvoResumeManager:
        if not self._resume_manager:
            raise RuntimeError("Application not started")
        return self._resume_manager

    @property
    def processor(self) -> BatchMessageProcessor:
        if not self._processor:
            raise RuntimeError("Application not started")
        return self._processor

    @property
    def user_cache(self) -> UserCacheManager:
        if not self._user_cache:
            raise RuntimeError("Application not started")
        return self._user_cache

    @property
    def user_service(self) -> GraphUserService:
        if not self._user_service:
            raise RuntimeError("Application not started")
        return self._user_service

    @property
    def smart_groups(self) -> SmartGroupService:
        if not self._smart_groups:
            raise RuntimeError("Application not started")
        return self._smart_groups

    @property
    def statistics(self) -> StatisticsService:
        if not self._statistics:
            raise RuntimeError("Application not started")
        return self._statistics
