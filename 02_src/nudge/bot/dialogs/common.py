"""Shared base for the bot's component dialogs."""

from botbuilder.core import MessageFactory, TurnContext
from botbuilder.dialogs import ComponentDialog

from ...config import BotConfig
from ...logging_config import get_logger
from ...models import BotUser, CachedUserAndConversationData
from ..cards import BotFirstIntroduction
from ..conversation_cache import BotConversationCache
from ..user_utils import parse_bot_user_info

logger = get_logger(__name__)


class CommonBotDialogue(ComponentDialog):
    """Gives dialogs access to the conversation cache and the intro card."""

    def __init__(
        self,
        dialog_id: str,
        conversation_cache: BotConversationCache,
        config: BotConfig,
    ):
        super().__init__(dialog_id)
        self.conversation_cache = conversation_cache
        self.config = config

    @staticmethod
    def get_bot_user(turn_context: TurnContext) -> BotUser:
        return parse_bot_user_info(turn_context.activity.from_property)

    def get_cached_user(self, turn_context: TurnContext) -> CachedUserAndConversationData | None:
        return self.conversation_cache.get_cached_user(
            self.get_bot_user(turn_context).user_id
        )

    async def send_bot_first_intro(self, turn_context: TurnContext) -> None:
        card = BotFirstIntroduction(self.config.bot_name)
        await turn_context.send_activity(
            MessageFactory.attachment(card.get_card_attachment())
        )
        logger.info(
            f"Sent first introduction to {turn_context.activity.from_property.id}"
        )
