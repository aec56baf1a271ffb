"""Teams activity handler."""

from botbuilder.core import (
    ConversationState,
    MessageFactory,
    TurnContext,
    UserState,
)
from botbuilder.core.teams import TeamsActivityHandler
from botbuilder.dialogs import Dialog, DialogExtensions
from botbuilder.schema import ChannelAccount

from ..logging_config import get_logger
from ..notifications.handlers import PendingCardConversationResumeHandler
from .conversation_cache import BotConversationCache
from .dialogs import CommonBotDialogue, create_convo_state_accessor, get_convo_state
from .user_utils import parse_bot_user_info

logger = get_logger(__name__)

ANONYMOUS_USER_MESSAGE = (
    "Hi, anonymous user. I only work with Azure AD users in Teams normally."
)


class DialogueBot(TeamsActivityHandler):
    """Runs a dialog on every message and persists bot state after each turn."""

    def __init__(
        self,
        conversation_state: ConversationState,
        user_state: UserState,
        dialog: Dialog,
    ):
        self.conversation_state = conversation_state
        self.user_state = user_state
        self.dialog = dialog
        self._dialog_state = conversation_state.create_property("DialogState")

    async def on_turn(self, turn_context: TurnContext):
        await super().on_turn(turn_context)

        await self.conversation_state.save_changes(turn_context)
        await self.user_state.save_changes(turn_context)

    async def on_message_activity(self, turn_context: TurnContext):
        logger.info(f"Running dialog with message activity from {turn_context.activity.from_property.id}")
        await DialogExtensions.run_dialog(self.dialog, turn_context, self._dialog_state)

    async def on_teams_signin_verify_state(self, turn_context: TurnContext):
        await DialogExtensions.run_dialog(self.dialog, turn_context, self._dialog_state)


class TeamsBot(DialogueBot):
    """Introduces itself to new users and hands them any pending nudge."""

    def __init__(
        self,
        conversation_state: ConversationState,
        user_state: UserState,
        dialog: CommonBotDialogue,
        conversation_cache: BotConversationCache,
        pending_card_handler: PendingCardConversationResumeHandler,
    ):
        super().__init__(conversation_state, user_state, dialog)
        self._cache = conversation_cache
        self._pending_card_handler = pending_card_handler
        self._convo_state = create_convo_state_accessor(user_state)

    async def on_members_added_activity(
        self, members_added: list[ChannelAccount], turn_context: TurnContext
    ):
        for member in members_added:
            # Skip the bot being added
            if member.id == turn_context.activity.recipient.id:
                continue

            bot_user = parse_bot_user_info(member)
            if not bot_user.is_azure_ad_user_id:
                await turn_context.send_activity(ANONYMOUS_USER_MESSAGE)
                continue

            await self._cache.populate_mem_cache_if_empty()

            cached = self._cache.get_cached_user(bot_user.user_id)
            if not cached:
                cached = await self._cache.add_conversation_reference_to_cache(
                    turn_context.activity, bot_user
                )
                if not cached.user_principal_name:
                    logger.error(
                        f"Failed to add new user {bot_user.user_id} to cache: no UPN resolved"
                    )
                    continue

                await self.dialog.send_bot_first_intro(turn_context)

            if not cached.user_principal_name:
                continue

            card, attachment = await self._pending_card_handler.load_data_and_resume_conversation(
                cached.user_principal_name
            )
            if card:
                state = await get_convo_state(self._convo_state, turn_context)
                state.last_nudge_context = card.template_name
                await self._convo_state.set(turn_context, state)
                await turn_context.send_activity(MessageFactory.attachment(attachment))
