"""Default dialog run for every message a user sends the bot."""

from botbuilder.core import MessageFactory, StatePropertyAccessor, TurnContext, UserState
from botbuilder.dialogs import DialogTurnResult, WaterfallDialog, WaterfallStepContext
from botbuilder.dialogs.prompts import TextPrompt
from botbuilder.schema import InputHints

from ...config import BotConfig
from ...llm import AIService
from ...logging_config import get_logger
from ...models import MainDialogueConvoState
from ..conversation_cache import BotConversationCache
from .common import CommonBotDialogue

logger = get_logger(__name__)

CONVO_STATE_PROPERTY = "MainDialogueConvoState"
MAX_HISTORY_ENTRIES = 20

DEFAULT_GREETING = (
    "Hi! I'm the Office Nudge bot. I deliver important messages and tips to help "
    "you stay productive. If you have questions about a message I sent, feel free to reply!"
)


def create_convo_state_accessor(user_state: UserState) -> StatePropertyAccessor:
    return user_state.create_property(CONVO_STATE_PROPERTY)


async def get_convo_state(
    accessor: StatePropertyAccessor, turn_context: TurnContext
) -> MainDialogueConvoState:
    """Per-user state, created with a fresh random token on first access."""
    return await accessor.get(turn_context, MainDialogueConvoState)


class MainDialogue(CommonBotDialogue):
    """Single-step waterfall: answer with AI when available, else greet."""

    def __init__(
        self,
        conversation_cache: BotConversationCache,
        config: BotConfig,
        user_state: UserState,
        ai_service: AIService | None = None,
    ):
        super().__init__(MainDialogue.__name__, conversation_cache, config)
        self._ai_service = ai_service
        self._convo_state = create_convo_state_accessor(user_state)

        self.add_dialog(TextPrompt(TextPrompt.__name__))
        self.add_dialog(
            WaterfallDialog(f"{MainDialogue.__name__}.waterfall", [self.new_chat_step])
        )
        self.initial_dialog_id = f"{MainDialogue.__name__}.waterfall"

    async def new_chat_step(self, step_context: WaterfallStepContext) -> DialogTurnResult:
        turn_context = step_context.context
        state = await get_convo_state(self._convo_state, turn_context)
        text = (turn_context.activity.text or "").strip()

        reply = None
        if self._ai_service and text:
            try:
                reply = await self._follow_up(turn_context, state, text)
            except Exception as e:
                logger.error(f"Follow-up chat failed: {e}", exc_info=True)

        if reply:
            await turn_context.send_activity(MessageFactory.text(reply))
        else:
            await turn_context.send_activity(
                MessageFactory.text(
                    DEFAULT_GREETING, DEFAULT_GREETING, InputHints.expecting_input
                )
            )

        await self._convo_state.set(turn_context, state)
        return await step_context.end_dialog()

    async def _follow_up(
        self, turn_context: TurnContext, state: MainDialogueConvoState, text: str
    ) -> str:
        """Answer with AI and record the exchange in the capped history."""
        bot_user = self.get_bot_user(turn_context)
        response = await self._ai_service.handle_follow_up_chat(
            user_id=bot_user.user_id,
            user_message=text,
            nudge_context=state.last_nudge_context,
            history=list(state.conversation_history),
        )

        state.conversation_history.append(("user", text))
        state.conversation_history.append(("assistant", response.reply))
        state.conversation_history = state.conversation_history[-MAX_HISTORY_ENTRIES:]
        if response.should_end_conversation:
            state.conversation_history = []
        return response.reply
