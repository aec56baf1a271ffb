"""Bot Framework adapter with a turn error handler."""

from datetime import datetime, timezone

from botbuilder.core import (
    BotFrameworkAdapter,
    BotFrameworkAdapterSettings,
    ConversationState,
    TurnContext,
)
from botbuilder.schema import Activity, ActivityTypes

from ..config import BotConfig
from ..logging_config import get_logger

logger = get_logger(__name__)

ERROR_MESSAGE = "Oops, something unexpected happened and I hit a problem."
ERROR_FOLLOW_UP = "Please check the error logged and try again."


class AdapterWithErrorHandler(BotFrameworkAdapter):
    """
    Reports unhandled turn errors to the user and resets the conversation.

    Each recovery step runs on its own so that a failure in one (for example
    the channel rejecting a message) does not skip the others.
    """

    def __init__(self, config: BotConfig, conversation_state: ConversationState):
        super().__init__(
            BotFrameworkAdapterSettings(config.bot_app_id, config.bot_app_secret)
        )
        self._conversation_state = conversation_state
        self.on_turn_error = self._handle_turn_error

    async def _handle_turn_error(self, turn_context: TurnContext, error: Exception) -> None:
        logger.error(f"Unhandled bot turn error: {error}", exc_info=error)

        for text in (ERROR_MESSAGE, ERROR_FOLLOW_UP):
            try:
                await turn_context.send_activity(text)
            except Exception as e:
                logger.error(f"Failed to send error message to user: {e}", exc_info=True)

        try:
            await self._conversation_state.delete(turn_context)
        except Exception as e:
            logger.error(f"Failed to delete conversation state: {e}", exc_info=True)

        try:
            await turn_context.send_activity(
                Activity(
                    type=ActivityTypes.trace,
                    label="TurnError",
                    name="OnTurnError Trace",
                    timestamp=datetime.now(timezone.utc),
                    value=str(error),
                    value_type="https://www.botframework.com/schemas/error",
                )
            )
        except Exception as e:
            logger.error(f"Failed to send trace activity: {e}", exc_info=True)
