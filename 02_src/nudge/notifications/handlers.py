"""What to send when the bot resumes a conversation with a user."""

from typing import Any, Protocol

from botbuilder.core import CardFactory
from botbuilder.schema import Attachment, HeroCard

from ..bot.cards import BotDiagFinished
from ..logging_config import get_logger
from ..models import MessageStatus, PendingCardInfo
from ..templates import MessageTemplateService, PendingCardLookupService

logger = get_logger(__name__)


class IConversationResumeHandler(Protocol):
    """Produces the card for a proactive message."""

    async def load_data_and_resume_conversation(
        self, upn: str
    ) -> tuple[Any, Attachment]:
        """Return (data, card attachment) to send to the user."""
        ...


class PendingCardConversationResumeHandler:
    """Delivers the user's newest pending nudge and marks it sent."""

    def __init__(
        self,
        pending_lookup: PendingCardLookupService,
        template_service: MessageTemplateService,
    ):
        self._pending_lookup = pending_lookup
        self._templates = template_service

    async def load_data_and_resume_conversation(
        self, upn: str
    ) -> tuple[PendingCardInfo | None, Attachment]:
        card = await self._pending_lookup.get_latest_pending_card_by_upn(upn)
        if not card:
            logger.info(f"No pending card for {upn}, sending welcome card")
            welcome = HeroCard(
                title="Welcome!",
                text="You have no pending messages at this time.",
            )
            return None, CardFactory.hero_card(welcome)

        await self._templates.update_log_status(
            card.message_log_id, MessageStatus.SUCCESS.value
        )
        logger.info(
            f"Delivering pending card '{card.template_name}' (log {card.message_log_id}) to {upn}"
        )
        return card, card.card_attachment


class DefaultConversationResumeHandler:
    async def load_data_and_resume_conversation(self, upn: str) -> tuple[None, Attachment]:
        welcome = HeroCard(
            title="Welcome Back!",
            text="Thanks for chatting with me again.",
        )
        return None, CardFactory.hero_card(welcome)


class DiagnosticsResumeHandler:
    """Sends the diagnostics card to confirm proactive delivery works."""

    def __init__(self, bot_name: str):
        self._bot_name = bot_name

    async def load_data_and_resume_conversation(self, upn: str) -> tuple[None, Attachment]:
        return None, BotDiagFinished(self._bot_name).get_card_attachment()
