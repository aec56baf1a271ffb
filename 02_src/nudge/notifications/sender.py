"""Delivers one queued nudge and records the outcome on its message log."""

from dataclasses import dataclass

from ..errors import NotFoundError
from ..logging_config import get_logger
from ..models import BatchQueueMessage, MessageStatus
from ..templates import MessageTemplateService
from .handlers import IConversationResumeHandler
from .resume_manager import BotConvoResumeManager, ConversationResumeStatus

logger = get_logger(__name__)


@dataclass
class MessageSendResult:
    success: bool
    status: ConversationResumeStatus
    error_message: str | None = None


class MessageSenderService:
    def __init__(
        self,
        resume_manager: BotConvoResumeManager,
        template_service: MessageTemplateService,
        pending_card_handler: IConversationResumeHandler,
    ):
        self._resume_manager = resume_manager
        self._templates = template_service
        self._handler = pending_card_handler

    async def send_message(self, message: BatchQueueMessage) -> MessageSendResult:
        """
        Resume the conversation with the recipient and update the log.

        Sent means Success. App installed means the log stays Pending until the
        member-added turn delivers it. Anything else is Failed.
        """
        result = await self._resume_manager.resume_conversation(
            message.recipient_upn, self._handler
        )

        if result.status == ConversationResumeStatus.MESSAGE_SENT:
            await self._update_log(message, MessageStatus.SUCCESS.value)
            logger.info(f"Message {message.message_log_id} sent to {message.recipient_upn}")
            return MessageSendResult(True, result.status)

        if result.status == ConversationResumeStatus.APP_INSTALLED_PENDING:
            logger.info(
                f"App installed for {message.recipient_upn}; message {message.message_log_id} pending"
            )
            return MessageSendResult(True, result.status)

        await self._update_log(message, MessageStatus.FAILED.value, result.error_message)
        logger.warning(
            f"Message {message.message_log_id} to {message.recipient_upn} failed: {result.error_message}"
        )
        return MessageSendResult(False, result.status, result.error_message)

    async def _update_log(
        self, message: BatchQueueMessage, status: str, last_error: str | None = None
    ) -> None:
        try:
            await self._templates.update_log_status(message.message_log_id, status, last_error)
        except NotFoundError:
            # Batch was deleted while its messages were still queued
            logger.warning(
                f"Message log {message.message_log_id} not found; status {status} not recorded"
            )
