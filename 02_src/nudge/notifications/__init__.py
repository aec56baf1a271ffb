"""Proactive notifications."""

from .handlers import (
    DefaultConversationResumeHandler,
    DiagnosticsResumeHandler,
    IConversationResumeHandler,
    PendingCardConversationResumeHandler,
)
from .resume_manager import (
    BotConvoResumeManager,
    ConversationResumeResult,
    ConversationResumeStatus,
)
from .sender import MessageSenderService, MessageSendResult

__all__ = [
    "BotConvoResumeManager",
    "ConversationResumeResult",
    "ConversationResumeStatus",
    "DefaultConversationResumeHandler",
    "DiagnosticsResumeHandler",
    "IConversationResumeHandler",
    "MessageSendResult",
    "MessageSenderService",
    "PendingCardConversationResumeHandler",
]
