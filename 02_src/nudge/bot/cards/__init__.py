"""Bot cards."""

from .base import (
    DEFAULT_BOT_NAME,
    FIELD_NAME_BOT_NAME,
    BaseAdaptiveCard,
    BotDiagFinished,
    BotFirstIntroduction,
    BotResumeConversationIntroduction,
)

__all__ = [
    "DEFAULT_BOT_NAME",
    "FIELD_NAME_BOT_NAME",
    "BaseAdaptiveCard",
    "BotDiagFinished",
    "BotFirstIntroduction",
    "BotResumeConversationIntroduction",
]
