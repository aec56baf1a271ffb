"""Adaptive cards sent by the bot itself (as opposed to nudge templates)."""

import json
from abc import ABC, abstractmethod
from pathlib import Path

from botbuilder.core import CardFactory
from botbuilder.schema import Attachment

TEMPLATES_DIR = Path(__file__).parent / "templates"

FIELD_NAME_BOT_NAME = "${BotName}"
DEFAULT_BOT_NAME = "Bot"

BOT_FIRST_INTRODUCTION = "BotFirstIntro.json"
BOT_DIAG_FINISHED = "BotDiagFinished.json"
BOT_RESUME_CONVERSATION_INTRO = "BotResumeConversationIntro.json"


class BaseAdaptiveCard(ABC):
    @abstractmethod
    def get_card_content(self) -> str:
        """Card JSON as text."""

    def get_card_attachment(self) -> Attachment:
        content = self.get_card_content()
        # Empty or "null" content renders as an empty card
        card = json.loads(content) if content and content.strip() else None
        return CardFactory.adaptive_card(card or {})


class ResourceAdaptiveCard(BaseAdaptiveCard):
    """A card loaded from the bundled templates with the bot name filled in."""

    resource_name: str = ""

    def __init__(self, bot_name: str = DEFAULT_BOT_NAME):
        self.bot_name = bot_name

    def get_card_content(self) -> str:
        text = (TEMPLATES_DIR / self.resource_name).read_text(encoding="utf-8")
        return text.replace(FIELD_NAME_BOT_NAME, self.bot_name)


class BotFirstIntroduction(ResourceAdaptiveCard):
    resource_name = BOT_FIRST_INTRODUCTION


class BotResumeConversationIntroduction(ResourceAdaptiveCard):
    resource_name = BOT_RESUME_CONVERSATION_INTRO


class BotDiagFinished(ResourceAdaptiveCard):
    resource_name = BOT_DIAG_FINISHED
