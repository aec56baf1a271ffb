"""Admin-editable settings, currently the follow-up chat system prompt."""

from datetime import datetime, timezone

from ..logging_config import get_logger
from ..models import AppSettings
from ..storage import IStorage

logger = get_logger(__name__)

DEFAULT_FOLLOW_UP_CHAT_SYSTEM_PROMPT = (
    "You are a helpful assistant for a Microsoft Teams bot called Office Nudge. "
    "Office Nudge sends short messages (nudges) to employees with tips and "
    "important information, for example how to get more out of Microsoft 365 "
    "Copilot. Users may reply to the bot with follow-up questions about a nudge "
    "they received. Answer clearly and concisely in a friendly, professional tone. "
    "Keep answers short enough to read comfortably in a chat window. If you do not "
    "know the answer, say so and suggest where the user could find more help. "
    "Do not make up company policies or facts."
)


class SettingsManager:
    """Reads and writes the singleton settings row."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def get_settings(self) -> AppSettings:
        """Current settings; an empty record if nothing was saved yet."""
        return await self._storage.get_app_settings() or AppSettings()

    async def update_settings(
        self, follow_up_chat_system_prompt: str | None, modified_by_upn: str
    ) -> AppSettings:
        settings = AppSettings(
            follow_up_chat_system_prompt=follow_up_chat_system_prompt,
            last_modified_date=datetime.now(timezone.utc),
            last_modified_by_upn=modified_by_upn,
        )
        await self._storage.save_app_settings(settings)
        logger.info(f"Settings updated by {modified_by_upn}")
        return settings

    async def reset_follow_up_chat_system_prompt(self, modified_by_upn: str) -> AppSettings:
        """Drop the custom prompt so the default applies again."""
        return await self.update_settings(None, modified_by_upn)

    async def get_effective_follow_up_chat_system_prompt(self) -> str:
        settings = await self.get_settings()
        prompt = settings.follow_up_chat_system_prompt
        if prompt and prompt.strip():
            return prompt
        return DEFAULT_FOLLOW_UP_CHAT_SYSTEM_PROMPT
