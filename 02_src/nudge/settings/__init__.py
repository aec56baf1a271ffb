"""Settings module."""

from .manager import DEFAULT_FOLLOW_UP_CHAT_SYSTEM_PROMPT, SettingsManager

__all__ = ["DEFAULT_FOLLOW_UP_CHAT_SYSTEM_PROMPT", "SettingsManager"]
