"""Teams bot building blocks.

The activity handler and adapter live in ``teams_bot`` and ``adapter`` and are
imported from there directly, since they depend on the notification services.
"""

from .conversation_cache import BotConversationCache
from .user_utils import parse_bot_user_info

__all__ = ["BotConversationCache", "parse_bot_user_info"]
