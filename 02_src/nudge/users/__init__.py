"""Directory users: cache, Copilot usage and lookups."""

from .cache import UserCacheManager
from .copilot_stats import GraphCopilotStatsLoader, parse_copilot_usage_csv
from .mapping import map_to_enriched_user
from .service import GraphUserService

__all__ = [
    "GraphCopilotStatsLoader",
    "GraphUserService",
    "UserCacheManager",
    "map_to_enriched_user",
    "parse_copilot_usage_csv",
]
