"""Smart groups module."""

from .service import RESOLUTION_CACHE_TTL, SmartGroupService

__all__ = ["RESOLUTION_CACHE_TTL", "SmartGroupService"]
