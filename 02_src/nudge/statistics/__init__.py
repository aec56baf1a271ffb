"""Statistics module."""

from .service import StatisticsService

__all__ = ["StatisticsService"]
