"""Message templates module."""

from .defaults import DEFAULT_TEMPLATES, DefaultTemplateInitializer
from .pending import PendingCardLookupService
from .service import MessageTemplateService

__all__ = [
    "DEFAULT_TEMPLATES",
    "DefaultTemplateInitializer",
    "MessageTemplateService",
    "PendingCardLookupService",
]
