"""Office Nudge: a Teams bot that delivers adaptive card nudges."""

from .app import Application, IApplication
from .config import BotConfig, load_config
from .errors import AINotConfiguredError, NotFoundError, NudgeError, ValidationError

__all__ = [
    "Application",
    "IApplication",
    "BotConfig",
    "load_config",
    "NudgeError",
    "ValidationError",
    "NotFoundError",
    "AINotConfiguredError",
]
