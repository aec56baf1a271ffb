"""Bot dialogs."""

from .common import CommonBotDialogue
from .main import (
    CONVO_STATE_PROPERTY,
    DEFAULT_GREETING,
    MAX_HISTORY_ENTRIES,
    MainDialogue,
    create_convo_state_accessor,
    get_convo_state,
)

__all__ = [
    "CONVO_STATE_PROPERTY",
    "DEFAULT_GREETING",
    "MAX_HISTORY_ENTRIES",
    "CommonBotDialogue",
    "MainDialogue",
    "create_convo_state_accessor",
    "get_convo_state",
]
