"""Bot-side models: participants, cached conversations, dialogue state."""

import uuid
from dataclasses import dataclass, field


@dataclass
class BotUser:
    """A chat participant, identified by Azure AD object id when available."""

    user_id: str
    is_azure_ad_user_id: bool


@dataclass
class CachedUserAndConversationData:
    """What is needed to message a user proactively."""

    user_id: str
    service_url: str
    conversation_id: str
    user_principal_name: str | None = None


@dataclass
class MainDialogueConvoState:
    """Per-user state kept by the bot state store between turns."""

    random_state_val: str = field(default_factory=lambda: str(uuid.uuid4()))
    last_nudge_context: str | None = None
    # (role, content) pairs, oldest first
    conversation_history: list[tuple[str, str]] = field(default_factory=list)
