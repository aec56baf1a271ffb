"""Data models for Office Nudge."""

from .bot import BotUser, CachedUserAndConversationData, MainDialogueConvoState
from .settings import AppSettings, MessageStatusStats, UserCoverageStats
from .smart_groups import (
    AIFollowUpResponse,
    AIUserMatchResult,
    SmartGroup,
    SmartGroupMember,
    SmartGroupResolutionResult,
)
from .templates import (
    BatchQueueMessage,
    MessageBatch,
    MessageLog,
    MessageStatus,
    MessageTemplate,
    PendingCardInfo,
    QueuedMessage,
)
from .users import (
    COPILOT_ACTIVITY_FIELDS,
    CopilotUsageRecord,
    EnrichedUserInfo,
    SyncMetadata,
    SyncStatus,
)

__all__ = [
    # Bot
    "BotUser",
    "CachedUserAndConversationData",
    "MainDialogueConvoState",
    # Templates
    "MessageTemplate",
    "MessageBatch",
    "MessageLog",
    "MessageStatus",
    "BatchQueueMessage",
    "QueuedMessage",
    "PendingCardInfo",
    # Users
    "EnrichedUserInfo",
    "CopilotUsageRecord",
    "SyncMetadata",
    "SyncStatus",
    "COPILOT_ACTIVITY_FIELDS",
    # Smart groups / AI
    "SmartGroup",
    "SmartGroupMember",
    "SmartGroupResolutionResult",
    "AIUserMatchResult",
    "AIFollowUpResponse",
    # Settings / stats
    "AppSettings",
    "MessageStatusStats",
    "UserCoverageStats",
]
