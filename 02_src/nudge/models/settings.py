"""Application settings and dashboard statistics models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class AppSettings:
    """Singleton row of admin-editable settings."""

    follow_up_chat_system_prompt: str | None = None
    last_modified_date: datetime | None = None
    last_modified_by_upn: str | None = None


@dataclass
class MessageStatusStats:
    sent_count: int
    failed_count: int
    pending_count: int
    total_count: int


@dataclass
class UserCoverageStats:
    total_users_in_tenant: int
    users_messaged: int
    users_not_messaged: int
    coverage_percentage: float
