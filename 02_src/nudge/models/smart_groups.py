"""Smart group models."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class SmartGroup:
    """A group whose members are picked by AI from a natural-language description."""

    id: str
    name: str
    description: str
    created_by_upn: str
    created_date: datetime
    last_resolved_date: datetime | None = None
    last_resolved_member_count: int | None = None


@dataclass
class SmartGroupMember:
    group_id: str
    user_principal_name: str
    display_name: str | None = None
    department: str | None = None
    job_title: str | None = None
    confidence_score: float | None = None
    reason: str | None = None
    cached_date: datetime | None = None


@dataclass
class SmartGroupResolutionResult:
    group_id: str
    members: list[SmartGroupMember] = field(default_factory=list)
    resolved_at: datetime | None = None
    from_cache: bool = False


@dataclass
class AIUserMatchResult:
    """One user the model judged to match a group description."""

    user_principal_name: str
    confidence_score: float
    reason: str | None = None


@dataclass
class AIFollowUpResponse:
    reply: str
    should_end_conversation: bool = False
