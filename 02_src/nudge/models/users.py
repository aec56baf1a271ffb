"""Directory user models for the user cache and AI matching."""

from dataclasses import asdict, dataclass, fields
from datetime import date, datetime
from enum import Enum
from typing import Any

# Copilot activity fields, in the order they are summarised
COPILOT_ACTIVITY_FIELDS = (
    "copilot_last_activity_date",
    "copilot_chat_last_activity_date",
    "teams_copilot_last_activity_date",
    "word_copilot_last_activity_date",
    "excel_copilot_last_activity_date",
    "powerpoint_copilot_last_activity_date",
    "outlook_copilot_last_activity_date",
    "onenote_copilot_last_activity_date",
    "loop_copilot_last_activity_date",
)
COPILOT_ACTIVITY_LABELS = (
    "Overall",
    "Chat",
    "Teams",
    "Word",
    "Excel",
    "PowerPoint",
    "Outlook",
    "OneNote",
    "Loop",
)


@dataclass
class EnrichedUserInfo:
    """A user with the directory metadata used to target nudges."""

    id: str
    user_principal_name: str
    display_name: str | None = None
    job_title: str | None = None
    department: str | None = None
    office_location: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    company_name: str | None = None
    manager_upn: str | None = None
    manager_display_name: str | None = None
    employee_type: str | None = None
    hire_date: datetime | None = None
    copilot_last_activity_date: date | None = None
    copilot_chat_last_activity_date: date | None = None
    teams_copilot_last_activity_date: date | None = None
    word_copilot_last_activity_date: date | None = None
    excel_copilot_last_activity_date: date | None = None
    powerpoint_copilot_last_activity_date: date | None = None
    outlook_copilot_last_activity_date: date | None = None
    onenote_copilot_last_activity_date: date | None = None
    loop_copilot_last_activity_date: date | None = None

    def to_ai_summary(self) -> str:
        """One-line description of the user for an LLM prompt."""
        parts = [
            f"UPN: {self.user_principal_name}",
            f"Name: {self.display_name or 'Unknown'}",
        ]

        optional = (
            ("Job Title", self.job_title),
            ("Department", self.department),
            ("Office", self.office_location),
            ("City", self.city),
            ("State", self.state),
            ("Country", self.country),
            ("Company", self.company_name),
            ("Manager", self.manager_display_name),
            ("Employee Type", self.employee_type),
        )
        for label, value in optional:
            if value and value.strip():
                parts.append(f"{label}: {value}")

        activity = [
            f"{label}: {value.isoformat()}"
            for label, value in zip(COPILOT_ACTIVITY_LABELS, self._copilot_dates())
            if value
        ]
        if activity:
            parts.append(f"Copilot Activity: {', '.join(activity)}")

        return " | ".join(parts)

    def _copilot_dates(self) -> list[date | None]:
        return [getattr(self, name) for name in COPILOT_ACTIVITY_FIELDS]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, (date, datetime)):
                data[key] = value.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnrichedUserInfo":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        if values.get("hire_date"):
            values["hire_date"] = datetime.fromisoformat(values["hire_date"])
        for name in COPILOT_ACTIVITY_FIELDS:
            if values.get(name):
                values[name] = date.fromisoformat(values[name])

        return cls(**values)


@dataclass
class CopilotUsageRecord:
    """One row of the Microsoft 365 Copilot usage report."""

    user_principal_name: str
    last_activity_date: date | None = None
    copilot_chat_last_activity_date: date | None = None
    teams_copilot_last_activity_date: date | None = None
    word_copilot_last_activity_date: date | None = None
    excel_copilot_last_activity_date: date | None = None
    powerpoint_copilot_last_activity_date: date | None = None
    outlook_copilot_last_activity_date: date | None = None
    onenote_copilot_last_activity_date: date | None = None
    loop_copilot_last_activity_date: date | None = None


class SyncStatus(str, Enum):
    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass
class SyncMetadata:
    """Bookkeeping for the user cache sync."""

    delta_link: str | None = None
    last_full_sync_date: datetime | None = None
    last_delta_sync_date: datetime | None = None
    last_copilot_stats_update: datetime | None = None
    last_sync_status: str | None = None
    last_sync_error: str | None = None
    last_sync_user_count: int = 0

    @property
    def last_sync_date(self) -> datetime | None:
        candidates = [d for d in (self.last_full_sync_date, self.last_delta_sync_date) if d]
        return max(candidates) if candidates else None
