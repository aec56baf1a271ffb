"""Graph user JSON to EnrichedUserInfo."""

from datetime import datetime

from ..models import EnrichedUserInfo

# Graph property -> EnrichedUserInfo field (employeeHireDate handled separately)
GRAPH_FIELDS = {
    "userPrincipalName": "user_principal_name",
    "displayName": "display_name",
    "jobTitle": "job_title",
    "department": "department",
    "officeLocation": "office_location",
    "city": "city",
    "state": "state",
    "country": "country",
    "companyName": "company_name",
    "employeeType": "employee_type",
}


def _parse_graph_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def map_to_enriched_user(user: dict, manager: dict | None = None) -> EnrichedUserInfo:
    info = EnrichedUserInfo(id=user["id"], user_principal_name="")
    merge_graph_changes(info, user)
    if manager:
        info.manager_upn = manager.get("userPrincipalName")
        info.manager_display_name = manager.get("displayName")
    return info


def merge_graph_changes(info: EnrichedUserInfo, change: dict) -> EnrichedUserInfo:
    """Apply only the properties present in a Graph payload (delta responses are partial)."""
    for graph_key, field_name in GRAPH_FIELDS.items():
        if graph_key not in change:
            continue
        value = change[graph_key]
        if field_name == "user_principal_name":
            value = value or ""
        setattr(info, field_name, value)
    if "employeeHireDate" in change:
        info.hire_date = _parse_graph_datetime(change["employeeHireDate"])
    return info


def is_active_member(user: dict) -> bool:
    """Enabled, non-guest accounts are the only ones worth nudging."""
    return user.get("accountEnabled") is True and user.get("userType") == "Member"


def is_deactivated(change: dict) -> bool:
    """A delta change that takes a user out of scope."""
    if "@removed" in change:
        return True
    if change.get("accountEnabled") is False:
        return True
    return "userType" in change and change["userType"] != "Member"
