"""Microsoft 365 Copilot usage report download and parsing."""

import csv
import io
from datetime import date, datetime

from ..graph import GraphClient
from ..logging_config import get_logger
from ..models import CopilotUsageRecord

logger = get_logger(__name__)

# CSV header -> CopilotUsageRecord field
CSV_COLUMNS = {
    "Last Activity Date": "last_activity_date",
    "Copilot Chat Last Activity Date": "copilot_chat_last_activity_date",
    "Microsoft Teams Copilot Last Activity Date": "teams_copilot_last_activity_date",
    "Word Copilot Last Activity Date": "word_copilot_last_activity_date",
    "Excel Copilot Last Activity Date": "excel_copilot_last_activity_date",
    "PowerPoint Copilot Last Activity Date": "powerpoint_copilot_last_activity_date",
    "Outlook Copilot Last Activity Date": "outlook_copilot_last_activity_date",
    "OneNote Copilot Last Activity Date": "onenote_copilot_last_activity_date",
    "Loop Copilot Last Activity Date": "loop_copilot_last_activity_date",
}
UPN_COLUMN = "User Principal Name"


def _parse_date(value: str | None) -> date | None:
    if not value or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    for fmt in ("%m/%d/%Y", "%d/%m/%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_copilot_usage_csv(content: str) -> list[CopilotUsageRecord]:
    """Rows without a UPN are skipped; unreadable dates become None."""
    # Report downloads start with a UTF-8 BOM
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    records = []
    for row in reader:
        upn = (row.get(UPN_COLUMN) or "").strip()
        if not upn:
            continue
        values = {field: _parse_date(row.get(header)) for header, field in CSV_COLUMNS.items()}
        records.append(CopilotUsageRecord(user_principal_name=upn, **values))
    return records


class GraphCopilotStatsLoader:
    """Fetches the usage report through Graph."""

    def __init__(self, graph: GraphClient):
        self._graph = graph

    async def get_copilot_usage(self, period: str = "D30") -> list[CopilotUsageRecord]:
        logger.info(f"Downloading Copilot usage report for period {period}")
        records = parse_copilot_usage_csv(await self._graph.get_copilot_usage_csv(period))
        logger.info(f"Parsed {len(records)} Copilot usage records")
        return records
