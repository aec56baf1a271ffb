"""Dashboard statistics over message logs and the tenant directory."""

from ..graph import GraphClient
from ..logging_config import get_logger
from ..models import MessageStatus, MessageStatusStats, UserCoverageStats
from ..storage import IStorage

logger = get_logger(__name__)

# Older logs recorded successful sends as "Sent"
SENT_STATUSES = {"sent", MessageStatus.SUCCESS.value.lower()}


class StatisticsService:
    def __init__(self, storage: IStorage, graph: GraphClient | None):
        self._storage = storage
        self._graph = graph

    async def get_message_status_stats(self) -> MessageStatusStats:
        logs = await self._storage.get_message_logs()

        sent = failed = pending = 0
        for log in logs:
            status = (log.status or "").lower()
            if status in SENT_STATUSES:
                sent += 1
            elif status == MessageStatus.FAILED.value.lower():
                failed += 1
            elif status == MessageStatus.PENDING.value.lower():
                pending += 1

        return MessageStatusStats(
            sent_count=sent,
            failed_count=failed,
            pending_count=pending,
            total_count=len(logs),
        )

    async def get_user_coverage_stats(self) -> UserCoverageStats:
        if not self._graph:
            raise RuntimeError("Graph is not configured")

        logs = await self._storage.get_message_logs()
        messaged = {
            log.recipient_upn.strip().lower()
            for log in logs
            if log.recipient_upn and log.recipient_upn.strip()
        }

        total = await self._graph.get_user_count()
        users_messaged = len(messaged)
        coverage = round(users_messaged / total * 100, 2) if total > 0 else 0.0
        logger.info(f"User coverage: {users_messaged}/{total} ({coverage}%)")

        return UserCoverageStats(
            total_users_in_tenant=total,
            users_messaged=users_messaged,
            users_not_messaged=max(total - users_messaged, 0),
            coverage_percentage=coverage,
        )
