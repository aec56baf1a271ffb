"""Batch queue backed by the queue_messages table."""

from datetime import timedelta
from typing import Protocol

from ..logging_config import get_logger
from ..models import BatchQueueMessage, QueuedMessage
from ..storage import IStorage

logger = get_logger(__name__)

DEFAULT_VISIBILITY_TIMEOUT = timedelta(seconds=30)


class IBatchQueue(Protocol):
    """Work queue for per-recipient nudge deliveries."""

    async def enqueue_batch_messages(self, messages: list[BatchQueueMessage]) -> None:
        """Add messages to the queue."""
        ...

    async def dequeue(
        self, visibility_timeout: timedelta = DEFAULT_VISIBILITY_TIMEOUT
    ) -> QueuedMessage | None:
        """Claim the next message; it reappears unless deleted before the timeout."""
        ...

    async def delete(self, message_id: str, pop_receipt: str) -> None:
        """Remove a processed message."""
        ...


class BatchQueueService:
    """At-least-once queue with visibility timeouts."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def enqueue_batch_messages(self, messages: list[BatchQueueMessage]) -> None:
        for message in messages:
            await self._storage.enqueue_queue_message(message.to_json())
        logger.info(f"Enqueued {len(messages)} batch messages")

    async def dequeue(
        self, visibility_timeout: timedelta = DEFAULT_VISIBILITY_TIMEOUT
    ) -> QueuedMessage | None:
        claimed = await self._storage.dequeue_queue_message(visibility_timeout)
        if not claimed:
            return None

        message_id, pop_receipt, dequeue_count, body = claimed
        return QueuedMessage(
            id=message_id,
            pop_receipt=pop_receipt,
            dequeue_count=dequeue_count,
            body=BatchQueueMessage.from_json(body),
        )

    async def delete(self, message_id: str, pop_receipt: str) -> None:
        if not await self._storage.delete_queue_message(message_id, pop_receipt):
            logger.warning(
                f"Queue message {message_id} was not deleted (receipt expired or already removed)"
            )

    async def pending_count(self) -> int:
        return await self._storage.count_queue_messages()
