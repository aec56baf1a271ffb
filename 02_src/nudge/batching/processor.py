"""Background worker that drains the batch queue."""

import asyncio
from typing import Protocol

from ..logging_config import get_logger
from ..models import BatchQueueMessage
from .queue import IBatchQueue

logger = get_logger(__name__)


class IMessageSender(Protocol):
    async def send_message(self, message: BatchQueueMessage):
        """Deliver one message and record the outcome."""
        ...


class BatchMessageProcessor:
    """Polls the queue and sends one message at a time."""

    def __init__(
        self,
        queue: IBatchQueue,
        sender: IMessageSender,
        poll_interval: float = 5.0,
    ):
        self._queue = queue
        self._sender = sender
        self._poll_interval = poll_interval
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        logger.info("Starting BatchMessageProcessor")
        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        logger.info("Stopping BatchMessageProcessor")
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def process_next(self) -> bool:
        """Handle one queued message. Returns False when the queue is empty."""
        queued = await self._queue.dequeue()
        if not queued:
            return False

        message = queued.body
        logger.info(
            f"Processing message {message.message_log_id} for {message.recipient_upn} "
            f"(attempt {queued.dequeue_count})"
        )
        try:
            result = await self._sender.send_message(message)
            if not result.success:
                logger.warning(
                    f"Delivery to {message.recipient_upn} failed: {result.error_message}"
                )
        finally:
            # Processed messages are never redelivered, even when sending raised
            await self._queue.delete(queued.id, queued.pop_receipt)
        return True

    async def _run(self) -> None:
        while self._running:
            try:
                if not await self.process_next():
                    await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Batch processor error: {e}", exc_info=True)
                await asyncio.sleep(self._poll_interval)
