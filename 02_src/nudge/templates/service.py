"""Message templates, batches and delivery logs."""

import uuid
from datetime import datetime, timezone

from ..batching.queue import IBatchQueue
from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import (
    BatchQueueMessage,
    MessageBatch,
    MessageLog,
    MessageStatus,
    MessageTemplate,
)
from ..storage import IStorage

logger = get_logger(__name__)


class MessageTemplateService:
    """CRUD for templates and batches plus the per-recipient delivery log."""

    def __init__(self, storage: IStorage, queue: IBatchQueue):
        self._storage = storage
        self._queue = queue

    # Templates
    async def get_all_templates(self) -> list[MessageTemplate]:
        return await self._storage.get_all_templates()

    async def get_template_by_id(self, template_id: str) -> MessageTemplate | None:
        return await self._storage.get_template(template_id)

    async def get_template_json(self, template_id: str) -> str | None:
        template = await self._storage.get_template(template_id)
        return template.json_payload if template else None

    async def create_template(
        self, template_name: str, json_payload: str, created_by_upn: str
    ) -> MessageTemplate:
        if not template_name or not template_name.strip():
            raise ValidationError("Template name is required")
        if not json_payload or not json_payload.strip():
            raise ValidationError("Template JSON is required")

        template = MessageTemplate(
            id=str(uuid.uuid4()),
            template_name=template_name,
            json_payload=json_payload,
            created_by_upn=created_by_upn,
            created_date=datetime.now(timezone.utc),
        )
        await self._storage.save_template(template)
        logger.info(f"Created template '{template_name}' ({template.id})")
        return template

    async def update_template(
        self, template_id: str, template_name: str, json_payload: str
    ) -> MessageTemplate:
        if not template_name or not template_name.strip():
            raise ValidationError("Template name is required")
        if not json_payload or not json_payload.strip():
            raise ValidationError("Template JSON is required")

        template = await self._storage.get_template(template_id)
        if not template:
            raise NotFoundError(f"Template {template_id} not found")

        template.template_name = template_name
        template.json_payload = json_payload
        await self._storage.save_template(template)
        logger.info(f"Updated template {template_id}")
        return template

    async def delete_template(self, template_id: str) -> None:
        if not await self._storage.delete_template(template_id):
            raise NotFoundError(f"Template {template_id} not found")
        logger.info(f"Deleted template {template_id}")

    # Batches
    async def create_batch(
        self, batch_name: str, template_id: str, sender_upn: str
    ) -> MessageBatch:
        batch = MessageBatch(
            id=str(uuid.uuid4()),
            batch_name=batch_name,
            template_id=template_id,
            sender_upn=sender_upn,
            created_date=datetime.now(timezone.utc),
        )
        await self._storage.save_batch(batch)
        logger.info(f"Created batch '{batch_name}' ({batch.id}) for template {template_id}")
        return batch

    async def get_all_batches(self) -> list[MessageBatch]:
        return await self._storage.get_all_batches()

    async def get_batch_by_id(self, batch_id: str) -> MessageBatch | None:
        return await self._storage.get_batch(batch_id)

    async def delete_batch(self, batch_id: str) -> None:
        """Delete a batch and all of its message logs."""
        batch = await self._storage.get_batch(batch_id)
        if not batch:
            raise NotFoundError(f"Batch {batch_id} not found")

        removed = await self._storage.delete_message_logs_for_batch(batch_id)
        await self._storage.delete_batch(batch_id)
        logger.info(f"Deleted batch {batch_id} and {removed} message logs")

    # Logs
    async def log_batch_messages(
        self, batch: MessageBatch, recipient_upns: list[str]
    ) -> list[MessageLog]:
        """Create a Pending log per recipient and queue each for delivery."""
        logs = []
        queue_messages = []
        for upn in recipient_upns:
            log = MessageLog(
                id=str(uuid.uuid4()),
                message_batch_id=batch.id,
                recipient_upn=upn,
                status=MessageStatus.PENDING.value,
            )
            await self._storage.save_message_log(log)
            logs.append(log)
            queue_messages.append(
                BatchQueueMessage(
                    batch_id=batch.id,
                    message_log_id=log.id,
                    recipient_upn=upn,
                    template_id=batch.template_id,
                )
            )

        await self._queue.enqueue_batch_messages(queue_messages)
        return logs

    async def get_message_logs(self, template_id: str) -> list[MessageLog]:
        """Logs of every batch that used the template."""
        batches = await self._storage.get_all_batches(template_id=template_id)
        return await self._storage.get_message_logs(batch_ids=[b.id for b in batches])

    async def get_message_logs_by_batch(self, batch_id: str) -> list[MessageLog]:
        return await self._storage.get_message_logs(batch_ids=[batch_id])

    async def get_all_message_logs(self) -> list[MessageLog]:
        return await self._storage.get_message_logs()

    async def get_message_log(self, log_id: str) -> MessageLog | None:
        return await self._storage.get_message_log(log_id)

    async def update_log_status(
        self, log_id: str, status: str, last_error: str | None = None
    ) -> MessageLog:
        if not status or not status.strip():
            raise ValidationError("Status is required")

        log = await self._storage.get_message_log(log_id)
        if not log:
            raise NotFoundError(f"Message log {log_id} not found")

        log.status = status
        log.last_error = last_error
        if status == MessageStatus.SUCCESS.value:
            log.sent_date = datetime.now(timezone.utc)

        await self._storage.save_message_log(log)
        return log
