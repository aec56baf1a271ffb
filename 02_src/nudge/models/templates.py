"""Message template, batch and delivery log models."""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class MessageStatus(str, Enum):
    """Delivery status of a single message log."""

    PENDING = "Pending"
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass
class MessageTemplate:
    """An adaptive card template that can be sent as a nudge."""

    id: str
    template_name: str
    json_payload: str
    created_by_upn: str
    created_date: datetime


@dataclass
class MessageBatch:
    """One send operation: a template delivered to a list of recipients."""

    id: str
    batch_name: str
    template_id: str
    sender_upn: str
    created_date: datetime


@dataclass
class MessageLog:
    """Delivery record for one recipient within a batch."""

    id: str
    message_batch_id: str
    recipient_upn: str | None
    status: str = MessageStatus.PENDING.value
    sent_date: datetime | None = None
    last_error: str | None = None


@dataclass
class BatchQueueMessage:
    """Work item placed on the batch queue for each recipient."""

    batch_id: str
    message_log_id: str
    recipient_upn: str
    template_id: str

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, text: str) -> "BatchQueueMessage":
        data = json.loads(text)
        return cls(
            batch_id=data["batch_id"],
            message_log_id=data["message_log_id"],
            recipient_upn=data["recipient_upn"],
            template_id=data["template_id"],
        )


@dataclass
class QueuedMessage:
    """A dequeued message plus the receipt needed to delete it."""

    id: str
    pop_receipt: str
    dequeue_count: int
    body: BatchQueueMessage


@dataclass
class PendingCardInfo:
    """The newest undelivered card for a user."""

    message_log_id: str
    batch_id: str
    template_id: str
    template_name: str
    card_json: str
    card_attachment: Any = None
