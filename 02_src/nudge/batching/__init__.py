"""Batch queue and background delivery."""

from .processor import BatchMessageProcessor, IMessageSender
from .queue import BatchQueueService, IBatchQueue

__all__ = [
    "BatchMessageProcessor",
    "BatchQueueService",
    "IBatchQueue",
    "IMessageSender",
]
