"""
Business Logic Layer Module.

This module contains the logic sitting between the Lambda handlers and the
queues:

- ingestion: forwards an accepted request body to its channel's queue
- message_processor: transforms one queued message into a result record
"""

from service.logic.ingestion import IngestionService
from service.logic.message_processor import EnhancedMessageProcessor, MessageProcessor

__all__ = [
    "IngestionService",
    "MessageProcessor",
    "EnhancedMessageProcessor",
]
