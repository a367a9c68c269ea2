"""
Serverless SQS Pattern Service Module.

This package contains the service implementation following the three-layer
architecture pattern:

- handlers: Lambda entry points for the ingest endpoint and the queue consumers
- logic: Ingestion routing and per-message processing
- dal: SQS and in-memory queues, plus a local event source mapping
- models: Message, response and queue topology models
- edge: In-process model of the rate-limited distribution in front of the API

The reliability contract lives in the queue: messages are acknowledged by
omission from the partial batch failure report, redelivered after their
visibility window, and dead-lettered after the receive threshold.
"""

__version__ = "1.0.0"
__description__ = "Serverless web pattern with API ingestion, SQS queues and batch consumers"

from service.models.message import MessageAttributes, QueuedMessage
from service.models.output import BatchReport, EnqueueAcknowledgment
from service.models.queue_topology import CHANNELS, QueueTopology
from service.handlers.utils.observability import logger, tracer, metrics

__all__ = [
    "MessageAttributes",
    "QueuedMessage",
    "BatchReport",
    "EnqueueAcknowledgment",
    "CHANNELS",
    "QueueTopology",
    "logger",
    "tracer",
    "metrics",
]
