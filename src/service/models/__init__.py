"""
Service Models Package

This package contains all Pydantic models used throughout the service,
including queued message models, output response models and queue topology.
"""

from .message import (
    API_GATEWAY_SOURCE,
    REQUEST_ID_ATTRIBUTE,
    SOURCE_ATTRIBUTE,
    DeadLetterEntry,
    Delivery,
    MessageAttributes,
    QueuedMessage,
)
from .output import (
    BatchItemFailure,
    BatchReport,
    EnhancedDetails,
    EnqueueAcknowledgment,
    ProcessedMessage,
)
from .queue_topology import CHANNELS, DEFAULT_TOPOLOGY, QueueTopology

__all__ = [
    # Message models
    "API_GATEWAY_SOURCE",
    "REQUEST_ID_ATTRIBUTE",
    "SOURCE_ATTRIBUTE",
    "MessageAttributes",
    "QueuedMessage",
    "Delivery",
    "DeadLetterEntry",

    # Output models
    "EnqueueAcknowledgment",
    "ProcessedMessage",
    "EnhancedDetails",
    "BatchItemFailure",
    "BatchReport",

    # Topology
    "CHANNELS",
    "DEFAULT_TOPOLOGY",
    "QueueTopology",
]
