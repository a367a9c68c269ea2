"""
Data Access Layer (DAL) for the queue-backed delivery pattern.

This module provides the queue handler interfaces and factory functions used by
the ingestion logic to enqueue messages.
"""

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from service.models.message import MessageAttributes


@runtime_checkable
class QueueHandler(Protocol):
    """Protocol defining the enqueue interface."""

    queue_name: str

    def send_message(self, body: str, attributes: MessageAttributes) -> str:
        """Durably store a message and return its identifier."""
        ...

    def health_check(self) -> dict[str, str]:
        """Report whether the queue is reachable."""
        ...


class BaseQueueHandler(ABC):
    """Abstract base class for queue implementations."""

    def __init__(self, queue_name: str) -> None:
        """
        Initialize the queue handler.

        Args:
            queue_name: Name of the queue
        """
        self.queue_name = queue_name

    @abstractmethod
    def send_message(self, body: str, attributes: MessageAttributes) -> str:
        """Durably store a message and return its identifier."""
        pass

    @abstractmethod
    def health_check(self) -> dict[str, str]:
        """Report whether the queue is reachable."""
        pass


def get_queue_handler(queue_url: str) -> QueueHandler:
    """
    Factory function to get the SQS queue handler for a queue URL.

    Args:
        queue_url: URL of the SQS queue

    Returns:
        Queue handler instance
    """
    # Import here to avoid circular imports
    from service.dal.sqs_handler import SqsQueueHandler

    return SqsQueueHandler(queue_url)


__all__ = [
    'QueueHandler',
    'BaseQueueHandler',
    'get_queue_handler',
]
