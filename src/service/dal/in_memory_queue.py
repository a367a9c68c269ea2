"""
In-memory queue with SQS delivery semantics.

Implements the reliability contract the consumers depend on without any AWS
resources: durable enqueue, visibility windows with per-delivery receipt
handles, receive counting, redrive to a dead-letter queue once the receive
threshold is reached, and retention expiry. Time comes from an injected clock
so tests can move it forward explicitly.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from service.dal import BaseQueueHandler
from service.handlers.utils.errors import (
    EnqueueRejectedError,
    InvalidReceiptHandleError,
    QueueError,
    create_error_context,
)
from service.handlers.utils.observability import logger
from service.models.message import DeadLetterEntry, Delivery, MessageAttributes, QueuedMessage
from service.models.queue_topology import DEFAULT_TOPOLOGY, QueueTopology

Clock = Callable[[], float]

MAX_MESSAGE_SIZE_BYTES = 256 * 1024
MAX_RECEIVE_BATCH = 10
MAX_VISIBILITY_TIMEOUT_SECONDS = 43200
MESSAGE_NOT_INFLIGHT = 'MESSAGE_NOT_INFLIGHT'


@dataclass
class _StoredMessage:
    message: QueuedMessage
    enqueued_at: float
    receive_count: int = 0
    visible_at: float = 0.0
    receipt_handle: Optional[str] = None
    first_received_at: Optional[float] = None
    dead_lettered_from: Optional[str] = None
    moved_at: Optional[float] = None


def _as_datetime(epoch_seconds: float) -> datetime:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)


class InMemoryQueue(BaseQueueHandler):
    """Single-process queue honoring SQS standard-queue delivery semantics."""

    def __init__(
        self,
        queue_name: str,
        visibility_timeout_seconds: int = DEFAULT_TOPOLOGY.visibility_timeout_seconds,
        retention_period_seconds: int = DEFAULT_TOPOLOGY.retention_period_seconds,
        dead_letter_queue: Optional['InMemoryQueue'] = None,
        max_receive_count: Optional[int] = None,
        clock: Clock = time.time,
    ) -> None:
        """
        Initialize the queue.

        Args:
            queue_name: Name of the queue
            visibility_timeout_seconds: Default time a delivered message stays hidden
            retention_period_seconds: Age after which a message is discarded
            dead_letter_queue: Queue receiving messages past the receive threshold
            max_receive_count: Deliveries allowed before redrive to the dead-letter queue
            clock: Callable returning the current time in epoch seconds
        """
        super().__init__(queue_name)
        if (dead_letter_queue is None) != (max_receive_count is None):
            raise QueueError('dead_letter_queue and max_receive_count must be configured together')
        if max_receive_count is not None and max_receive_count < 1:
            raise QueueError('max_receive_count must be at least 1')

        self.visibility_timeout_seconds = visibility_timeout_seconds
        self.retention_period_seconds = retention_period_seconds
        self.dead_letter_queue = dead_letter_queue
        self.max_receive_count = max_receive_count
        self.clock = clock
        self._messages: Dict[str, _StoredMessage] = {}

    @classmethod
    def for_channel(
        cls,
        channel: str,
        topology: QueueTopology = DEFAULT_TOPOLOGY,
        clock: Clock = time.time,
    ) -> 'InMemoryQueue':
        """Build a primary queue and its dead-letter queue for an ingestion channel."""
        dead_letter_queue = cls(
            topology.dead_letter_queue_name(channel),
            visibility_timeout_seconds=topology.visibility_timeout_seconds,
            retention_period_seconds=topology.dead_letter_retention_period_seconds,
            clock=clock,
        )
        return cls(
            topology.queue_name(channel),
            visibility_timeout_seconds=topology.visibility_timeout_seconds,
            retention_period_seconds=topology.retention_period_seconds,
            dead_letter_queue=dead_letter_queue,
            max_receive_count=topology.max_receive_count,
            clock=clock,
        )

    @property
    def queue_arn(self) -> str:
        return f'arn:aws:sqs:local:000000000000:{self.queue_name}'

    def send_message(self, body: str, attributes: MessageAttributes) -> str:
        """
        Store a message.

        Returns:
            The message id

        Raises:
            EnqueueRejectedError: If the body is empty or too large
        """
        if not isinstance(body, str) or not body:
            self._reject('Message body must be a non-empty string', attributes)
        if len(body.encode('utf-8')) > MAX_MESSAGE_SIZE_BYTES:
            self._reject(f'Message body exceeds {MAX_MESSAGE_SIZE_BYTES} bytes', attributes)

        now = self.clock()
        message = QueuedMessage(
            message_id=str(uuid.uuid4()),
            body=body,
            attributes=attributes,
            sent_at=_as_datetime(now),
        )
        self._messages[message.message_id] = _StoredMessage(message=message, enqueued_at=now, visible_at=now)

        logger.debug('Message stored', extra={
            'queue_name': self.queue_name,
            'message_id': message.message_id,
            'request_id': attributes.request_id,
        })
        return message.message_id

    def receive_messages(
        self,
        max_messages: int = 1,
        visibility_timeout: Optional[int] = None,
    ) -> List[Delivery]:
        """
        Deliver up to max_messages visible messages.

        Every delivery gets a fresh receipt handle and hides the message for the
        visibility timeout. A message that was already delivered
        max_receive_count times is moved to the dead-letter queue instead.
        """
        if not 1 <= max_messages <= MAX_RECEIVE_BATCH:
            raise QueueError(f'max_messages must be between 1 and {MAX_RECEIVE_BATCH}')
        timeout = self.visibility_timeout_seconds if visibility_timeout is None else visibility_timeout
        self._check_visibility_timeout(timeout)

        now = self.clock()
        self._expire(now)

        deliveries: List[Delivery] = []
        for stored in list(self._messages.values()):
            if len(deliveries) >= max_messages:
                break
            if stored.visible_at > now:
                continue
            if self.max_receive_count is not None and stored.receive_count >= self.max_receive_count:
                self._move_to_dead_letter_queue(stored, now)
                continue

            stored.receive_count += 1
            stored.receipt_handle = uuid.uuid4().hex
            stored.visible_at = now + timeout
            if stored.first_received_at is None:
                stored.first_received_at = now

            deliveries.append(Delivery(
                message_id=stored.message.message_id,
                receipt_handle=stored.receipt_handle,
                body=stored.message.body,
                attributes=stored.message.attributes,
                receive_count=stored.receive_count,
                sent_at=stored.message.sent_at,
                first_received_at=_as_datetime(stored.first_received_at),
            ))

        return deliveries

    def delete_message(self, receipt_handle: str) -> None:
        """Acknowledge a delivery, removing the message for good."""
        stored = self._find_by_receipt_handle(receipt_handle)
        del self._messages[stored.message.message_id]
        logger.debug('Message deleted', extra={
            'queue_name': self.queue_name,
            'message_id': stored.message.message_id,
        })

    def change_message_visibility(self, receipt_handle: str, visibility_timeout: int) -> None:
        """Reset the visibility window of an in-flight delivery; 0 makes it visible now."""
        self._check_visibility_timeout(visibility_timeout)
        stored = self._find_by_receipt_handle(receipt_handle)
        now = self.clock()
        if stored.visible_at <= now:
            raise QueueError(
                f'Message {stored.message.message_id} is not in flight',
                error_code=MESSAGE_NOT_INFLIGHT,
            )
        stored.visible_at = now + visibility_timeout

    def approximate_number_of_messages(self) -> int:
        now = self.clock()
        self._expire(now)
        return sum(1 for stored in self._messages.values() if stored.visible_at <= now)

    def approximate_number_of_messages_not_visible(self) -> int:
        now = self.clock()
        self._expire(now)
        return sum(1 for stored in self._messages.values() if stored.visible_at > now)

    def dead_letters(self) -> List[DeadLetterEntry]:
        """Messages this queue received through redrive, oldest first."""
        self._expire(self.clock())
        return [
            DeadLetterEntry(
                message=stored.message,
                receive_count=stored.receive_count,
                source_queue=stored.dead_lettered_from,
                moved_at=_as_datetime(stored.moved_at),
            )
            for stored in self._messages.values()
            if stored.dead_lettered_from is not None
        ]

    def purge(self) -> None:
        self._messages.clear()

    def health_check(self) -> dict[str, str]:
        return {
            'status': 'healthy',
            'queue_name': self.queue_name,
            'approximate_messages': str(self.approximate_number_of_messages()),
        }

    def _accept_redrive(self, stored: _StoredMessage, source_queue: str, now: float) -> None:
        # Retention keeps counting from the original enqueue time
        self._messages[stored.message.message_id] = _StoredMessage(
            message=stored.message,
            enqueued_at=stored.enqueued_at,
            receive_count=stored.receive_count,
            visible_at=now,
            dead_lettered_from=source_queue,
            moved_at=now,
        )

    def _move_to_dead_letter_queue(self, stored: _StoredMessage, now: float) -> None:
        del self._messages[stored.message.message_id]
        self.dead_letter_queue._accept_redrive(stored, self.queue_name, now)
        logger.warning('Message moved to dead-letter queue', extra={
            'queue_name': self.queue_name,
            'dead_letter_queue': self.dead_letter_queue.queue_name,
            'message_id': stored.message.message_id,
            'receive_count': stored.receive_count,
        })

    def _expire(self, now: float) -> None:
        expired = [
            message_id for message_id, stored in self._messages.items()
            if now - stored.enqueued_at >= self.retention_period_seconds
        ]
        for message_id in expired:
            del self._messages[message_id]
            logger.info('Message discarded after retention period', extra={
                'queue_name': self.queue_name,
                'message_id': message_id,
            })

    def _find_by_receipt_handle(self, receipt_handle: str) -> _StoredMessage:
        self._expire(self.clock())
        for stored in self._messages.values():
            if stored.receipt_handle is not None and stored.receipt_handle == receipt_handle:
                return stored
        raise InvalidReceiptHandleError(receipt_handle)

    def _check_visibility_timeout(self, timeout: int) -> None:
        if not 0 <= timeout <= MAX_VISIBILITY_TIMEOUT_SECONDS:
            raise QueueError(f'visibility timeout must be between 0 and {MAX_VISIBILITY_TIMEOUT_SECONDS}')

    def _reject(self, reason: str, attributes: MessageAttributes) -> None:
        logger.error('Queue rejected message', extra={'queue_name': self.queue_name, 'reason': reason})
        raise EnqueueRejectedError(
            message=reason,
            queue_name=self.queue_name,
            context=create_error_context(
                request_id=attributes.request_id,
                operation='send_message',
                resource_id=self.queue_name,
            ),
        )
