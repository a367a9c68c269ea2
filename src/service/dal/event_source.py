"""
Local SQS event source mapping.

Drives a consumer handler from an InMemoryQueue the way the Lambda SQS event
source does: gather a batch, invoke the handler with an SQS event, delete the
messages the handler did not report as failed, and leave everything else to the
queue's redelivery and dead-letter rules.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from service.dal.in_memory_queue import MESSAGE_NOT_INFLIGHT, InMemoryQueue
from service.handlers.utils.errors import QueueError
from service.handlers.utils.local_context import LocalLambdaContext
from service.handlers.utils.observability import logger
from service.models.message import Delivery
from service.models.output import BatchReport
from service.models.queue_topology import DEFAULT_TOPOLOGY, QueueTopology

ConsumerHandler = Callable[[Dict[str, Any], Any], Optional[Dict[str, Any]]]


class BatchOutcome(str, Enum):
    """How the event source settled one consumer invocation."""

    SUCCESS = 'success'
    PARTIAL_FAILURE = 'partial_failure'
    # Handler raised or returned an unusable report: nothing is acknowledged
    INVOCATION_FAILED = 'invocation_failed'
    # Handler ran past the consumer timeout: nothing is acknowledged
    TIMED_OUT = 'timed_out'


@dataclass
class BatchResult:
    """Result of one consumer invocation."""

    outcome: BatchOutcome
    message_ids: List[str]
    acknowledged: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    response: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class LocalEventSource:
    """Polls an InMemoryQueue and feeds batches to a consumer handler."""

    def __init__(
        self,
        queue: InMemoryQueue,
        handler: ConsumerHandler,
        topology: QueueTopology = DEFAULT_TOPOLOGY,
        failure_visibility_timeout: Optional[int] = 0,
        function_name: str = 'local-consumer',
        aws_region: str = 'us-east-1',
    ) -> None:
        """
        Initialize the event source.

        Args:
            queue: Queue to drain
            handler: Consumer Lambda handler
            topology: Batch size and consumer timeout settings
            failure_visibility_timeout: Visibility applied to reported failures;
                None leaves them hidden until their visibility window expires
            function_name: Name exposed through the Lambda context
            aws_region: Region written into the event records

        Raises:
            QueueError: If the queue hides deliveries for less than the consumer timeout
        """
        if queue.visibility_timeout_seconds < topology.consumer_timeout_seconds:
            raise QueueError(
                f'Visibility timeout of {queue.queue_name} ({queue.visibility_timeout_seconds}s) '
                f'is shorter than the consumer timeout ({topology.consumer_timeout_seconds}s)'
            )
        self.queue = queue
        self.handler = handler
        self.batch_size = topology.batch_size
        self.consumer_timeout_seconds = topology.consumer_timeout_seconds
        self.failure_visibility_timeout = failure_visibility_timeout
        self.function_name = function_name
        self.aws_region = aws_region

    def poll(self) -> Optional[BatchResult]:
        """Run one invocation; returns None when no message is visible."""
        deliveries = self.queue.receive_messages(max_messages=self.batch_size)
        if not deliveries:
            return None

        message_ids = [delivery.message_id for delivery in deliveries]
        event = {
            'Records': [
                delivery.to_sqs_record(self.queue.queue_arn, self.aws_region)
                for delivery in deliveries
            ]
        }
        context = LocalLambdaContext(
            function_name=self.function_name,
            timeout_seconds=self.consumer_timeout_seconds,
        )

        started = self.queue.clock()
        try:
            response = self.handler(event, context)
        except Exception as e:
            logger.exception('Consumer invocation failed, batch left for redelivery', extra={
                'queue_name': self.queue.queue_name,
                'message_ids': message_ids,
            })
            return BatchResult(BatchOutcome.INVOCATION_FAILED, message_ids, failed=message_ids, error=str(e))

        if self.queue.clock() - started > self.consumer_timeout_seconds:
            logger.warning('Consumer invocation exceeded its timeout, batch left for redelivery', extra={
                'queue_name': self.queue.queue_name,
                'timeout_seconds': self.consumer_timeout_seconds,
            })
            return BatchResult(BatchOutcome.TIMED_OUT, message_ids, failed=message_ids, response=response)

        try:
            report = BatchReport.model_validate(response or {})
        except PydanticValidationError as e:
            logger.error('Consumer returned a malformed batch report', extra={'response': response})
            return BatchResult(
                BatchOutcome.INVOCATION_FAILED, message_ids, failed=message_ids, response=response, error=str(e)
            )

        failed = set(report.failed_identifiers)
        unknown = failed.difference(message_ids)
        if unknown:
            logger.error('Batch report names messages outside the batch', extra={'unknown': sorted(unknown)})
            return BatchResult(
                BatchOutcome.INVOCATION_FAILED,
                message_ids,
                failed=message_ids,
                response=response,
                error=f'unknown item identifiers: {sorted(unknown)}',
            )

        return self._settle(deliveries, failed, response)

    def drain(self, max_invocations: int = 100) -> List[BatchResult]:
        """Poll until no message is visible or max_invocations is reached."""
        results: List[BatchResult] = []
        for _ in range(max_invocations):
            result = self.poll()
            if result is None:
                break
            results.append(result)
        return results

    def _settle(self, deliveries: List[Delivery], failed: set, response: Optional[Dict[str, Any]]) -> BatchResult:
        acknowledged: List[str] = []
        failed_ids: List[str] = []
        for delivery in deliveries:
            if delivery.message_id in failed:
                failed_ids.append(delivery.message_id)
                if self.failure_visibility_timeout is not None:
                    self._release(delivery)
            else:
                self.queue.delete_message(delivery.receipt_handle)
                acknowledged.append(delivery.message_id)

        outcome = BatchOutcome.PARTIAL_FAILURE if failed_ids else BatchOutcome.SUCCESS
        logger.info('Batch settled', extra={
            'queue_name': self.queue.queue_name,
            'outcome': outcome.value,
            'acknowledged': len(acknowledged),
            'failed': len(failed_ids),
        })
        return BatchResult(
            outcome,
            [delivery.message_id for delivery in deliveries],
            acknowledged=acknowledged,
            failed=failed_ids,
            response=response,
        )

    def _release(self, delivery: Delivery) -> None:
        try:
            self.queue.change_message_visibility(delivery.receipt_handle, self.failure_visibility_timeout)
        except QueueError as e:
            # A lapsed visibility window already made the message visible again
            if e.error_code != MESSAGE_NOT_INFLIGHT:
                raise
            logger.debug('Failed message already visible again', extra={
                'queue_name': self.queue.queue_name,
                'message_id': delivery.message_id,
            })
