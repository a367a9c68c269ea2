"""
Ingestion logic: turn an accepted request into exactly one enqueue call.

No business logic runs on the request path; the body is forwarded verbatim and
processing happens asynchronously in the consumers.
"""

from typing import Mapping, Optional, Tuple

from aws_lambda_powertools.metrics import MetricUnit

from service.dal import QueueHandler
from service.handlers.utils.errors import EnqueueRejectedError, ResourceNotFoundError, create_error_context
from service.handlers.utils.observability import logger, metrics, tracer
from service.models.message import API_GATEWAY_SOURCE, MessageAttributes
from service.models.output import EnqueueAcknowledgment


class IngestionService:
    """Routes request bodies to the queue of their ingestion channel."""

    def __init__(self, queues: Mapping[str, QueueHandler], source: str = API_GATEWAY_SOURCE) -> None:
        """
        Initialize the ingestion service.

        Args:
            queues: Queue handler per ingestion channel
            source: Value stamped on the Source attribute of every message
        """
        self._queues = dict(queues)
        self.source = source

    @property
    def channels(self) -> Tuple[str, ...]:
        return tuple(self._queues)

    @tracer.capture_method
    def enqueue(self, channel: str, body: Optional[str], request_id: str) -> EnqueueAcknowledgment:
        """
        Enqueue a request body on the channel's queue.

        Args:
            channel: Ingestion channel from the request path
            body: Raw request body, forwarded verbatim
            request_id: Correlation id of the inbound request

        Returns:
            Fixed acknowledgment carrying the correlation id

        Raises:
            ResourceNotFoundError: If the channel has no queue
            EnqueueRejectedError: If the queue refuses the message
        """
        queue = self._queues.get(channel)
        if queue is None:
            raise ResourceNotFoundError(
                resource_type='Channel',
                resource_id=channel,
                context=create_error_context(request_id=request_id, operation='enqueue', resource_id=channel),
            )

        attributes = MessageAttributes(source=self.source, request_id=request_id)
        tracer.put_annotation('channel', channel)
        tracer.put_annotation('request_id', request_id)

        try:
            message_id = queue.send_message(body if body is not None else '', attributes)
        except EnqueueRejectedError:
            metrics.add_metric(name='EnqueueRejected', unit=MetricUnit.Count, value=1)
            raise

        metrics.add_metric(name='MessageEnqueued', unit=MetricUnit.Count, value=1)
        logger.info('Request accepted', extra={
            'channel': channel,
            'queue_name': queue.queue_name,
            'message_id': message_id,
            'request_id': request_id,
        })
        return EnqueueAcknowledgment(request_id=request_id)
