"""
Amazon SQS implementation of the queue handler.

Messages are sent with their body untouched and the two string attributes the
consumers rely on for tracing.
"""

from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from service.dal import BaseQueueHandler
from service.handlers.utils.errors import EnqueueRejectedError, create_error_context
from service.handlers.utils.observability import logger, tracer
from service.models.message import MessageAttributes


class SqsQueueHandler(BaseQueueHandler):
    """SQS implementation of the queue handler."""

    def __init__(self, queue_url: str, sqs_client: Optional[object] = None) -> None:
        """
        Initialize the SQS handler.

        Args:
            queue_url: URL of the SQS queue
            sqs_client: Optional pre-built boto3 SQS client
        """
        super().__init__(queue_url.rstrip('/').rsplit('/', 1)[-1])
        self.queue_url = queue_url
        self.sqs = sqs_client or boto3.client('sqs')
        logger.debug(f'SQS handler initialized for queue: {self.queue_name}')

    @tracer.capture_method
    def send_message(self, body: str, attributes: MessageAttributes) -> str:
        """
        Send a message to the queue.

        Args:
            body: Message body, forwarded verbatim
            attributes: Source and correlation attributes

        Returns:
            The message id assigned by SQS

        Raises:
            EnqueueRejectedError: If SQS refuses the message
        """
        try:
            response = self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=body,
                MessageAttributes=attributes.to_sqs_attributes(),
            )
        except ClientError as e:
            error_code = e.response['Error']['Code']
            logger.error(f'SQS rejected message: {error_code}', extra={
                'error': str(e),
                'queue_name': self.queue_name,
                'request_id': attributes.request_id,
            })
            raise EnqueueRejectedError(
                message=f'SQS rejected message: {error_code}',
                queue_name=self.queue_name,
                context=create_error_context(
                    request_id=attributes.request_id,
                    operation='send_message',
                    resource_id=self.queue_name,
                ),
            ) from e
        except BotoCoreError as e:
            logger.error(f'Unable to reach SQS: {e}', extra={'queue_name': self.queue_name})
            raise EnqueueRejectedError(
                message=f'Unable to reach SQS: {e}',
                queue_name=self.queue_name,
            ) from e

        message_id = response['MessageId']
        logger.info('Message enqueued', extra={
            'message_id': message_id,
            'queue_name': self.queue_name,
            'request_id': attributes.request_id,
        })
        tracer.put_annotation('message_id', message_id)
        return message_id

    @tracer.capture_method
    def health_check(self) -> dict[str, str]:
        """Check that the queue exists and report its depth."""
        try:
            response = self.sqs.get_queue_attributes(
                QueueUrl=self.queue_url,
                AttributeNames=['ApproximateNumberOfMessages'],
            )
            return {
                'status': 'healthy',
                'queue_name': self.queue_name,
                'approximate_messages': response['Attributes'].get('ApproximateNumberOfMessages', '0'),
            }
        except (ClientError, BotoCoreError) as e:
            logger.warning('SQS health check failed', extra={'error': str(e), 'queue_name': self.queue_name})
            return {'status': 'unhealthy', 'queue_name': self.queue_name, 'error': str(e)}
