"""
Per-message transformation run by the batch consumers.

Each record is handled on its own: a record that cannot be parsed or processed
raises, and the batch processor reports only that record as failed.
"""

import json
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from aws_lambda_powertools.utilities.data_classes.sqs_event import SQSRecord

from service.handlers.utils.errors import MessageProcessingError
from service.handlers.utils.observability import logger, tracer
from service.models.message import MessageAttributes
from service.models.output import EnhancedDetails, ProcessedMessage


class MessageProcessor:
    """Parses a queued message, simulates work and builds its result record."""

    def __init__(
        self,
        processed_by: str,
        processing_delay_ms: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the processor.

        Args:
            processed_by: Name written into every result record
            processing_delay_ms: Simulated latency per message
            sleep: Sleep function, replaceable in tests
        """
        self.processed_by = processed_by
        self.processing_delay_ms = processing_delay_ms
        self._sleep = sleep

    @tracer.capture_method
    def process_record(self, record: SQSRecord) -> Dict[str, Any]:
        """
        Process one SQS record.

        Raises:
            MessageProcessingError: If the body is not valid JSON
        """
        message_id = record.message_id
        logger.info(f'Processing message: {message_id}')

        try:
            data = json.loads(record.body)
        except (TypeError, ValueError) as e:
            logger.error(f'Error processing message {message_id}', extra={'error': str(e)})
            raise MessageProcessingError(
                message=f'Message body is not valid JSON: {e}',
                message_id=message_id,
            ) from e

        logger.info('Message body', extra={'message_id': message_id, 'body': data})

        if self.processing_delay_ms:
            self._sleep(self.processing_delay_ms / 1000)

        attributes = MessageAttributes.from_event_attributes(record.raw_event.get('messageAttributes'))
        processed = ProcessedMessage(
            message_id=message_id,
            receipt_handle=record.receipt_handle,
            processing_time=datetime.now(timezone.utc).isoformat(),
            source=attributes.source,
            request_id=attributes.request_id,
            processed_by=self.processed_by,
            data=data,
            enhanced=self.enhance(record),
        )

        logger.info('Processing completed', extra={'processed': processed.model_dump(by_alias=True)})
        return processed.model_dump(by_alias=True)

    def enhance(self, record: SQSRecord) -> Optional[EnhancedDetails]:
        return None


class EnhancedMessageProcessor(MessageProcessor):
    """Processor that decorates every result with an enhanced block."""

    def enhance(self, record: SQSRecord) -> Optional[EnhancedDetails]:
        return EnhancedDetails(
            processing_delay=self.processing_delay_ms,
            special_field=f'enhanced-{record.message_id[-6:]}',
            timestamp=int(time.time() * 1000),
        )
