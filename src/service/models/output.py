"""
Output models for Lambda responses using Pydantic.

This module defines the acknowledgment returned by the ingest endpoint, the
result record produced for each processed message and the partial batch
failure report returned to the SQS event source.
"""

from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ENQUEUE_SUCCESS_MESSAGE = 'Message sent to queue successfully'


class EnqueueAcknowledgment(BaseModel):
    """Response model for an accepted ingest request."""

    model_config = ConfigDict(populate_by_name=True)

    message: Annotated[str, Field(
        default=ENQUEUE_SUCCESS_MESSAGE,
        description='Fixed acknowledgment text, not a processing result'
    )] = ENQUEUE_SUCCESS_MESSAGE

    request_id: Annotated[str, Field(
        alias='requestId',
        description='Correlation id stamped on the queued message',
        examples=['c6af9ac6-7b61-11e6-9a41-93e8deadbeef']
    )]


class EnhancedDetails(BaseModel):
    """Extra fields added by the enhanced consumer."""

    model_config = ConfigDict(populate_by_name=True)

    processing_delay: Annotated[int, Field(alias='processingDelay', ge=0)]
    special_field: Annotated[str, Field(alias='specialField', examples=['enhanced-4f1a2b'])]
    timestamp: Annotated[int, Field(description='Epoch milliseconds at enhancement time')]


class ProcessedMessage(BaseModel):
    """Result record for a successfully processed queue message."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: Annotated[str, Field(alias='messageId')]
    receipt_handle: Annotated[str, Field(alias='receiptHandle')]
    processing_time: Annotated[str, Field(alias='processingTime', description='ISO 8601 timestamp')]
    source: str
    request_id: Annotated[str, Field(alias='requestId')]
    processed_by: Annotated[str, Field(alias='processedBy', examples=['sample-lambda-2'])]
    data: Annotated[Any, Field(description='Parsed message body')]
    enhanced: Optional[EnhancedDetails] = None


class BatchItemFailure(BaseModel):
    """Identifier of a message that must be redelivered."""

    model_config = ConfigDict(populate_by_name=True)

    item_identifier: Annotated[str, Field(alias='itemIdentifier', min_length=1)]


class BatchReport(BaseModel):
    """Partial batch failure report; an empty list acknowledges the whole batch."""

    model_config = ConfigDict(populate_by_name=True)

    batch_item_failures: Annotated[List[BatchItemFailure], Field(
        alias='batchItemFailures',
        default_factory=list
    )]

    @property
    def failed_identifiers(self) -> List[str]:
        return [failure.item_identifier for failure in self.batch_item_failures]

    @property
    def is_success(self) -> bool:
        return not self.batch_item_failures

    @classmethod
    def all_failed(cls, message_ids: List[str]) -> 'BatchReport':
        """Report every message of a batch as failed."""
        return cls(batch_item_failures=[BatchItemFailure(item_identifier=mid) for mid in message_ids])

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)
