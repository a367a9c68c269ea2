"""
Queued message domain models.

This module defines the message, delivery and dead-letter entities that move
between the ingest endpoint, the queue and the batch consumers.
"""

import hashlib
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

# Message attribute names stamped by the ingest endpoint
SOURCE_ATTRIBUTE = 'Source'
REQUEST_ID_ATTRIBUTE = 'RequestId'

# Value of the Source attribute for messages accepted through the REST API
API_GATEWAY_SOURCE = 'API-Gateway'

UNKNOWN_ATTRIBUTE_VALUE = 'unknown'


def _string_attribute(value: str) -> Dict[str, Any]:
    return {
        'stringValue': value,
        'stringListValues': [],
        'binaryListValues': [],
        'dataType': 'String',
    }


class MessageAttributes(BaseModel):
    """Fixed set of string attributes carried by every queued message."""

    model_config = ConfigDict(frozen=True)

    source: Annotated[str, Field(
        min_length=1,
        description='Static tag identifying the ingestion channel',
        examples=[API_GATEWAY_SOURCE]
    )]

    request_id: Annotated[str, Field(
        min_length=1,
        description='Correlation id of the request that enqueued the message',
        examples=['c6af9ac6-7b61-11e6-9a41-93e8deadbeef']
    )]

    def to_sqs_attributes(self) -> Dict[str, Dict[str, str]]:
        """Render the attributes in the SQS SendMessage format."""
        return {
            SOURCE_ATTRIBUTE: {'DataType': 'String', 'StringValue': self.source},
            REQUEST_ID_ATTRIBUTE: {'DataType': 'String', 'StringValue': self.request_id},
        }

    def to_event_attributes(self) -> Dict[str, Dict[str, Any]]:
        """Render the attributes the way Lambda presents them in an SQS event record."""
        return {
            SOURCE_ATTRIBUTE: _string_attribute(self.source),
            REQUEST_ID_ATTRIBUTE: _string_attribute(self.request_id),
        }

    @classmethod
    def from_event_attributes(cls, raw: Optional[Dict[str, Any]]) -> 'MessageAttributes':
        """Read attributes from an SQS event record, tolerating missing keys."""
        raw = raw or {}

        def value_of(name: str) -> str:
            value = (raw.get(name) or {}).get('stringValue')
            return value or UNKNOWN_ATTRIBUTE_VALUE

        return cls(source=value_of(SOURCE_ATTRIBUTE), request_id=value_of(REQUEST_ID_ATTRIBUTE))


class QueuedMessage(BaseModel):
    """A message durably stored in a queue."""

    message_id: Annotated[str, Field(description='Identifier assigned by the queue at enqueue time')]

    body: Annotated[str, Field(description='Opaque payload, stored verbatim')]

    attributes: MessageAttributes

    sent_at: Annotated[datetime, Field(description='When the queue accepted the message')]

    @property
    def md5_of_body(self) -> str:
        return hashlib.md5(self.body.encode('utf-8')).hexdigest()


class Delivery(BaseModel):
    """One delivery attempt of a queued message."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    receipt_handle: Annotated[str, Field(description='Ownership token of this delivery attempt')]
    body: str
    attributes: MessageAttributes
    receive_count: Annotated[int, Field(ge=1)]
    sent_at: datetime
    first_received_at: datetime

    def to_sqs_record(self, queue_arn: str, aws_region: str = 'us-east-1') -> Dict[str, Any]:
        """Render the delivery as a record of a Lambda SQS event."""
        return {
            'messageId': self.message_id,
            'receiptHandle': self.receipt_handle,
            'body': self.body,
            'attributes': {
                'ApproximateReceiveCount': str(self.receive_count),
                'SentTimestamp': str(_epoch_millis(self.sent_at)),
                'SenderId': 'local',
                'ApproximateFirstReceiveTimestamp': str(_epoch_millis(self.first_received_at)),
            },
            'messageAttributes': self.attributes.to_event_attributes(),
            'md5OfBody': hashlib.md5(self.body.encode('utf-8')).hexdigest(),
            'eventSource': 'aws:sqs',
            'eventSourceARN': queue_arn,
            'awsRegion': aws_region,
        }


class DeadLetterEntry(BaseModel):
    """A message relocated to the dead-letter holding area."""

    message: QueuedMessage
    receive_count: Annotated[int, Field(ge=0, description='Deliveries made before relocation')]
    source_queue: str
    moved_at: datetime


def _epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)
