"""
Queue topology settings shared by the CDK stack and the local queue simulation.
"""

from typing import Annotated, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

SECONDS_PER_DAY = 24 * 60 * 60

# Ingestion channels, each backed by its own queue, dead-letter queue and consumer
CHANNELS: Tuple[str, ...] = ('sample-lambda-1', 'sample-lambda-2')


class QueueTopology(BaseModel):
    """Delivery settings for one queue / dead-letter queue / consumer triple."""

    model_config = ConfigDict(frozen=True)

    visibility_timeout_seconds: Annotated[int, Field(
        default=60,
        ge=0,
        le=43200,
        description='How long a delivered message stays hidden from other consumers'
    )] = 60

    consumer_timeout_seconds: Annotated[int, Field(
        default=30,
        ge=1,
        le=900,
        description='Maximum duration of one consumer invocation'
    )] = 30

    max_receive_count: Annotated[int, Field(
        default=3,
        ge=1,
        le=1000,
        description='Deliveries allowed before a message is moved to the dead-letter queue'
    )] = 3

    retention_period_seconds: Annotated[int, Field(
        default=4 * SECONDS_PER_DAY,
        ge=60,
        le=14 * SECONDS_PER_DAY,
        description='Retention of the primary queue'
    )] = 4 * SECONDS_PER_DAY

    dead_letter_retention_period_seconds: Annotated[int, Field(
        default=14 * SECONDS_PER_DAY,
        ge=60,
        le=14 * SECONDS_PER_DAY,
        description='Retention of the dead-letter queue'
    )] = 14 * SECONDS_PER_DAY

    batch_size: Annotated[int, Field(
        default=10,
        ge=1,
        le=10,
        description='Maximum number of messages per consumer invocation'
    )] = 10

    max_batching_window_seconds: Annotated[int, Field(
        default=5,
        ge=0,
        le=300,
        description='Maximum time spent gathering a batch before invoking the consumer'
    )] = 5

    @model_validator(mode='after')
    def check_visibility_covers_consumer(self) -> 'QueueTopology':
        if self.visibility_timeout_seconds < self.consumer_timeout_seconds:
            raise ValueError(
                'visibility_timeout_seconds must be at least consumer_timeout_seconds '
                f'({self.visibility_timeout_seconds} < {self.consumer_timeout_seconds})'
            )
        return self

    def queue_name(self, channel: str) -> str:
        return f'{channel}-queue'

    def dead_letter_queue_name(self, channel: str) -> str:
        return f'{channel}-dlq'


DEFAULT_TOPOLOGY = QueueTopology()
