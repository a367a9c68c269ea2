"""
Environment variable models for type-safe configuration.

This module defines Pydantic models for the environment variables read by the
ingest and consumer Lambda handlers, validated through aws-lambda-env-modeler.
"""

from typing import Annotated, Dict, Optional

from aws_lambda_env_modeler import get_environment_variables
from pydantic import BaseModel, Field, Json


class ObservabilityEnvVars(BaseModel):
    """Environment variables shared by every handler."""

    # Service name for observability
    POWERTOOLS_SERVICE_NAME: Annotated[str, Field(
        default='serverless-sqs-pattern',
        description='Service name for AWS Powertools'
    )] = 'serverless-sqs-pattern'

    # Log level for AWS Powertools Logger
    LOG_LEVEL: Annotated[str, Field(
        default='INFO',
        description='Log level for application logging',
        pattern=r'^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$'
    )] = 'INFO'


class IngestEnvVars(ObservabilityEnvVars):
    """Environment variables for the ingest handler."""

    # Channel name -> SQS queue URL, e.g. {"sample-lambda-1": "https://sqs..."}
    QUEUE_URLS: Annotated[Json[Dict[str, str]], Field(
        description='JSON object mapping ingestion channels to SQS queue URLs'
    )]

    # Static value stamped on the Source message attribute
    MESSAGE_SOURCE: Annotated[str, Field(
        default='API-Gateway',
        min_length=1,
        description='Source attribute value identifying the ingestion channel'
    )] = 'API-Gateway'


class ConsumerEnvVars(ObservabilityEnvVars):
    """Environment variables for the batch consumer handlers."""

    QUEUE_URL: Annotated[str, Field(
        default='',
        description='URL of the queue this consumer drains'
    )] = ''

    # Unset means the consumer keeps its own default latency
    PROCESSING_DELAY_MS: Annotated[Optional[int], Field(
        default=None,
        description='Simulated per-message processing latency in milliseconds',
        ge=0,
        le=10000
    )] = None


def get_ingest_env_vars() -> IngestEnvVars:
    """
    Get typed environment variables for the ingest handler.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=IngestEnvVars)


def get_consumer_env_vars() -> ConsumerEnvVars:
    """Get typed environment variables for a consumer handler."""
    return get_environment_variables(model=ConsumerEnvVars)
