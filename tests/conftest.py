"""
Pytest configuration and shared fixtures for the serverless SQS pattern.

This module provides common test fixtures and configuration used across
unit, integration, infrastructure and end-to-end tests.
"""

import os

# Handlers read their configuration at import time; set it before any service import
os.environ.update({
    "AWS_DEFAULT_REGION": "us-east-1",
    "AWS_ACCESS_KEY_ID": "test",
    "AWS_SECRET_ACCESS_KEY": "test",
    "POWERTOOLS_SERVICE_NAME": "test-serverless-sqs-pattern",
    "POWERTOOLS_METRICS_NAMESPACE": "TestServerlessSqsPattern",
    "POWERTOOLS_TRACE_DISABLED": "true",  # Disable X-Ray in tests
    "LOG_LEVEL": "DEBUG",
    "QUEUE_URLS": (
        '{"sample-lambda-1": "https://sqs.us-east-1.amazonaws.com/123456789012/sample-lambda-1-queue", '
        '"sample-lambda-2": "https://sqs.us-east-1.amazonaws.com/123456789012/sample-lambda-2-queue"}'
    ),
})

import uuid
from typing import Any, Callable, Dict, List, Optional

import boto3
import pytest
from moto import mock_aws

from service.dal.in_memory_queue import InMemoryQueue
from service.handlers.utils.local_context import LocalLambdaContext
from service.handlers.utils.observability import metrics
from service.models.message import API_GATEWAY_SOURCE, MessageAttributes
from service.models.queue_topology import DEFAULT_TOPOLOGY, QueueTopology

TEST_CHANNEL = "sample-lambda-1"


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Time and topology fixtures
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def topology() -> QueueTopology:
    return DEFAULT_TOPOLOGY


@pytest.fixture
def channel_queue(clock, topology) -> InMemoryQueue:
    """Primary queue wired to its dead-letter queue with the default topology."""
    return InMemoryQueue.for_channel(TEST_CHANNEL, topology=topology, clock=clock)


@pytest.fixture
def message_attributes() -> MessageAttributes:
    return MessageAttributes(source=API_GATEWAY_SOURCE, request_id="test-request-id-123")


# Lambda fixtures
@pytest.fixture
def lambda_context() -> LocalLambdaContext:
    """Create a Lambda context for testing."""
    return LocalLambdaContext(
        function_name="test-lambda-function",
        aws_request_id="test-request-id-123",
    )


def make_sqs_record(
    body: str,
    message_id: Optional[str] = None,
    source: str = API_GATEWAY_SOURCE,
    request_id: str = "test-request-id-123",
) -> Dict[str, Any]:
    """Build a record of a Lambda SQS event."""
    message_id = message_id or str(uuid.uuid4())
    return {
        "messageId": message_id,
        "receiptHandle": f"receipt-{message_id}",
        "body": body,
        "attributes": {
            "ApproximateReceiveCount": "1",
            "SentTimestamp": "1700000000000",
            "SenderId": "AIDAIENQZJOLO23YVJ4VO",
            "ApproximateFirstReceiveTimestamp": "1700000000001",
        },
        "messageAttributes": MessageAttributes(source=source, request_id=request_id).to_event_attributes(),
        "md5OfBody": "",
        "eventSource": "aws:sqs",
        "eventSourceARN": f"arn:aws:sqs:us-east-1:123456789012:{TEST_CHANNEL}-queue",
        "awsRegion": "us-east-1",
    }


@pytest.fixture
def sqs_record() -> Callable[..., Dict[str, Any]]:
    """Factory building a single SQS event record."""
    return make_sqs_record


@pytest.fixture
def sqs_event() -> Callable[..., Dict[str, Any]]:
    """Factory building an SQS event from message bodies."""

    def build(*bodies: str, message_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        ids = message_ids or [f"msg-{index}" for index in range(len(bodies))]
        return {"Records": [make_sqs_record(body, message_id) for body, message_id in zip(bodies, ids)]}

    return build


@pytest.fixture
def api_gateway_event() -> Callable[..., Dict[str, Any]]:
    """Factory building an API Gateway REST proxy event."""

    def build(
        channel: str = TEST_CHANNEL,
        body: Optional[str] = '{"message": "hello world"}',
        method: str = "POST",
        request_id: str = "test-request-id-123",
    ) -> Dict[str, Any]:
        path = f"/api/{channel}"
        return {
            "resource": "/api/{channel}",
            "path": path,
            "httpMethod": method,
            "headers": {
                "Content-Type": "application/json",
                "User-Agent": "test-agent/1.0",
            },
            "multiValueHeaders": {},
            "body": body,
            "requestContext": {
                "requestId": request_id,
                "accountId": "123456789012",
                "stage": "prod",
                "httpMethod": method,
                "path": f"/prod{path}",
                "resourcePath": "/api/{channel}",
                "protocol": "HTTP/1.1",
                "identity": {
                    "sourceIp": "127.0.0.1",
                    "userAgent": "test-agent/1.0",
                },
            },
            "pathParameters": {"channel": channel},
            "queryStringParameters": None,
            "multiValueQueryStringParameters": None,
            "stageVariables": None,
            "isBase64Encoded": False,
        }

    return build


# SQS fixtures
@pytest.fixture
def sqs_queue():
    """Create a mock SQS queue and yield its client and URL."""
    with mock_aws():
        client = boto3.client("sqs", region_name="us-east-1")
        queue_url = client.create_queue(QueueName=f"{TEST_CHANNEL}-queue")["QueueUrl"]
        yield client, queue_url


# Integration test fixtures
@pytest.fixture
def integration_client():
    """HTTP client for the deployed API; skipped unless API_BASE_URL is set."""
    import httpx

    base_url = os.environ.get("API_BASE_URL")
    if not base_url:
        pytest.skip("API_BASE_URL not set")

    with httpx.Client(base_url=base_url, timeout=30.0) as client:
        yield client


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "infrastructure: CDK stack synthesis tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "benchmark: Performance benchmark tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Add markers based on test location
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "infrastructure" in path:
            item.add_marker(pytest.mark.infrastructure)
        elif "e2e" in path:
            item.add_marker(pytest.mark.e2e)
        elif "benchmark" in path:
            item.add_marker(pytest.mark.benchmark)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset handler singletons and buffered metrics between tests."""
    from service.handlers.ingest_handler import set_ingestion_service

    set_ingestion_service(None)
    metrics.clear_metrics()
    yield
    set_ingestion_service(None)
    metrics.clear_metrics()
