"""
Integration tests for the ingest handler.

This module drives the REST resolver with API Gateway proxy events and checks
what lands on the queues.
"""

import json

import boto3
import pytest
from moto import mock_aws

from service.dal.sqs_handler import SqsQueueHandler
from service.handlers.ingest_handler import get_ingestion_service, lambda_handler, set_ingestion_service
from service.logic.ingestion import IngestionService


@pytest.fixture
def ingestion_service(channel_queue):
    service = IngestionService(queues={"sample-lambda-1": channel_queue})
    set_ingestion_service(service)
    return service


class TestIngestHandler:
    """Integration tests for POST /api/<channel>."""

    def test_accepts_and_enqueues(self, ingestion_service, channel_queue, api_gateway_event, lambda_context):
        """Test the acknowledgment and the single queued message."""
        event = api_gateway_event(body='{"message": "hello world"}', request_id="req-abc")

        response = lambda_handler(event, lambda_context)

        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {
            "message": "Message sent to queue successfully",
            "requestId": "req-abc",
        }

        [delivery] = channel_queue.receive_messages(max_messages=10)
        assert delivery.body == '{"message": "hello world"}'
        assert delivery.attributes.source == "API-Gateway"
        assert delivery.attributes.request_id == "req-abc"

    def test_non_json_body_accepted(self, ingestion_service, channel_queue, api_gateway_event, lambda_context):
        """Test that the endpoint forwards bodies without validating them."""
        response = lambda_handler(api_gateway_event(body="plain text"), lambda_context)

        assert response["statusCode"] == 200
        [delivery] = channel_queue.receive_messages()
        assert delivery.body == "plain text"

    def test_unknown_channel_returns_404(self, ingestion_service, channel_queue, api_gateway_event, lambda_context):
        response = lambda_handler(api_gateway_event(channel="no-such-channel"), lambda_context)

        assert response["statusCode"] == 404
        assert json.loads(response["body"])["error"]["code"] == "RESOURCE_NOT_FOUND"
        assert channel_queue.approximate_number_of_messages() == 0

    def test_rejected_enqueue_returns_500(self, ingestion_service, channel_queue, api_gateway_event, lambda_context):
        """Test that a request the queue refuses is not acknowledged."""
        response = lambda_handler(api_gateway_event(body=None), lambda_context)

        assert response["statusCode"] == 500
        body = json.loads(response["body"])
        assert body["error"]["code"] == "ENQUEUE_REJECTED"
        assert "requestId" not in body
        assert channel_queue.approximate_number_of_messages() == 0

    def test_cors_headers(self, ingestion_service, api_gateway_event, lambda_context):
        event = api_gateway_event()
        event["headers"]["Origin"] = "https://example.com"

        response = lambda_handler(event, lambda_context)

        headers = {
            **{name: values[0] for name, values in (response.get("multiValueHeaders") or {}).items()},
            **(response.get("headers") or {}),
        }
        assert headers["Access-Control-Allow-Origin"] in ("*", "https://example.com")

    def test_entry_point_delegates(self, ingestion_service, channel_queue, api_gateway_event, lambda_context):
        from ingest.lambda_function import lambda_handler as entry_point

        response = entry_point(api_gateway_event(), lambda_context)

        assert response["statusCode"] == 200
        assert channel_queue.approximate_number_of_messages() == 1


class TestIngestionServiceFromEnvironment:
    """Tests for the SQS-backed service built from QUEUE_URLS."""

    def test_service_wired_to_configured_queues(self, api_gateway_event, lambda_context):
        with mock_aws():
            client = boto3.client("sqs", region_name="us-east-1")
            for channel in ("sample-lambda-1", "sample-lambda-2"):
                client.create_queue(QueueName=f"{channel}-queue")

            service = get_ingestion_service()
            response = lambda_handler(api_gateway_event(channel="sample-lambda-2", request_id="req-env"), lambda_context)

            queue_url = client.get_queue_url(QueueName="sample-lambda-2-queue")["QueueUrl"]
            messages = client.receive_message(QueueUrl=queue_url, MessageAttributeNames=["All"])["Messages"]

        assert set(service.channels) == {"sample-lambda-1", "sample-lambda-2"}
        assert response["statusCode"] == 200
        assert len(messages) == 1
        assert messages[0]["Body"] == '{"message": "hello world"}'
        assert messages[0]["MessageAttributes"]["RequestId"]["StringValue"] == "req-env"
        assert messages[0]["MessageAttributes"]["Source"]["StringValue"] == "API-Gateway"


class TestSqsQueueHandler:
    """Integration tests for the SQS queue handler."""

    def test_send_message(self, sqs_queue, message_attributes):
        """Test that the body and attributes reach SQS unchanged."""
        client, queue_url = sqs_queue
        handler = SqsQueueHandler(queue_url, sqs_client=client)
        body = '{"message": "hello world"}'

        message_id = handler.send_message(body, message_attributes)

        [message] = client.receive_message(QueueUrl=queue_url, MessageAttributeNames=["All"])["Messages"]
        assert handler.queue_name == "sample-lambda-1-queue"
        assert message["MessageId"] == message_id
        assert message["Body"] == body
        assert message["MessageAttributes"]["RequestId"]["StringValue"] == "test-request-id-123"

    def test_missing_queue_rejects(self, sqs_queue, message_attributes):
        from service.handlers.utils.errors import EnqueueRejectedError

        client, queue_url = sqs_queue
        handler = SqsQueueHandler(f"{queue_url}-missing", sqs_client=client)

        with pytest.raises(EnqueueRejectedError) as exc_info:
            handler.send_message("x", message_attributes)

        assert exc_info.value.queue_name == "sample-lambda-1-queue-missing"
        assert exc_info.value.context.request_id == "test-request-id-123"

    def test_health_check(self, sqs_queue):
        client, queue_url = sqs_queue

        assert SqsQueueHandler(queue_url, sqs_client=client).health_check()["status"] == "healthy"
        assert SqsQueueHandler(f"{queue_url}-missing", sqs_client=client).health_check()["status"] == "unhealthy"
