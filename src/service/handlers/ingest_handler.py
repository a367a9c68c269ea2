"""
Ingest Handler - Lambda function behind POST /api/<channel>.

This module implements the handler layer of the ingestion endpoint. It accepts
any body, stamps it with the request's correlation id, enqueues it on the
channel's queue and answers with a fixed acknowledgment; processing happens
asynchronously in the consumers.
"""

import json
from typing import Any, Dict, Optional

from aws_lambda_powertools.event_handler import Response, content_types
from aws_lambda_powertools.logging import correlation_paths
from aws_lambda_powertools.utilities.typing import LambdaContext

from service.dal import get_queue_handler
from service.handlers.models.env_vars import get_ingest_env_vars
from service.handlers.utils.errors import (
    BaseServiceError,
    format_error_response,
    get_http_status_code,
    log_error_metrics,
)
from service.handlers.utils.observability import logger, metrics, tracer
from service.handlers.utils.rest_api_resolver import INGEST_PATH, app
from service.logic.ingestion import IngestionService

_ingestion_service: Optional[IngestionService] = None


def get_ingestion_service() -> IngestionService:
    """Get or create the ingestion service wired to the configured SQS queues."""
    global _ingestion_service

    if _ingestion_service is None:
        env_vars = get_ingest_env_vars()
        queues = {channel: get_queue_handler(url) for channel, url in env_vars.QUEUE_URLS.items()}
        _ingestion_service = IngestionService(queues=queues, source=env_vars.MESSAGE_SOURCE)
        logger.info('Ingestion service initialized', extra={'channels': list(queues)})

    return _ingestion_service


def set_ingestion_service(service: Optional[IngestionService]) -> None:
    """Install the ingestion service used by the handler, or None to rebuild from the environment."""
    global _ingestion_service
    _ingestion_service = service


@app.post(INGEST_PATH)
@tracer.capture_method
def ingest(channel: str) -> Dict[str, Any]:
    """Enqueue the request body on the channel's queue."""
    event = app.current_event
    acknowledgment = get_ingestion_service().enqueue(
        channel=channel,
        body=event.decoded_body,
        request_id=event.request_context.request_id,
    )
    return acknowledgment.model_dump(by_alias=True)


@app.exception_handler(BaseServiceError)
def handle_service_error(error: BaseServiceError) -> Response:
    """Convert service errors to JSON error responses."""
    log_error_metrics(error)
    return Response(
        status_code=get_http_status_code(error),
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(format_error_response(error)),
    )


@metrics.log_metrics(capture_cold_start_metric=True)
@tracer.capture_lambda_handler
@logger.inject_lambda_context(correlation_id_path=correlation_paths.API_GATEWAY_REST)
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Ingest Lambda function handler.

    Args:
        event: API Gateway REST proxy event
        context: Lambda context object

    Returns:
        API Gateway response
    """
    return app.resolve(event, context)
