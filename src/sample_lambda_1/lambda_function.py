"""
Sample Lambda 1 - Consumer of the sample-lambda-1 queue.

Parses each message, simulates a short unit of work and reports failed
messages back to the event source for redelivery.
"""

import os
import sys
from typing import Any, Dict

# Add the service module to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aws_lambda_powertools.utilities.typing import LambdaContext
from service.handlers.consumer_handler import make_lambda_handler
from service.handlers.models.env_vars import get_consumer_env_vars
from service.logic.message_processor import MessageProcessor

PROCESSED_BY = 'sample-lambda-1'
DEFAULT_PROCESSING_DELAY_MS = 50


def build_processor() -> MessageProcessor:
    """Create the processor, honoring PROCESSING_DELAY_MS when it is set."""
    delay_ms = get_consumer_env_vars().PROCESSING_DELAY_MS
    return MessageProcessor(
        processed_by=PROCESSED_BY,
        processing_delay_ms=DEFAULT_PROCESSING_DELAY_MS if delay_ms is None else delay_ms,
    )


consumer_handler = make_lambda_handler(build_processor(), queue_url=get_consumer_env_vars().QUEUE_URL)


def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function entry point for the sample-lambda-1 queue.

    Args:
        event: SQS event with up to one batch of records
        context: Lambda context object

    Returns:
        Partial batch failure report
    """
    return consumer_handler(event, context)
