"""
Ingest Lambda Function - Entry point for POST /api/<channel>.

This module serves as the Lambda function entry point that delegates to the
ingest handler, which enqueues the request body and acknowledges immediately.
"""

import os
import sys
from typing import Any, Dict

# Add the service module to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from aws_lambda_powertools.utilities.typing import LambdaContext
from service.handlers.ingest_handler import lambda_handler as ingest_handler


def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function entry point for the ingestion API.

    Args:
        event: Lambda event payload (API Gateway event)
        context: Lambda context object

    Returns:
        API Gateway response dictionary
    """
    return ingest_handler(event, context)
