"""
AWS Lambda Handlers Module.

This module contains the Lambda function handlers that serve as entry points
for the serverless application. Each handler follows the three-layer
architecture pattern:

1. Handler Layer (this module): Event parsing, response shaping, observability
2. Logic Layer: Ingestion routing and per-message processing
3. Data Access Layer: Queues

Handler Types:
- REST API handler: accepts POST /api/<channel> and enqueues the body
- SQS handlers: drain a queue in batches with partial failure reporting
"""

__version__ = "1.0.0"

# Re-export handler utilities for convenience
from service.handlers.utils.observability import logger, tracer, metrics

__all__ = [
    "logger",
    "tracer",
    "metrics",
]
