"""
REST API resolver utility for the ingest Lambda handler.

This module provides a configured API Gateway REST resolver with permissive
CORS, matching the API Gateway CORS preflight configuration of the stack.
"""

from aws_lambda_powertools.event_handler import APIGatewayRestResolver, CORSConfig

# API path constants
API_PREFIX = '/api'
INGEST_PATH = f'{API_PREFIX}/<channel>'

cors_config = CORSConfig(
    allow_origin='*',
    max_age=600,
    allow_headers=['content-type', 'x-amz-date', 'authorization', 'x-api-key', 'x-amz-security-token'],
)

app = APIGatewayRestResolver(cors=cors_config, debug=False)
