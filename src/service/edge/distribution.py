"""
In-process model of the edge layer.

A Distribution applies the per-IP rate filter before anything else, then routes
by path prefix: /api/* goes to the API origin (the ingest Lambda handler invoked
with an API Gateway REST proxy event), every other path to the static asset
origin. Rejected requests never reach an origin, so nothing is enqueued for them.
"""

import json
import mimetypes
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Union
from urllib.parse import parse_qsl, urlsplit

from service.edge.rate_limiter import RateLimiter
from service.handlers.utils.errors import RateLimitError, format_error_response
from service.handlers.utils.local_context import LocalLambdaContext
from service.handlers.utils.observability import logger

API_PATH_PREFIX = '/api/'

# Non text/* content types served as decoded text
TEXT_CONTENT_TYPES = frozenset({
    'application/javascript',
    'application/json',
    'application/xml',
    'image/svg+xml',
})


def is_text_content_type(content_type: str) -> bool:
    return content_type.startswith('text/') or content_type in TEXT_CONTENT_TYPES


@dataclass
class EdgeRequest:
    """A viewer request arriving at the distribution."""

    method: str
    path: str
    source_ip: str = '127.0.0.1'
    body: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class EdgeResponse:
    """Response returned to the viewer."""

    status_code: int
    # bytes for binary static assets
    body: Union[str, bytes] = ''
    headers: Dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        return json.loads(self.body)


class Origin(Protocol):
    def handle(self, request: EdgeRequest) -> EdgeResponse:
        ...


class StaticOrigin:
    """Serves static assets from a directory."""

    def __init__(self, root: Path, index_document: str = 'index.html', error_document: str = 'error.html'):
        self.root = Path(root).resolve()
        self.index_document = index_document
        self.error_document = error_document

    def handle(self, request: EdgeRequest) -> EdgeResponse:
        if request.method.upper() not in ('GET', 'HEAD'):
            return EdgeResponse(status_code=403, body='Method not allowed on static content')

        relative = urlsplit(request.path).path.lstrip('/') or self.index_document
        asset = self._resolve(relative)
        if asset is None:
            return self._not_found()

        content_type = mimetypes.guess_type(asset.name)[0] or 'application/octet-stream'
        text = is_text_content_type(content_type)
        if request.method.upper() == 'HEAD':
            body: Union[str, bytes] = '' if text else b''
        else:
            body = asset.read_text(encoding='utf-8') if text else asset.read_bytes()
        return EdgeResponse(status_code=200, body=body, headers={'Content-Type': content_type})

    def _resolve(self, relative: str) -> Optional[Path]:
        candidate = (self.root / relative).resolve()
        # Reject paths escaping the origin root
        if self.root != candidate and self.root not in candidate.parents:
            return None
        return candidate if candidate.is_file() else None

    def _not_found(self) -> EdgeResponse:
        error_page = self._resolve(self.error_document)
        body = error_page.read_text(encoding='utf-8') if error_page else 'Not Found'
        return EdgeResponse(status_code=404, body=body, headers={'Content-Type': 'text/html'})


class ApiOrigin:
    """Invokes the ingest Lambda handler with API Gateway REST proxy events."""

    def __init__(
        self,
        handler: Callable[[Dict[str, Any], Any], Dict[str, Any]],
        function_name: str = 'ingest',
        stage: str = 'prod',
    ):
        self.handler = handler
        self.function_name = function_name
        self.stage = stage

    def handle(self, request: EdgeRequest) -> EdgeResponse:
        event = self.build_event(request)
        response = self.handler(event, LocalLambdaContext(function_name=self.function_name))

        headers = dict(response.get('headers') or {})
        for name, values in (response.get('multiValueHeaders') or {}).items():
            if values:
                headers.setdefault(name, values[0])

        return EdgeResponse(
            status_code=int(response['statusCode']),
            body=response.get('body') or '',
            headers=headers,
        )

    def build_event(self, request: EdgeRequest) -> Dict[str, Any]:
        """Build an API Gateway REST proxy event for a viewer request."""
        parts = urlsplit(request.path)
        query = dict(parse_qsl(parts.query)) or None
        method = request.method.upper()

        return {
            'resource': parts.path,
            'path': parts.path,
            'httpMethod': method,
            'headers': dict(request.headers),
            'multiValueHeaders': {name: [value] for name, value in request.headers.items()},
            'queryStringParameters': query,
            'multiValueQueryStringParameters': {k: [v] for k, v in query.items()} if query else None,
            'pathParameters': None,
            'stageVariables': None,
            'requestContext': {
                'requestId': str(uuid.uuid4()),
                'stage': self.stage,
                'httpMethod': method,
                'path': f'/{self.stage}{parts.path}',
                'resourcePath': parts.path,
                'accountId': '000000000000',
                'apiId': 'local',
                'identity': {'sourceIp': request.source_ip},
            },
            'body': request.body,
            'isBase64Encoded': False,
        }


class Distribution:
    """Rate-limited path router in front of the static and API origins."""

    def __init__(
        self,
        static_origin: Origin,
        api_origin: Origin,
        rate_limiter: Optional[RateLimiter] = None,
        api_path_prefix: str = API_PATH_PREFIX,
    ):
        self.static_origin = static_origin
        self.api_origin = api_origin
        self.rate_limiter = rate_limiter
        self.api_path_prefix = api_path_prefix

    def handle(self, request: EdgeRequest) -> EdgeResponse:
        if self.rate_limiter is not None:
            result = self.rate_limiter.check_rate_limit(request.source_ip)
            if not result.allowed:
                return self._blocked(request, result.to_headers(), result.retry_after or 1)

        if urlsplit(request.path).path.startswith(self.api_path_prefix):
            return self.api_origin.handle(request)
        return self.static_origin.handle(request)

    def _blocked(self, request: EdgeRequest, headers: Dict[str, str], retry_after: int) -> EdgeResponse:
        error = RateLimitError(
            limit=self.rate_limiter.config.requests_per_window,
            window_seconds=self.rate_limiter.config.window_size_seconds,
            retry_after=retry_after,
        )
        logger.warning('Request blocked at the edge', extra={
            'source_ip': request.source_ip,
            'path': request.path,
            'error_id': error.error_id,
        })
        return EdgeResponse(
            status_code=403,
            body=json.dumps(format_error_response(error)),
            headers={'Content-Type': 'application/json', **headers},
        )
