"""
Edge layer model: per-IP rate filter and path-prefix routing in front of the
static asset origin and the ingestion API.
"""

from service.edge.distribution import ApiOrigin, Distribution, EdgeRequest, EdgeResponse, StaticOrigin
from service.edge.rate_limiter import FixedWindowRateLimiter, RateLimitConfig, RateLimitResult

__all__ = [
    "ApiOrigin",
    "Distribution",
    "EdgeRequest",
    "EdgeResponse",
    "StaticOrigin",
    "FixedWindowRateLimiter",
    "RateLimitConfig",
    "RateLimitResult",
]
