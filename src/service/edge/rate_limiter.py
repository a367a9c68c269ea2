"""
Rate limiting for the edge filter.

A stateless-per-request, per-source-IP counter over fixed time windows: every
key gets requests_per_window requests per window and is rejected outright above
that until the next window starts.
"""

import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from cachetools import TTLCache

from service.handlers.utils.observability import logger


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests_per_window: int = 2000
    window_size_seconds: int = 300
    key_prefix: str = "rate_limit"
    # Upper bound on tracked source IPs; the least recently used key is evicted past it
    max_tracked_keys: int = 100_000

    def __post_init__(self):
        if self.requests_per_window < 1:
            raise ValueError("requests_per_window must be at least 1")
        if self.window_size_seconds < 1:
            raise ValueError("window_size_seconds must be at least 1")
        if self.max_tracked_keys < 1:
            raise ValueError("max_tracked_keys must be at least 1")


@dataclass
class RateLimitResult:
    """Result of rate limit check."""

    allowed: bool
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None
    current_usage: int = 0

    def to_headers(self) -> Dict[str, str]:
        """Convert to HTTP headers."""
        headers = {
            'X-RateLimit-Limit': str(self.remaining + self.current_usage),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(self.reset_time)
        }

        if self.retry_after is not None:
            headers['Retry-After'] = str(self.retry_after)

        return headers


class RateLimiter(ABC):
    """Base rate limiter interface."""

    config: RateLimitConfig

    @abstractmethod
    def check_rate_limit(self, key: str) -> RateLimitResult:
        """Check if request is within rate limit."""
        pass

    @abstractmethod
    def reset_rate_limit(self, key: str) -> bool:
        """Reset rate limit for a key."""
        pass


class FixedWindowRateLimiter(RateLimiter):
    """In-memory fixed window rate limiter keyed by source IP."""

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the rate limiter.

        Args:
            config: Limit and window size
            clock: Callable returning the current time in epoch seconds
        """
        self.config = config or RateLimitConfig()
        self.clock = clock
        # item key -> (window start, requests counted); entries expire two windows after their last write
        self._windows: TTLCache = TTLCache(
            maxsize=self.config.max_tracked_keys,
            ttl=self.config.window_size_seconds * 2,
            timer=clock,
        )

    @property
    def tracked_keys(self) -> int:
        """Number of keys currently holding a counter."""
        self._windows.expire()
        return len(self._windows)

    def check_rate_limit(self, key: str) -> RateLimitResult:
        """Count a request for key and decide whether it may pass."""
        config = self.config
        current_time = self.clock()
        window_start = int(current_time // config.window_size_seconds) * config.window_size_seconds
        reset_time = window_start + config.window_size_seconds
        item_key = f"{config.key_prefix}:fw:{key}"

        counted_start, count = self._windows.get(item_key, (window_start, 0))
        if counted_start != window_start:
            count = 0

        if count >= config.requests_per_window:
            retry_after = max(1, math.ceil(reset_time - current_time))
            logger.warning("Rate limit exceeded", extra={
                "key": key,
                "limit": config.requests_per_window,
                "retry_after": retry_after,
            })
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=reset_time,
                retry_after=retry_after,
                current_usage=count
            )

        count += 1
        self._windows[item_key] = (window_start, count)

        return RateLimitResult(
            allowed=True,
            remaining=config.requests_per_window - count,
            reset_time=reset_time,
            current_usage=count
        )

    def reset_rate_limit(self, key: str) -> bool:
        return self._windows.pop(f"{self.config.key_prefix}:fw:{key}", None) is not None

