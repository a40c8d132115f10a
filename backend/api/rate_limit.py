"""
Per-client request rate limiting for the HTTP API.

Sliding window keyed by client IP. Loopback clients are never limited, and
WebSocket connections are not counted.
"""

import logging
import math
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, FrozenSet

from api.errors import RateLimitedError, error_response

logger = logging.getLogger(__name__)

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1"})


class RateLimitMiddleware:
    """
    ASGI middleware allowing `max_requests` per client in any `window_seconds`.

    Requests over the budget get a 429 envelope with a Retry-After header and
    never reach the routes. max_requests=0 disables limiting.
    """

    def __init__(
        self,
        app: Callable,
        max_requests: int,
        window_seconds: int,
        allow_list: FrozenSet[str] = LOOPBACK_ADDRESSES,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.app = app
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.allow_list = allow_list
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http" or self.max_requests <= 0:
            await self.app(scope, receive, send)
            return

        client = scope.get("client")
        client_ip = client[0] if client else "unknown"
        if client_ip in self.allow_list:
            await self.app(scope, receive, send)
            return

        now = self._clock()
        request_times = self._requests[client_ip]
        while request_times and request_times[0] <= now - self.window_seconds:
            request_times.popleft()

        if len(request_times) >= self.max_requests:
            retry_after = max(1, math.ceil(request_times[0] + self.window_seconds - now))
            logger.warning(f"Rate limit exceeded for {client_ip} on {scope.get('path')}")
            response = error_response(
                RateLimitedError.status_code,
                RateLimitedError.error,
                f"Rate limit exceeded, retry in {retry_after} seconds"
            )
            response.headers["Retry-After"] = str(retry_after)
            await response(scope, receive, send)
            return

        request_times.append(now)
        await self.app(scope, receive, send)
