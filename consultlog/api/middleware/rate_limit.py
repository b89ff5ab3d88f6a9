"""
Per-teacher rate limiting with sliding window.
"""

import time
from collections import defaultdict
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from consultlog.shared.config import settings
from consultlog.shared.logging import get_logger

logger = get_logger(__name__)


class SlidingWindowRateLimiter:
    """In-memory sliding window rate limiter per client."""

    def __init__(self, requests_per_minute: int = 30):
        self.requests_per_minute = requests_per_minute
        self.window_seconds = 60
        # client key -> request timestamps in window
        self._requests: dict[str, list[float]] = defaultdict(list)

    def _prune(self, client_key: str):
        """Remove timestamps older than window."""
        cutoff = time.time() - self.window_seconds
        self._requests[client_key] = [t for t in self._requests[client_key] if t > cutoff]

    def is_allowed(self, client_key: str) -> bool:
        self._prune(client_key)
        return len(self._requests[client_key]) < self.requests_per_minute

    def record(self, client_key: str):
        self._requests[client_key].append(time.time())

    def retry_after_seconds(self, client_key: str) -> int:
        """Seconds until next request allowed (oldest in window expires)."""
        self._prune(client_key)
        if len(self._requests[client_key]) < self.requests_per_minute:
            return 0
        oldest = min(self._requests[client_key])
        return max(1, int(self.window_seconds - (time.time() - oldest)))


def get_client_key(request: Request) -> Optional[str]:
    """Identify the caller: teacher id, then explicit key, then client IP."""
    teacher_id = request.query_params.get("teacher_id") or request.headers.get("X-Teacher-Id")
    if teacher_id:
        return f"teacher:{teacher_id[:64]}"
    rate_key = request.headers.get("X-Rate-Limit-Key")
    if rate_key:
        return f"key:{rate_key[:64]}"
    client = request.client
    if client:
        return f"ip:{client.host}"
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limits the routes that call the completion backend.

    Only non-GET paths under `limited_prefixes`, or ending in one of
    `limited_suffixes`, count; record CRUD and draft edits are not limited.
    """

    def __init__(
        self,
        app,
        requests_per_minute: Optional[int] = None,
        limited_prefixes: Optional[list[str]] = None,
        limited_suffixes: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self.limiter = SlidingWindowRateLimiter(
            requests_per_minute
            or getattr(settings.api, "rate_limit_requests_per_minute", 30)
        )
        self.limited_prefixes = tuple(limited_prefixes or ["/summarize", "/behavior/batch"])
        self.limited_suffixes = tuple(limited_suffixes or ["/regenerate"])

    def is_limited(self, request: Request) -> bool:
        if request.method == "GET":
            return False
        path = request.url.path
        return path.startswith(self.limited_prefixes) or path.endswith(self.limited_suffixes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.is_limited(request):
            return await call_next(request)

        client_key = get_client_key(request)
        if not client_key:
            return await call_next(request)

        if not self.limiter.is_allowed(client_key):
            retry_after = self.limiter.retry_after_seconds(client_key)
            logger.warning(
                "Rate limit exceeded",
                extra={"client": client_key[:16], "retry_after": retry_after},
            )
            return Response(
                content='{"detail":"요청이 너무 많습니다. 잠시 후 다시 시도하세요."}',
                status_code=429,
                headers={"Retry-After": str(retry_after), "Content-Type": "application/json"},
            )

        self.limiter.record(client_key)
        return await call_next(request)
