import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from .errors import PayloadTooLargeError, RateLimitError, error_response


class RateLimiter:
    """
    In-memory rate limiter using a rolling (sliding log) window.
    Tracks request timestamps per client identifier; a client may make at
    most ``max_requests`` requests in any ``window_seconds`` span.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 900,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        # identifier -> timestamps of admitted requests, oldest first
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_cleanup = clock()

    def _expire(self, timestamps: Deque[float], now: float) -> None:
        while timestamps and now - timestamps[0] >= self.window_seconds:
            timestamps.popleft()

    def is_allowed(self, identifier: str) -> bool:
        now = self._clock()
        if now - self._last_cleanup >= self.window_seconds:
            self.cleanup()

        timestamps = self.requests[identifier]
        self._expire(timestamps, now)
        if len(timestamps) >= self.max_requests:
            return False

        timestamps.append(now)
        return True

    def retry_after(self, identifier: str) -> int:
        """Seconds until the oldest request for ``identifier`` leaves the window."""
        timestamps = self.requests.get(identifier)
        if not timestamps:
            return 0
        remaining = self.window_seconds - (self._clock() - timestamps[0])
        return max(1, int(remaining + 0.999))

    def cleanup(self):
        """Drop identifiers with no request left in the window to prevent memory leak"""
        now = self._clock()
        for identifier in list(self.requests):
            timestamps = self.requests[identifier]
            self._expire(timestamps, now)
            if not timestamps:
                del self.requests[identifier]
        self._last_cleanup = now


def client_identifier(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Global rate limiting by client address; answers 429 once the budget is spent."""

    def __init__(self, app: ASGIApp, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        identifier = client_identifier(request)
        if not self.limiter.is_allowed(identifier):
            exc = RateLimitError(
                "Too many requests, please try again later",
                retry_after=self.limiter.retry_after(identifier),
            )
            return error_response(exc)
        return await call_next(request)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose declared Content-Length exceeds the cap before the
    body is read. Bodies without a length header are checked again when the
    route reads them.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_body_bytes:
            return error_response(PayloadTooLargeError("Request body too large"))
        return await call_next(request)
