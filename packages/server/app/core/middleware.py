"""
HTTP middleware: security headers, structured request logging and rate limiting.
"""

from __future__ import annotations

import time
import uuid
from collections import defaultdict, deque

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

log = structlog.get_logger()

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id into structlog context and log one line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        response.headers[REQUEST_ID_HEADER] = request_id
        log.info(
            "request.completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
        )
        return response


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window request limit per client IP for paths under ``prefix``.

    Counters live in process memory, so each worker enforces its own window.
    ``max_requests=0`` turns the limit off.
    """

    def __init__(self, app, max_requests: int, window_seconds: int, prefix: str = "/api/v1"):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def _allow(self, client: str) -> bool:
        now = time.monotonic()
        hits = self._hits[client]
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    async def dispatch(self, request: Request, call_next) -> Response:
        if self.max_requests <= 0 or not request.url.path.startswith(self.prefix):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        if not self._allow(client):
            log.warning("request.rate_limited", client=client, path=request.url.path)
            return JSONResponse(
                {"status": "error", "message": RATE_LIMIT_MESSAGE},
                status_code=429,
                headers={"Retry-After": str(self.window_seconds)},
            )
        return await call_next(request)
