"""FastAPI middleware: request ID injection, security headers and rate limiting."""

from __future__ import annotations

import math
import time
import uuid
from collections import deque
from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

logger = structlog.get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Adds a unique X-Request-ID header to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["x-request-id"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Sets conservative security headers on every response."""

    _HEADERS = {
        "x-content-type-options": "nosniff",
        "x-frame-options": "DENY",
        "referrer-policy": "no-referrer",
        "cross-origin-resource-policy": "same-origin",
    }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self._HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client sliding-window limit on upload requests.

    Only ``methods`` on paths under ``prefix`` count, so CORS preflights and
    reads are never throttled. Clients with no hit inside the window are
    forgotten, on their next request or by the periodic sweep.
    """

    def __init__(
        self,
        app: object,
        max_requests: int = 10,
        window_seconds: int = 15 * 60,
        prefix: str = "/upload",
        methods: tuple[str, ...] = ("POST",),
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._max_requests = max_requests
        self._window = window_seconds
        self._prefix = prefix
        self._methods = frozenset(m.upper() for m in methods)
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep: float | None = None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method not in self._methods or not request.url.path.startswith(self._prefix):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()
        self._sweep(now)

        hits = self._prune(client_ip, now)
        if len(hits) >= self._max_requests:
            retry_after = math.ceil(hits[0] + self._window - now) if hits else self._window
            logger.warning(
                "upload_rate_limited",
                ip=client_ip,
                path=request.url.path,
                retry_after=retry_after,
            )
            return JSONResponse(
                {"error": "Too many uploads. Try again later."},
                status_code=429,
                headers={"Retry-After": str(max(retry_after, 1))},
            )

        hits.append(now)
        self._hits[client_ip] = hits
        return await call_next(request)

    def _prune(self, client_ip: str, now: float) -> deque[float]:
        hits = self._hits.pop(client_ip, None) or deque()
        while hits and now - hits[0] >= self._window:
            hits.popleft()
        if hits:
            self._hits[client_ip] = hits
        return hits

    def _sweep(self, now: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self._window:
            return
        self._last_sweep = now
        for client_ip in list(self._hits):
            self._prune(client_ip, now)
