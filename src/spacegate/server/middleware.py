"""HTTP middleware: request correlation and access logging."""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from spacegate.logging_setup import new_correlation_id

logger = logging.getLogger("spacegate.server")

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Adopt the caller's X-Correlation-ID (or mint one) and echo it back."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        cid = new_correlation_id(request.headers.get(CORRELATION_HEADER))
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = cid
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One line per request. Health probes are logged at DEBUG."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
        level = logging.DEBUG if request.url.path == "/health" else logging.INFO
        logger.log(
            level,
            "%s %s -> %d (%.1f ms)",
            request.method, request.url.path, response.status_code, elapsed_ms,
            extra={"status": response.status_code, "elapsed_ms": elapsed_ms},
        )
        return response
