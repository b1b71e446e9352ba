"""
Request middleware — correlation IDs, timing and the access log.

Every HTTP request gets:
    • an X-Request-ID (the caller's, or a fresh one) echoed on the response
    • an X-Process-Time header
    • one log line, WARNING for 4xx/5xx, skipped for docs and liveness probes

WebSocket traffic bypasses BaseHTTPMiddleware; the ``/ws`` endpoint opens
its own log context per session.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from drillalert.core.logging_config import log_context

logger = logging.getLogger(__name__)

_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon", "/health/live")


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        with log_context(request_id=request_id, method=request.method, endpoint=path):
            start = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "%s %s crashed after %.1fms",
                    request.method, path, (time.perf_counter() - start) * 1000,
                    extra={"status_code": 500, "endpoint": path},
                )
                raise
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"

            if not path.startswith(_QUIET_PREFIXES):
                logger.log(
                    logging.WARNING if response.status_code >= 400 else logging.INFO,
                    "%s %s → %d (%.1fms) [%s]",
                    request.method, path, response.status_code, duration_ms, client_ip,
                    extra={
                        "duration_ms": round(duration_ms, 1),
                        "status_code": response.status_code,
                        "endpoint": path,
                    },
                )
        return response
