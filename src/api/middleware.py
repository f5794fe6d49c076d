"""Response hardening and request timing for the JSON-only scan API."""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-Id"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    # Scan results carry per-caller usage
    "Cache-Control": "no-store",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, log its latency, add security headers."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER, "")[:64] or uuid.uuid4().hex[:16]
        started = time.monotonic()

        response: Response = await call_next(request)

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.debug(
            f"[API] {request.method} {request.url.path} -> {response.status_code} "
            f"({elapsed_ms:.0f}ms, id={request_id})"
        )
        response.headers.update(SECURITY_HEADERS)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
