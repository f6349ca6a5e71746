"""Request correlation and access logging."""

import logging
import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
ACTOR_HEADER = "X-Actor"

# Probes and scrapes would drown out booking traffic
QUIET_PATHS = frozenset({"/health", "/ready", "/metrics", "/favicon.ico"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Correlate every log line of a request.

    The request ID comes from ``X-Request-ID`` or is generated, is bound into
    structlog's context together with the acting user, and is echoed back on
    the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            actor=request.headers.get(ACTOR_HEADER, "system"),
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request with its status and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)

        log_data = {
            "request_id": getattr(request.state, "request_id", None),
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        if response.status_code >= 500:
            logger.error("Request failed", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=log_data)
        else:
            logger.info("Request completed", extra=log_data)

        return response


def setup_middleware(app, enable_logging: bool = True) -> None:
    """
    Install request middleware on ``app``.

    Args:
        app: FastAPI application instance
        enable_logging: Whether to add the access log
    """
    # Last added runs first, so the request ID is bound before access logging
    if enable_logging:
        app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestContextMiddleware)
