"""
Custom middleware for the API.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.utils.context import (
    generate_correlation_id,
    set_correlation_id,
    set_actor_id,
    clear_all_context,
)

logger = logging.getLogger(__name__)

# Requests slower than this are logged as warnings
SLOW_REQUEST_SECONDS = 2.0


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each HTTP request on completion with status and timing.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration_seconds = time.time() - start_time
        duration_ms = duration_seconds * 1000
        is_slow = duration_seconds > SLOW_REQUEST_SECONDS

        log_level = logging.WARNING if is_slow else logging.INFO
        logger.log(
            log_level,
            f"Request completed: {request.method} {request.url.path} - {response.status_code} ({duration_ms:.0f}ms)",
            extra={
                "event": "request_completed",
                "method": request.method,
                "path": request.url.path,
                "query": str(request.query_params) if request.query_params else None,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "client_ip": request.client.host if request.client else "unknown",
                "user_agent": request.headers.get("User-Agent", "unknown"),
                "is_slow_request": is_slow,
                "is_error": response.status_code >= 400,
            },
        )

        response.headers["X-Process-Time-Ms"] = f"{duration_ms:.0f}"
        return response


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Sets the request context.

    - Correlation ID from X-Correlation-ID (generated when absent)
    - Actor ID (requester or provider) from X-User-ID
    - Correlation ID echoed in the response headers
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            correlation_id = request.headers.get("X-Correlation-ID")
            if correlation_id:
                set_correlation_id(correlation_id)
            else:
                correlation_id = generate_correlation_id()
            request.state.correlation_id = correlation_id

            actor_id = request.headers.get("X-User-ID")
            if actor_id:
                set_actor_id(actor_id)

            logger.info(
                "Request started",
                extra={
                    "event": "request_start",
                    "method": request.method,
                    "path": request.url.path,
                },
            )

            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        finally:
            clear_all_context()
