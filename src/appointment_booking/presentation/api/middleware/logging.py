"""HTTP request/response logging middleware for FastAPI."""

import time
from typing import Callable, Optional, Set

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ....infrastructure.logging import (
    clear_correlation_id,
    generate_correlation_id,
    get_logger,
    log_request,
    log_response,
    set_correlation_id,
)

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

# Headers to exclude from logging (sensitive information)
EXCLUDED_HEADERS = {
    'authorization',
    'cookie',
    'set-cookie',
    'x-api-key',
    'x-auth-token',
    'proxy-authorization',
}


def sanitize_headers(headers: dict) -> dict:
    """Mask sensitive header values."""
    return {
        key: "[REDACTED]" if key.lower() in EXCLUDED_HEADERS else value
        for key, value in headers.items()
    }


class RequestResponseLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request and response under a correlation ID.

    The correlation ID is taken from the X-Correlation-ID request header when
    present, set on the logging context for the duration of the request, and
    echoed back in the response header.
    """

    def __init__(self, app: ASGIApp, exclude_paths: Optional[Set[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or {
            '/health',
            '/docs',
            '/redoc',
            '/openapi.json',
            '/favicon.ico'
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process the request and response with logging."""
        correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        set_correlation_id(correlation_id)
        log_enabled = request.url.path not in self.exclude_paths
        start_time = time.perf_counter()

        try:
            if log_enabled:
                client_host = request.client.host if request.client else 'unknown'
                log_request(
                    logger,
                    request.method,
                    request.url.path,
                    request_query=str(request.query_params) if request.query_params else None,
                    request_headers=sanitize_headers(dict(request.headers)),
                    client_host=client_host,
                )

            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id

            if log_enabled:
                log_response(
                    logger,
                    request.method,
                    request.url.path,
                    response.status_code,
                    (time.perf_counter() - start_time) * 1000,
                )
            return response

        except Exception as exc:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    "request_method": request.method,
                    "request_path": request.url.path,
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                    "error_type": type(exc).__name__,
                },
                exc_info=True
            )
            raise

        finally:
            clear_correlation_id()
