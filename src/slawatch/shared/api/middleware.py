"""
Shared API Middleware
======================

Request tracing, access logging and the mapping from application
exceptions to HTTP responses.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from slawatch.core import (
    ApplicationException,
    ResourceNotFoundException,
    StoreUnavailableException,
    ValidationException,
)
from slawatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

# Most specific first
EXCEPTION_STATUS = (
    (ResourceNotFoundException, status.HTTP_404_NOT_FOUND),
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (StoreUnavailableException, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def correlation_id_of(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation id, reusing the caller's header.

    The id is echoed back so a polling client can match its requests
    with server logs.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One access log line per request, with its latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        context = {
            "correlation_id": correlation_id_of(request),
            "method": request.method,
            "path": request.url.path,
        }

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Request failed", extra={
                **context,
                "error": str(e),
                "response_time_ms": int((time.perf_counter() - start) * 1000),
            })
            raise

        # Feed polling is frequent; keep successful reads at DEBUG
        log = logger.debug if request.method == "GET" and response.status_code < 400 else logger.info
        log("Request completed", extra={
            **context,
            "status_code": response.status_code,
            "response_time_ms": int((time.perf_counter() - start) * 1000),
        })
        return response


async def application_exception_handler(
    request: Request,
    exc: ApplicationException
) -> JSONResponse:
    """Map application exceptions onto status codes; anything unlisted is a 500."""
    status_code = next(
        (code for exc_type, code in EXCEPTION_STATUS if isinstance(exc, exc_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.warning(
            "Request ended with application error",
            extra={
                "correlation_id": correlation_id_of(request),
                "path": request.url.path,
                "error": exc.message,
                "error_type": type(exc).__name__,
            }
        )

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "details": exc.details if status_code < 500 else {},
            "correlation_id": correlation_id_of(request),
        }
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort handler: log and return a JSON 500.

    Error text is only included in development.
    """
    correlation_id = correlation_id_of(request)

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        },
        exc_info=exc,
    )

    settings = getattr(request.app.state, "settings", None)
    is_dev = getattr(settings, "environment", None) == "development"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )
