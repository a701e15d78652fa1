"""
Request ID and request logging middleware

Adds a correlation ID to every request, binds it into structlog's
contextvars, and logs one line per request with status and duration.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from config import get_logger

logger = get_logger(__name__).bind(component="http")

# Prometheus scraping noise
QUIET_PATHS = {"/api/metrics"}


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to all requests and log them"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        # Every logger call inside this request carries request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            if request.url.path not in QUIET_PATHS:
                logger.info(
                    "request handled",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_seconds=round(time.perf_counter() - start_time, 3),
                )
            return response

        except Exception as e:
            logger.error(
                "request failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(time.perf_counter() - start_time, 3),
            )
            raise
        finally:
            # Prevents context leakage between requests
            structlog.contextvars.clear_contextvars()
