"""
Request logging middleware
One structured line per request with its outcome and duration
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from assessment.core.logging import LoggerFactory

logger = LoggerFactory.get_request_logger()

QUIET_PATHS = {"/health", "/api/v1/health"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and timing of every request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        request_id = getattr(request.state, "request_id", None)
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 1)
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "client": request.client.host if request.client else None,
            },
        )
        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.4f}"
        return response
