"""
FastAPI middleware for request tracing.

Every request gets a short request id (or reuses the caller's X-Request-ID),
has it bound to the logging context together with the method, path and
user id, and is logged on start and completion with its duration.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import bind_context, clear_context, get_logger


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _user_id_from_path(path: str) -> str:
    # /api/personalization/profile/{user_id}
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 4 and parts[:3] == ["api", "personalization", "profile"]:
        return parts[3]
    return ""


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """
    Adds request tracing and timing logs.

    Usage:
        app.add_middleware(RequestTracingMiddleware)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER, str(uuid.uuid4())[:8])

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        user_id = request.query_params.get("user_id") or _user_id_from_path(request.url.path)
        if user_id:
            bind_context(user_id=user_id)

        start_time = time.perf_counter()
        logger.info("Request started")

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        else:
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()
