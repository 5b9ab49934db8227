"""
Request logging middleware. Logs method, path, status and duration.
Query strings and bodies are left out: they carry holdings and search terms.
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.scope.get("path", "")
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        status = response.status_code
        level = logging.ERROR if status >= 500 else logging.WARNING if status >= 400 else logging.INFO
        logger.log(
            level,
            "%s %s -> %s (%.1f ms)",
            request.method, path, status, duration_ms,
            extra={"method": request.method, "path": path, "status": status, "duration_ms": duration_ms},
        )
        return response
