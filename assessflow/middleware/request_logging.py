"""
Request Logging Middleware

Logs method, path, status and duration of every API request.
"""

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from assessflow.common.logger import get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware logging API requests under ``prefix``."""

    def __init__(self, app, prefix: str = "/v1/"):
        super().__init__(app)
        self.prefix = prefix

    async def dispatch(self, request: Request, call_next):
        """
        Process the request and log its outcome.

        Args:
            request: The incoming request
            call_next: The next middleware/route handler

        Returns:
            The response from the next handler
        """
        path = request.url.path
        if not path.startswith(self.prefix):
            return await call_next(request)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start_time
            logger.exception(f"{request.method} {path} failed after {duration:.3f}s")
            raise

        duration = time.perf_counter() - start_time
        client_ip = request.client.host if request.client else "unknown"
        logger.info(
            f"{request.method} {path} status={response.status_code} "
            f"duration={duration:.3f}s ip={client_ip}"
        )
        return response
