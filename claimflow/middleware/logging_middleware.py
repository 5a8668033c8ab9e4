"""
Logging Middleware
Logs every HTTP request with its status and duration
"""

import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from claimflow.utils.logger import setup_logger

logger = setup_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception:
            duration = time.time() - start_time
            logger.exception(f"Error: {request.method} {request.url.path} | Client: {client} | Duration: {duration:.3f}s")
            raise

        duration = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} | "
            f"Status: {response.status_code} | "
            f"Client: {client} | "
            f"Duration: {duration:.3f}s"
        )
        return response
