"""Rate limiting and request logging middleware."""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def get_user_or_ip(request: Request) -> str:
    """
    Rate limit key: the user ID once authenticated, otherwise the client IP.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


# Global rate limiter instance
limiter = Limiter(key_func=get_user_or_ip)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of every request.

    Bodies are never logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        path = request.url.path
        if path in ["/health", "/", "/favicon.ico"]:
            return response

        log_data = {
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        user_id = getattr(request.state, "user_id", None)
        if user_id:
            log_data["user_id"] = user_id

        if response.status_code >= 500:
            logger.error(f"Request: {log_data}")
        elif response.status_code >= 400:
            logger.warning(f"Request: {log_data}")
        else:
            logger.info(f"Request: {log_data}")

        return response
