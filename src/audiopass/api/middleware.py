"""Request logging middleware."""

import json
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from audiopass.utils.logger import get_logger

logger = get_logger(__name__)
stdlib_logger = logging.getLogger(__name__)

LOGGED_PATHS = ("/process",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log processing requests before validation and after completion."""

    async def dispatch(self, request: Request, call_next):
        """Log request before processing and response after."""
        # Health checks are too chatty to log
        if not request.url.path.startswith(LOGGED_PATHS):
            return await call_next(request)

        start_time = time.time()
        body = await request.body()

        log_data = {
            "method": request.method,
            "path": request.url.path,
            "content_length": len(body),
        }

        if stdlib_logger.isEnabledFor(logging.DEBUG):
            try:
                log_data["body_preview"] = json.dumps(json.loads(body.decode()))[:500]
            except (UnicodeDecodeError, json.JSONDecodeError):
                log_data["body_preview"] = body[:500].decode(errors="replace") if body else "<empty>"

        logger.info("Incoming process request", **log_data)

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Process request finished",
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        return response
