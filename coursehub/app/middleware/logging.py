"""Request logging middleware."""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.time()
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        user_id = request.headers.get("X-User-Id", "anonymous")

        response = await call_next(request)

        duration_ms = int((time.time() - start) * 1000)
        response.headers["X-Request-Id"] = request_id
        logger.info(
            f"{request.method} {request.url.path} → {response.status_code} ({duration_ms}ms)",
            extra={"request_id": request_id, "user_id": user_id},
        )
        return response
