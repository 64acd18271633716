import time
import uuid

import sentry_sdk
import structlog
import structlog.contextvars
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

_SKIP_LOG_PATHS = {"/health", "/health/deep"}

# A single geocode walks up to three providers with 10 s timeouts each.
SLOW_REQUEST_MS = 5000.0


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every log line and Sentry event of a request with one request id.

    Provider fallbacks and quota writes triggered by the request log under
    the same id, so a slow geocode can be traced across providers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex

        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
        sentry_sdk.set_tag("request_id", request_id)

        start = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        duration_ms = round((time.monotonic() - start) * 1000, 1)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)

        if request.url.path in _SKIP_LOG_PATHS:
            return response

        log = logger.warning if duration_ms >= SLOW_REQUEST_MS else logger.info
        log(
            "request",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
            slow=duration_ms >= SLOW_REQUEST_MS,
        )
        return response
