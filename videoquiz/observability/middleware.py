import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("videoquiz.access")


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Tags each request with x-request-id and logs one JSON-ish line with status and latency."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.perf_counter()

        request.state.request_id = rid

        response = await call_next(request)

        dur_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            '{"request_id":"%s","path":"%s","method":"%s","status":%d,"latency_ms":%.2f}',
            rid, request.url.path, request.method, response.status_code, dur_ms,
        )
        response.headers["x-request-id"] = rid
        return response


def get_request_id(request: Request) -> str:
    # middleware sets this
    return getattr(request.state, "request_id", "unknown")
