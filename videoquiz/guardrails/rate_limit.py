import threading
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from fastapi import HTTPException
from starlette.requests import Request


class SimpleRateLimiter:
    """Sliding-window rate limiter; in-memory (per process). Used by the API to cap uploads and polling per client IP.
    Why available: Uploads start expensive jobs, so one client cannot flood the single job lane."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, request: Request, bucket: str = "default") -> None:
        """Raise 429 if the client has exceeded the limit for this bucket; otherwise record the request."""
        now = time.monotonic()
        ip = request.client.host if request.client else "unknown"
        key = f"{bucket}:{ip}"

        with self._lock:
            hits = self._hits[key]
            while hits and now - hits[0] >= self.window_seconds:
                hits.popleft()
            if len(hits) >= self.max_requests:
                raise HTTPException(
                    status_code=429,
                    detail="Rate limit exceeded. Please retry later.",
                )
            hits.append(now)
