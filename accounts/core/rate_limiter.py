from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from accounts.core.errors import RateLimited

logger = logging.getLogger("accounts.rate_limit")


class TokenBucket:
    """Global bucket: ``burst`` tokens, fully refilled once every ``period`` seconds.

    Refill is continuous (``burst / period`` tokens per second) so traffic is not
    released in a thundering herd at period boundaries.
    """

    def __init__(self, burst: int, period: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        if burst < 1:
            raise ValueError("burst must be >= 1")
        if period <= 0:
            raise ValueError("period must be positive")
        self.capacity = float(burst)
        self.rate = burst / period
        self._clock = clock
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        with self._lock:
            now = self._clock()
            elapsed = max(0.0, now - self._updated)
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
            self._updated = now
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests with 429 once the shared bucket is empty."""

    def __init__(self, app, *, bucket: TokenBucket) -> None:
        super().__init__(app)
        self._bucket = bucket

    async def dispatch(self, request, call_next):
        if not self._bucket.try_acquire():
            logger.warning("Rate limit exceeded for %s %s", request.method, request.url.path)
            error = RateLimited()
            return JSONResponse(error.to_dict(), status_code=error.status_code)
        return await call_next(request)
