"""In-memory sliding-window rate limiting keyed by caller IP."""

import math
import time
from collections import defaultdict
from collections.abc import Callable
from threading import Lock

from fastapi import HTTPException, Request


class RateLimiter:
    """Sliding-window rate limiter keyed by an arbitrary string.

    Tracks request timestamps in a rolling window and rejects calls that
    exceed the configured limit. ``retry_after`` reports how many seconds
    remain until the oldest tracked request leaves the window.
    """

    def __init__(self, max_requests: int, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._lock = Lock()

    def is_allowed(self, key: str) -> bool:
        """Return True if the request is within the rate limit, False otherwise."""
        now = time.monotonic()
        cutoff = now - self.window_seconds

        with self._lock:
            timestamps = [t for t in self._requests[key] if t > cutoff]
            self._requests[key] = timestamps

            if len(timestamps) >= self.max_requests:
                return False

            timestamps.append(now)
            return True

    def retry_after(self, key: str) -> int:
        with self._lock:
            timestamps = self._requests.get(key)
            if not timestamps:
                return 0
            remaining = timestamps[0] + self.window_seconds - time.monotonic()
        return max(1, math.ceil(remaining))

    def reset(self) -> None:
        """Clear all tracked state (useful for testing)."""
        with self._lock:
            self._requests.clear()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "anonymous"


def rate_limit_dependency(limiter: RateLimiter) -> Callable[[Request], str]:
    """Build a FastAPI dependency that rejects callers over *limiter*'s budget."""

    def _check(request: Request) -> str:
        key = client_ip(request)
        if not limiter.is_allowed(key):
            retry_after = limiter.retry_after(key)
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Retry after {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)},
            )
        return key

    return _check
