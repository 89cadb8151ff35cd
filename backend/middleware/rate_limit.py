"""
In-memory sliding-window rate limiting for buyer-facing write endpoints.

Keyed by client IP + route path. Process local: behind several workers the
effective limit is multiplied by the worker count.
"""
import time
import logging
from collections import defaultdict, deque
from typing import Callable

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window counter: at most `max_requests` per `window_seconds` per key."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def _trim(self, key: str, window_seconds: int) -> deque[float]:
        hits = self._hits[key]
        cutoff = self._clock() - window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def check(self, key: str, max_requests: int, window_seconds: int) -> bool:
        """Record a hit and return True, or return False if the window is full."""
        hits = self._trim(key, window_seconds)
        if len(hits) >= max_requests:
            return False
        hits.append(self._clock())
        return True

    def remaining(self, key: str, max_requests: int, window_seconds: int) -> int:
        return max(0, max_requests - len(self._trim(key, window_seconds)))

    def reset(self) -> None:
        self._hits.clear()


limiter = RateLimiter()


def rate_limit(max_requests: int | Callable[[], int] = 10, window_seconds: int = 60):
    """
    FastAPI dependency factory.

    `max_requests` may be a callable so the limit can follow settings
    changed at runtime (tests lower it).

    Usage:
        @router.post("/checkout", dependencies=[Depends(rate_limit(lambda: settings.checkout_rate_limit))])
    """
    async def _check_rate_limit(request: Request):
        limit = max_requests() if callable(max_requests) else max_requests
        client_ip = request.client.host if request.client else "unknown"
        key = f"{client_ip}:{request.url.path}"

        if not limiter.check(key, limit, window_seconds):
            logger.warning(f"Rate limit exceeded: {client_ip} on {request.url.path} ({limit}/{window_seconds}s)")
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Maximum {limit} requests "
                       f"per {window_seconds} seconds. Try again later.",
                headers={
                    "Retry-After": str(window_seconds),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return _check_rate_limit
