"""
Per-client request ceiling for the /api routes.

A rolling window: each client may make `max_requests` requests in any
`window_seconds` span.
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable


@dataclass
class RateLimitStatus:
    """
    Outcome of counting one request.

    Attributes:
        allowed: Whether the request may proceed
        limit: Requests allowed per window
        remaining: Requests left in the current window
        reset_after: Seconds until the oldest counted request leaves the window
    """
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    @property
    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(max(0, int(self.reset_after + 0.999))),
        }


class SlidingWindowRateLimiter:
    """
    Counts requests per client key over a rolling time window.

    Example:
        limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=60)
        if not limiter.hit(client_ip).allowed:
            ...  # 429
    """

    def __init__(
        self,
        max_requests: int = 3,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque] = {}

    def _prune(self, key: str, now: float) -> deque:
        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        return hits

    def hit(self, key: str) -> RateLimitStatus:
        """
        Count one request for `key`.

        Rejected requests are not counted, so a client that keeps
        retrying is unblocked as soon as its oldest request expires.
        """
        now = self._clock()
        hits = self._prune(key, now)

        allowed = len(hits) < self.max_requests
        if allowed:
            hits.append(now)

        reset_after = self.window_seconds - (now - hits[0]) if hits else 0.0
        return RateLimitStatus(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - len(hits)),
            reset_after=reset_after,
        )
