"""Per-client rate limiting for the submission endpoint."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of recording one attempt for a client."""

    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> Dict[str, str]:
        """Return the standard ``RateLimit-*`` headers for this decision."""

        reset_seconds = str(max(0, math.ceil(self.reset_after)))
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": reset_seconds,
        }
        if not self.allowed:
            headers["Retry-After"] = reset_seconds
        return headers


class RateLimiter(Protocol):
    """Check and record a submission attempt for a client identity."""

    def hit(self, identity: str) -> RateLimitDecision:
        ...


class InMemoryRateLimiter:
    """Sliding-window limiter keeping attempt timestamps in process memory.

    An allowed call to :meth:`hit` uses up one attempt no matter how the
    submission itself turns out, so a rejected form still counts.  Denied
    calls are not recorded and do not push the window further out.  Counters
    are lost on restart and are not shared between processes.  Clients whose
    attempts have all expired are swept out at most once per window.
    """

    def __init__(
        self,
        limit: int = 1,
        window_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: Dict[str, Deque[float]] = {}
        self._next_sweep: Optional[float] = None
        self._lock = threading.Lock()

    def hit(self, identity: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            if self._next_sweep is None or now >= self._next_sweep:
                self._drop_expired(now)
                self._next_sweep = now + self.window_seconds

            attempts = self._attempts.setdefault(identity, deque())
            self._expire(attempts, now)

            allowed = len(attempts) < self.limit
            if allowed:
                attempts.append(now)

            remaining = max(0, self.limit - len(attempts))
            reset_after = attempts[0] + self.window_seconds - now if attempts else 0.0

        if not allowed:
            logger.info("Rate limit exceeded for client %s", identity)

        return RateLimitDecision(
            allowed=allowed,
            limit=self.limit,
            remaining=remaining,
            reset_after=reset_after,
        )

    def prune(self) -> int:
        """Drop identities whose attempts have all expired; return how many."""

        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    def _drop_expired(self, now: float) -> int:
        stale = []
        for identity, attempts in self._attempts.items():
            self._expire(attempts, now)
            if not attempts:
                stale.append(identity)
        for identity in stale:
            del self._attempts[identity]
        return len(stale)

    def _expire(self, attempts: Deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()


__all__ = ["InMemoryRateLimiter", "RateLimitDecision", "RateLimiter"]
