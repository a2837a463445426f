"""
Sliding-window rate limiter for user actions.

Unlike SearchTracker.is_rate_limited, which looks at a single stored record,
this limiter keeps every request timestamp inside the window per key and
refuses a request once the window already holds ``max_requests`` entries.
State is in-memory only.
"""

import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional

from .config import RateLimitRule


@dataclass
class RateLimitStatus:
    """Result of a rate limit check."""

    allowed: bool
    wait_seconds: float
    reason: Optional[str] = None


class RateLimiter:
    """Per-key sliding window limiter."""

    def __init__(
        self,
        rule: Optional[RateLimitRule] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            rule: Window size and maximum requests per window
            clock: Monotonic time source in seconds
        """
        self._rule = rule or RateLimitRule()
        self._clock = clock
        self._request_times: dict[str, list[float]] = defaultdict(list)

    @property
    def rule(self) -> RateLimitRule:
        return self._rule

    def _prune(self, key: str, current_time: float) -> list[float]:
        window_start = current_time - self._rule.window_seconds
        self._request_times[key] = [
            t for t in self._request_times[key] if t > window_start
        ]
        return self._request_times[key]

    def status(self, key: str) -> RateLimitStatus:
        """
        Check the limit for ``key`` without recording a request.

        Returns:
            RateLimitStatus with the wait until the oldest request leaves the window
        """
        current_time = self._clock()
        requests = self._prune(key, current_time)

        if len(requests) >= self._rule.max_requests:
            if requests:
                wait_until = min(requests) + self._rule.window_seconds
                wait_seconds = max(0.0, wait_until - current_time)
            else:
                wait_seconds = self._rule.window_seconds
            return RateLimitStatus(
                allowed=False,
                wait_seconds=wait_seconds,
                reason=f"Rate limit reached for {key}: {len(requests)}/{self._rule.max_requests}",
            )

        return RateLimitStatus(allowed=True, wait_seconds=0.0)

    def is_allowed(self, key: str) -> bool:
        """
        Check the limit and, when allowed, record the request.

        Args:
            key: Identifier of the user or action being limited

        Returns:
            True if the request fits in the current window
        """
        if not self.status(key).allowed:
            return False

        self._request_times[key].append(self._clock())
        return True

    def reset(self, key: str) -> None:
        self._request_times.pop(key, None)

    def request_count(self, key: str) -> int:
        return len(self._prune(key, self._clock()))
