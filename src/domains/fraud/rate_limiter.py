"""Sliding-window rate limiting per identifier (user, IP, API key)."""

import threading
import time
from collections import deque
from collections.abc import Callable

import structlog

from .config import default_config

logger = structlog.get_logger()


class RateLimiter:
    """Allows at most `max_attempts` calls per identifier within `window_seconds`.

    Timestamps older than the window are pruned lazily on each call. All
    access to the per-identifier history goes through one lock, so a single
    limiter can be shared by threads and coroutines alike.
    """

    def __init__(
        self,
        max_attempts: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "default",
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._attempts: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def _prune(self, identifier: str, now: float) -> deque[float]:
        attempts = self._attempts.get(identifier)
        if attempts is None:
            return deque()
        while attempts and now - attempts[0] >= self.window_seconds:
            attempts.popleft()
        if not attempts:
            del self._attempts[identifier]
        return attempts

    def is_allowed(self, identifier: str) -> bool:
        """Record an attempt if under the limit. Returns False when throttled."""
        with self._lock:
            now = self._clock()
            attempts = self._prune(identifier, now)
            if len(attempts) >= self.max_attempts:
                logger.warning(
                    "rate_limit_exceeded",
                    limiter=self.name,
                    identifier=identifier,
                    max_attempts=self.max_attempts,
                    window_seconds=self.window_seconds,
                )
                return False
            attempts.append(now)
            self._attempts[identifier] = attempts
            return True

    def get_remaining_attempts(self, identifier: str) -> int:
        with self._lock:
            attempts = self._prune(identifier, self._clock())
            return max(0, self.max_attempts - len(attempts))

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._attempts.pop(identifier, None)


_limits = default_config.rate_limits

transaction_rate_limiter = RateLimiter(
    _limits.transaction_max_attempts, _limits.transaction_window_seconds, name="transaction"
)
api_rate_limiter = RateLimiter(_limits.api_max_attempts, _limits.api_window_seconds, name="api")
