"""In-memory fixed window rate limiter."""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from threading import Lock


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    retry_after: int = 0


@dataclass
class _Window:
    started_at: float
    count: int = 0


class InMemoryRateLimiter:
    """Fixed window rate limiter keyed by tenant id.

    Thread-safe via Lock. Single-instance only.
    For multi-instance deployments: replace with Redis backend.
    """

    def __init__(
        self,
        window_seconds: int = 60,
        max_requests: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window_seconds
        self._max_requests = max_requests
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = Lock()

    def check(self, key: str, limit: int | None = None) -> RateLimitDecision:
        """Count one request against ``key`` and decide whether it may proceed.

        Args:
            key: Rate limit key, usually the tenant id.
            limit: Max requests per window; the limiter default when omitted.

        Returns:
            Decision with the values for the ``X-RateLimit-*`` headers.
            ``retry_after`` is the whole seconds until the window resets
            (only set when denied, never above the window length).
        """
        limit = self._max_requests if limit is None else limit
        now = self._clock()

        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at >= self._window:
                window = _Window(started_at=now)
                self._windows[key] = window

            remaining_seconds = max(window.started_at + self._window - now, 0.0)
            reset_at = datetime.now(UTC) + timedelta(seconds=remaining_seconds)

            if window.count >= limit:
                retry_after = min(max(math.ceil(remaining_seconds), 1), self._window)
                return RateLimitDecision(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=retry_after,
                )

            window.count += 1
            return RateLimitDecision(
                allowed=True,
                limit=limit,
                remaining=max(limit - window.count, 0),
                reset_at=reset_at,
            )

    def cleanup(self) -> int:
        """Remove all elapsed windows. Call periodically.

        Returns:
            Number of keys cleaned up.
        """
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, window in self._windows.items()
                if now - window.started_at >= self._window
            ]
            for key in expired:
                del self._windows[key]
        return len(expired)
