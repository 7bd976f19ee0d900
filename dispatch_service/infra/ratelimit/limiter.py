"""In-process, per-user fixed-window rate limiter with periodic eviction."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dispatch_service.infra.logging import get_lazy_logger
from dispatch_service.infra.metrics import (
    rate_limit_rejections_total,
    rate_limit_tracked_users,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


@dataclass(slots=True)
class RateLimitWindow:
    """Admissions counted for one user in the current window."""

    count: int
    reset_at: float


class UserRateLimiter:
    """Per-user admission control.

    Each user gets a window of ``window_seconds`` opened by their first
    admission; up to ``max_requests`` admissions are allowed before the window
    resets. State is process-local: in a multi-instance deployment every
    instance enforces the limit independently.

    Memory is bounded two ways. Every ``eviction_interval`` seconds (checked
    lazily on ``admit``) all expired windows are dropped, and if the map still
    holds more than ``max_tracked_users`` entries the least recently opened
    windows go first.

    Example:
        limiter = UserRateLimiter(max_requests=100, window_seconds=60)
        if not limiter.admit("user-123"):
            return None  # silently dropped
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        *,
        eviction_interval: float = 300.0,
        max_tracked_users: int = 100_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Admissions allowed per user per window.
            window_seconds: Window length in seconds.
            eviction_interval: Seconds between expired-window sweeps.
            max_tracked_users: Hard cap on stored windows.
            clock: Monotonic seconds source (injectable for tests).
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.eviction_interval = eviction_interval
        self.max_tracked_users = max_tracked_users
        self._clock = clock
        self._windows: OrderedDict[str, RateLimitWindow] = OrderedDict()
        self._next_eviction = clock() + eviction_interval

    @property
    def tracked_users(self) -> int:
        """Number of windows currently held."""
        return len(self._windows)

    def admit(self, user_id: str) -> bool:
        """Count one admission for ``user_id``.

        Returns:
            True if the user is within the limit, False if rejected.
        """
        now = self._clock()
        if now >= self._next_eviction:
            self.evict_expired(now)

        window = self._windows.get(user_id)
        if window is None or now >= window.reset_at:
            # A fresh window moves to the end so capacity eviction drops old ones first
            self._windows[user_id] = RateLimitWindow(count=1, reset_at=now + self.window_seconds)
            self._windows.move_to_end(user_id)
            self._enforce_capacity()
            rate_limit_tracked_users.set(len(self._windows))
            return True

        if window.count >= self.max_requests:
            rate_limit_rejections_total.inc()
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "user_id": user_id,
                    "limit": self.max_requests,
                    "window_seconds": self.window_seconds,
                    "retry_after": max(0.0, window.reset_at - now),
                },
            )
            return False

        window.count += 1
        return True

    def remaining(self, user_id: str) -> int:
        """Admissions left for ``user_id`` in the current window."""
        window = self._windows.get(user_id)
        if window is None or self._clock() >= window.reset_at:
            return self.max_requests
        return max(0, self.max_requests - window.count)

    def reset(self, user_id: str | None = None) -> None:
        """Forget one user's window, or every window when ``user_id`` is None."""
        if user_id is None:
            self._windows.clear()
        else:
            self._windows.pop(user_id, None)
        rate_limit_tracked_users.set(len(self._windows))

    def evict_expired(self, now: float | None = None) -> int:
        """Drop windows whose reset time has passed.

        Returns:
            Number of windows evicted.
        """
        now = self._clock() if now is None else now
        expired = [uid for uid, window in self._windows.items() if now >= window.reset_at]
        for uid in expired:
            del self._windows[uid]
        self._next_eviction = now + self.eviction_interval
        rate_limit_tracked_users.set(len(self._windows))

        lazy_logger.debug(
            lambda: f"ratelimit.evict: removed={len(expired)}, tracked={len(self._windows)}"
        )
        return len(expired)

    def _enforce_capacity(self) -> None:
        overflow = len(self._windows) - self.max_tracked_users
        if overflow <= 0:
            return
        self.evict_expired()
        while len(self._windows) > self.max_tracked_users:
            self._windows.popitem(last=False)
