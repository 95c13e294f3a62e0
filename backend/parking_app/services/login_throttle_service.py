"""
Login Throttling Service

WHY: Prevent brute-force password attacks against the single admin account.

SECURITY FEATURES:
- Counts every login attempt per client IP, successful or not
- At most MAX_ATTEMPTS attempts within WINDOW; the next one is refused
  with RateLimited before credentials are even checked
- The window opens at the first attempt and resets lazily on the first
  attempt after it has elapsed
- A successful login clears the IP's counter
- In-memory, per process; windows that have elapsed are dropped on the
  next attempt from any IP, so the map only holds live windows
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from ..errors import RateLimited
from ..extensions import component, LOGIN_LIMITER_KEY
from ..time_utils import utcnow


# Configuration defaults (overridable through LOGIN_MAX_ATTEMPTS / LOGIN_WINDOW_SECONDS)
MAX_ATTEMPTS = 5
WINDOW = timedelta(minutes=15)


@dataclass
class _Window:
    started_at: datetime
    attempts: int = 0


class LoginRateLimiter:
    def __init__(
        self,
        max_attempts: int = MAX_ATTEMPTS,
        window: timedelta = WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_attempts = max_attempts
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}

    def hit(self, key: str) -> int:
        """
        Register one attempt for `key`.

        Returns the number of attempts left in the current window.
        Raises RateLimited when the window is already full.
        """
        now = self._clock()
        with self._lock:
            self._prune(now)
            window = self._windows.get(key)
            if window is None:
                window = _Window(started_at=now)
                self._windows[key] = window

            if window.attempts >= self.max_attempts:
                retry_after = (window.started_at + self.window - now).total_seconds()
                raise RateLimited(max(1, math.ceil(retry_after)))

            window.attempts += 1
            return self.max_attempts - window.attempts

    def tracked_count(self) -> int:
        """Number of IPs with a live window."""
        with self._lock:
            return len(self._windows)

    def _prune(self, now: datetime) -> None:
        expired = [key for key, window in self._windows.items() if now >= window.started_at + self.window]
        for key in expired:
            del self._windows[key]

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def status(self, key: str) -> dict:
        now = self._clock()
        with self._lock:
            self._prune(now)
            window = self._windows.get(key)
            if window is None:
                return {"attempts": 0, "maxAttempts": self.max_attempts, "limited": False}
            return {
                "attempts": window.attempts,
                "maxAttempts": self.max_attempts,
                "limited": window.attempts >= self.max_attempts,
            }


def current_login_limiter() -> LoginRateLimiter:
    return component(LOGIN_LIMITER_KEY)
