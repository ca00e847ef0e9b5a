"""Failed-login throttling keyed by username."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from threading import Lock

from litenotes.core.errors import LockoutError
from litenotes.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class LoginAttempts:
    """Consecutive failures for one username and the lockout deadline, if any."""

    failure_count: int = 0
    lockout_until: float | None = None
    last_failure_at: float = 0.0


class LoginRateLimiter:
    """Lock a username out after ``max_attempts`` consecutive failures.

    Counters reset on a successful login and once a lockout has elapsed.
    Failures older than the lockout window are forgotten, which keeps the map
    bounded when many distinct usernames fail once.
    """

    def __init__(
        self,
        max_attempts: int,
        lockout_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._attempts: dict[str, LoginAttempts] = {}
        self._lock = Lock()

    def check(self, username: str) -> None:
        """Raise if ``username`` is currently locked out.

        Raises:
            LockoutError: Carrying the remaining lockout in whole seconds
        """
        now = self._clock()
        with self._lock:
            attempts = self._attempts.get(username)
            if attempts is None or attempts.lockout_until is None:
                return
            if now < attempts.lockout_until:
                retry_after = max(1, math.ceil(attempts.lockout_until - now))
                raise LockoutError(retry_after)
            # Lockout elapsed; start counting afresh.
            del self._attempts[username]

    def record_failure(self, username: str) -> bool:
        """Count a failed attempt; return True if this failure triggered a lockout."""
        now = self._clock()
        with self._lock:
            self._purge_stale(now)
            attempts = self._attempts.setdefault(username, LoginAttempts())
            attempts.failure_count += 1
            attempts.last_failure_at = now
            if attempts.failure_count >= self.max_attempts:
                attempts.lockout_until = now + self.lockout_seconds
                logger.warning(
                    "Locking out %r for %d seconds after %d failed logins",
                    username,
                    self.lockout_seconds,
                    attempts.failure_count,
                )
                return True
            return False

    def reset(self, username: str) -> None:
        """Forget all failures for ``username``."""
        with self._lock:
            self._attempts.pop(username, None)

    def attempts_for(self, username: str) -> LoginAttempts | None:
        """Return a snapshot of the failure state for ``username``."""
        with self._lock:
            attempts = self._attempts.get(username)
            if attempts is None:
                return None
            return LoginAttempts(
                attempts.failure_count, attempts.lockout_until, attempts.last_failure_at
            )

    def tracked_usernames(self) -> int:
        """Return how many usernames currently carry failure state."""
        with self._lock:
            return len(self._attempts)

    def _purge_stale(self, now: float) -> None:
        # Caller holds self._lock.
        stale = [
            username
            for username, attempts in self._attempts.items()
            if (attempts.lockout_until is not None and now >= attempts.lockout_until)
            or (
                attempts.lockout_until is None
                and now - attempts.last_failure_at >= self.lockout_seconds
            )
        ]
        for username in stale:
            del self._attempts[username]


@lru_cache(maxsize=1)
def get_login_rate_limiter() -> LoginRateLimiter:
    """Return the process-wide login limiter."""
    return LoginRateLimiter(
        max_attempts=settings.login_max_failed_attempts,
        lockout_seconds=settings.login_lockout_seconds,
    )
