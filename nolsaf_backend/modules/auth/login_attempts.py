"""In-memory failed login tracking by email and by client IP."""

import time
from collections.abc import Callable
from dataclasses import dataclass

from ...config import settings
from ...core.ttl_cache import TTLCache, register_cache


@dataclass
class _Attempts:
    count: int = 0
    locked_until: float | None = None


class LoginAttemptTracker:
    """Counts failures per email and per IP and locks both after too many.

    Counters expire ``lockout_seconds`` after the last failure, so the
    window is sliding and locks lift on their own.
    """

    def __init__(
        self,
        max_attempts: int,
        lockout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._cache: TTLCache[str, _Attempts] = TTLCache(
            "login_attempts", ttl_seconds=lockout_seconds, clock=clock
        )

    @property
    def cache(self) -> TTLCache:
        return self._cache

    @staticmethod
    def _keys(email: str | None, ip: str | None) -> list[str]:
        keys = []
        if email:
            keys.append(f"email:{email.strip().lower()}")
        if ip:
            keys.append(f"ip:{ip}")
        return keys

    def locked_for(self, email: str | None, ip: str | None) -> float:
        """Seconds until the email or IP is unlocked (0 if not locked)."""
        now = self._clock()
        remaining = 0.0
        for key in self._keys(email, ip):
            record = self._cache.get(key)
            if record and record.locked_until and record.locked_until > now:
                remaining = max(remaining, record.locked_until - now)
        return remaining

    def record_failure(self, email: str | None, ip: str | None) -> bool:
        """Count a failure. Returns True if this failure triggered a lock."""
        locked = False
        now = self._clock()
        for key in self._keys(email, ip):
            record = self._cache.get(key) or _Attempts()
            record.count += 1
            if record.count >= self.max_attempts:
                record.locked_until = now + self.lockout_seconds
                locked = True
            self._cache.set(key, record)
        return locked

    def reset(self, email: str | None, ip: str | None) -> None:
        for key in self._keys(email, ip):
            self._cache.delete(key)


login_tracker = LoginAttemptTracker(
    max_attempts=settings.max_login_attempts,
    lockout_seconds=settings.lockout_duration_minutes * 60,
)
register_cache(login_tracker.cache)
