"""In-memory tracking of wrong booking codes entered by owners."""

import time
from collections.abc import Callable
from dataclasses import dataclass

from ...core.ttl_cache import TTLCache, register_cache

MAX_CODE_FAILURES = 3
CODE_LOCKOUT_SECONDS = 5 * 60
# A streak of failures is forgotten this long after the last one
FAILURE_STREAK_SECONDS = 15 * 60


@dataclass
class _Streak:
    failures: int = 0
    locked_until: float | None = None


class BookingCodeAttemptTracker:
    """Locks an owner out of code checks after too many wrong codes in a row."""

    def __init__(
        self,
        max_failures: int = MAX_CODE_FAILURES,
        lockout_seconds: float = CODE_LOCKOUT_SECONDS,
        streak_seconds: float = FAILURE_STREAK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_failures = max_failures
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._cache: TTLCache[int, _Streak] = TTLCache(
            "booking_code_attempts", ttl_seconds=streak_seconds, clock=clock
        )

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def _current(self, owner_id: int) -> _Streak | None:
        streak = self._cache.get(owner_id)
        if streak and streak.locked_until is not None and streak.locked_until <= self._clock():
            # An expired lock starts the owner over with a clean streak
            self._cache.delete(owner_id)
            return None
        return streak

    def locked_for(self, owner_id: int) -> float:
        """Seconds until the owner may check codes again (0 if not locked)."""
        streak = self._current(owner_id)
        if streak is None or streak.locked_until is None:
            return 0.0
        return streak.locked_until - self._clock()

    def remaining_attempts(self, owner_id: int) -> int:
        streak = self._current(owner_id)
        if streak is None:
            return self.max_failures
        if streak.locked_until is not None:
            return 0
        return max(0, self.max_failures - streak.failures)

    def record_failure(self, owner_id: int) -> bool:
        """Count a wrong code. Returns True if this failure triggered the lock."""
        streak = self._current(owner_id) or _Streak()
        if streak.locked_until is not None:
            return False

        streak.failures += 1
        if streak.failures >= self.max_failures:
            streak = _Streak(locked_until=self._clock() + self.lockout_seconds)
            self._cache.set(owner_id, streak, ttl_seconds=self.lockout_seconds)
            return True
        self._cache.set(owner_id, streak)
        return False

    def clear(self, owner_id: int) -> None:
        """Forget the failure streak; a running lock stays in place."""
        streak = self._current(owner_id)
        if streak is not None and streak.locked_until is None:
            self._cache.delete(owner_id)


code_attempt_tracker = BookingCodeAttemptTracker()
register_cache(code_attempt_tracker.cache)
