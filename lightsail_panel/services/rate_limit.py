"""Per-address login rate limiting with escalating lockout."""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginRateLimitPolicy:
    """Soft attempt window plus a hard, longer lockout."""

    max_attempts: int = 5
    window_seconds: float = 15 * 60
    lockout_attempts: int = 10
    lockout_seconds: float = 30 * 60

    def __post_init__(self) -> None:
        if self.lockout_attempts <= self.max_attempts:
            raise ValueError("lockout_attempts must be greater than max_attempts")


@dataclass
class RateLimitEntry:
    """Failed-attempt tracking for a single source address."""

    attempts: int
    first_attempt: float
    locked_until: float = 0.0


@dataclass(frozen=True)
class RateLimitStatus:
    """Result of a rate limit check."""

    allowed: bool
    remaining: int
    retry_after_ms: int = 0


class LoginRateLimiter:
    """In-memory fixed-window login limiter keyed by source address.

    The attempt window and the lockout are independent clocks: an entry
    whose window has expired is still rejected while ``locked_until`` is in
    the future. All read-modify-write sequences run under one lock so
    concurrent failures from the same address cannot lose increments.
    """

    def __init__(
        self,
        policy: LoginRateLimitPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy or LoginRateLimitPolicy()
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def _is_locked(self, entry: RateLimitEntry, now: float) -> bool:
        return entry.locked_until > now

    def _window_expired(self, entry: RateLimitEntry, now: float) -> bool:
        return now - entry.first_attempt > self.policy.window_seconds

    def _status(self, ip: str, now: float) -> RateLimitStatus:
        """Compute the status for ``ip``. Caller must hold the lock."""
        entry = self._entries.get(ip)
        if entry is None:
            return RateLimitStatus(allowed=True, remaining=self.policy.max_attempts)

        if self._is_locked(entry, now):
            retry_after_ms = math.ceil((entry.locked_until - now) * 1000)
            return RateLimitStatus(allowed=False, remaining=0, retry_after_ms=retry_after_ms)

        if self._window_expired(entry, now):
            del self._entries[ip]
            return RateLimitStatus(allowed=True, remaining=self.policy.max_attempts)

        remaining = self.policy.max_attempts - entry.attempts
        return RateLimitStatus(allowed=remaining > 0, remaining=max(0, remaining))

    def check(self, ip: str) -> RateLimitStatus:
        """Check whether ``ip`` may attempt a login."""
        with self._lock:
            return self._status(ip, self._clock())

    def record_failure(self, ip: str) -> RateLimitStatus:
        """Record a failed login and return the updated status."""
        with self._lock:
            now = self._clock()
            entry = self._entries.get(ip)

            if entry is None or (self._window_expired(entry, now) and not self._is_locked(entry, now)):
                self._entries[ip] = RateLimitEntry(attempts=1, first_attempt=now)
            else:
                entry.attempts += 1
                if entry.attempts >= self.policy.lockout_attempts:
                    entry.locked_until = now + self.policy.lockout_seconds
                    logger.warning(
                        f"Login lockout for {ip} after {entry.attempts} failed attempts "
                        f"({self.policy.lockout_seconds:.0f}s)"
                    )

            return self._status(ip, now)

    def clear(self, ip: str) -> None:
        """Forget all failed attempts for ``ip``."""
        with self._lock:
            self._entries.pop(ip, None)

    def get_entry(self, ip: str) -> RateLimitEntry | None:
        """Return a copy of the entry for ``ip``, if any."""
        with self._lock:
            entry = self._entries.get(ip)
            return replace(entry) if entry is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def cleanup_stale_entries(self) -> int:
        """Remove entries whose window and lockout have both expired.

        Takes a snapshot of keys and re-checks each one under the lock, so
        entries inserted or refreshed concurrently are left alone.

        Returns:
            Number of entries removed
        """
        with self._lock:
            keys = list(self._entries)

        removed = 0
        for ip in keys:
            with self._lock:
                entry = self._entries.get(ip)
                if entry is None:
                    continue
                now = self._clock()
                if self._window_expired(entry, now) and not self._is_locked(entry, now):
                    del self._entries[ip]
                    removed += 1

        if removed:
            logger.info(f"Cleaned up {removed} stale login rate limit entries")
        return removed
