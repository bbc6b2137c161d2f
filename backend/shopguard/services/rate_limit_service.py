"""
Rate Limiting Service

WHY: Permission requests, approvals, shop switches and bulk assignments are
cheap to spam. Every mutating permission operation consults the limiter
before touching durable state.

SEMANTICS (fixed window per subject/action pair):
- No window, or the window is older than window_seconds: a fresh window starts
  with count=1 and the call is allowed.
- Otherwise the count is incremented. A post-increment count above
  max_attempts is denied (remaining=0). Denied calls still count.
- Allowed calls report remaining = max_attempts - count.

CONCURRENCY: The read-modify-write of a window happens under the store's lock,
so a burst of concurrent callers for the same key can never exceed
max_attempts.

STORAGE: Windows live in a process-local map behind the RateLimitStore
interface. Expired windows are replaced lazily on next access; sweep() only
bounds memory in long-running processes.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Protocol

from ..errors import RateLimited


@dataclass(frozen=True)
class RateLimitRule:
    """A named window: at most max_attempts calls per window per subject."""
    action: str
    window: timedelta
    max_attempts: int

    @property
    def window_seconds(self) -> float:
        return self.window.total_seconds()


# Configuration constants
SHOP_SWITCH = RateLimitRule("shop_switch", timedelta(minutes=5), 15)
APPROVE_PERMISSION = RateLimitRule("approve_permission", timedelta(minutes=5), 10)
DENY_PERMISSION = RateLimitRule("deny_permission", timedelta(minutes=5), 10)
REVOKE_PERMISSION = RateLimitRule("revoke_permission", timedelta(minutes=5), 10)
PERMISSION_REQUEST = RateLimitRule("permission_request", timedelta(minutes=10), 5)
SUPERADMIN_ASSIGN = RateLimitRule("superadmin_assign", timedelta(minutes=15), 20)
SUPERADMIN_BULK_ASSIGN = RateLimitRule("superadmin_bulk_assign", timedelta(minutes=30), 5)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int | None = None
    retry_after_seconds: int | None = None


@dataclass
class RateWindow:
    count: int
    window_started_at: float


class RateLimitStore(Protocol):
    """Backing store for rate windows. Implementations must be atomic per key."""

    def consume(self, key: tuple[str, str], window_seconds: float, max_attempts: int, now: float) -> RateLimitResult:
        ...

    def sweep(self, max_window_seconds: float, now: float) -> int:
        ...

    def clear(self) -> None:
        ...

    def __len__(self) -> int:
        ...


class InMemoryRateLimitStore:
    """Process-local windows guarded by a single lock."""

    def __init__(self):
        self._windows: dict[tuple[str, str], RateWindow] = {}
        self._lock = threading.Lock()

    def consume(self, key: tuple[str, str], window_seconds: float, max_attempts: int, now: float) -> RateLimitResult:
        with self._lock:
            window = self._windows.get(key)

            if window is None or now - window.window_started_at > window_seconds:
                self._windows[key] = RateWindow(count=1, window_started_at=now)
                return RateLimitResult(allowed=True, remaining=max(max_attempts - 1, 0))

            window.count += 1
            if window.count > max_attempts:
                retry_after = window.window_started_at + window_seconds - now
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    retry_after_seconds=max(int(retry_after) + 1, 1),
                )

            return RateLimitResult(allowed=True, remaining=max_attempts - window.count)

    def sweep(self, max_window_seconds: float, now: float) -> int:
        with self._lock:
            stale = [
                key for key, window in self._windows.items()
                if now - window.window_started_at > max_window_seconds
            ]
            for key in stale:
                del self._windows[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


class RateLimiter:
    """
    Rate limiter registered as a Flask extension.

    Usage:
        rate_limiter.init_app(app)
        result = rate_limiter.check_and_consume(user.id, "shop_switch", 300, 15)
        rate_limiter.enforce(SHOP_SWITCH, user.id)  # raises RateLimited
    """

    def __init__(self, store: RateLimitStore | None = None, clock: Callable[[], float] = time.monotonic):
        self.store = store or InMemoryRateLimitStore()
        self.clock = clock
        self.enabled = True
        self.sweep_threshold = 10_000
        self._longest_window_seconds = 0.0

    def init_app(self, app) -> None:
        self.enabled = app.config.get("RATE_LIMIT_ENABLED", True)
        self.sweep_threshold = app.config.get("RATE_LIMIT_SWEEP_THRESHOLD", 10_000)
        app.extensions["rate_limiter"] = self

    def check_and_consume(
        self,
        subject_id,
        action: str,
        window_seconds: float,
        max_attempts: int,
    ) -> RateLimitResult:
        """
        Count one attempt for (subject_id, action) and report whether it is allowed.

        window_seconds may also be a timedelta.
        """
        if isinstance(window_seconds, timedelta):
            window_seconds = window_seconds.total_seconds()

        if not self.enabled:
            return RateLimitResult(allowed=True, remaining=None)

        self._longest_window_seconds = max(self._longest_window_seconds, window_seconds)
        now = self.clock()

        if len(self.store) > self.sweep_threshold:
            self.store.sweep(self._longest_window_seconds, now)

        return self.store.consume((str(subject_id), action), window_seconds, max_attempts, now)

    def enforce(self, rule: RateLimitRule, subject_id) -> RateLimitResult:
        """Consume one attempt under rule; raise RateLimited when the window is exhausted."""
        result = self.check_and_consume(subject_id, rule.action, rule.window_seconds, rule.max_attempts)
        if not result.allowed:
            raise RateLimited(retry_after_seconds=result.retry_after_seconds)
        return result

    def sweep(self) -> int:
        """Drop windows that can no longer affect any decision. Returns count removed."""
        return self.store.sweep(self._longest_window_seconds, self.clock())

    def clear(self) -> None:
        self.store.clear()
