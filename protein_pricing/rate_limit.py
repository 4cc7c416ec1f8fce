"""Request rate limiting.

Two layers:
  - `limiter`: slowapi per-IP limiter applied to every route (default limit
    from settings). Storage is whatever `rate_limit_storage_uri` points at.
  - Per-user fixed windows for the AI and deal-action routes, checked with
    `check_rate_limit(user_id, max_requests, window_seconds)`.

Fixed window rules:
  - The first request after a window expires starts a new window with count 1
  - The (N+1)-th request inside a window is rejected with remaining = 0
  - reset_at is the epoch second the current window ends

Stores (selected by settings.rate_limit_backend):
  - MemoryRateLimitStore: dict guarded by a lock, lazily reset per key
  - DatabaseRateLimitStore: one rate_limit_entries row per admitted request,
    counted with a range query on reset_at > now
    (the key's expired rows are deleted on each check)

Called by: dependencies.py (ai_rate_limit, deal_action_rate_limit), main.py,
           services/ai_parsers.py (ai_quota_available)
Depends on: models/resilience.py, config.py
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import func

from .config import settings
from .models.resilience import RateLimitEntry

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
    storage_uri=settings.rate_limit_storage_uri,
)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float

    def headers(self) -> dict[str, str]:
        reset = datetime.fromtimestamp(self.reset_at, tz=timezone.utc)
        return {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": reset.isoformat(),
        }


class MemoryRateLimitStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[int, float]] = {}  # key → (count, reset_at)

    def hit(self, key: str, max_requests: int, window_seconds: float, now: float) -> RateLimitResult:
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
            if count >= max_requests:
                self._windows[key] = (count, reset_at)
                return RateLimitResult(False, 0, reset_at)
            count += 1
            self._windows[key] = (count, reset_at)
            return RateLimitResult(True, max_requests - count, reset_at)

    def cleanup_expired(self, now: float) -> int:
        with self._lock:
            expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
            for k in expired:
                del self._windows[k]
            return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


class DatabaseRateLimitStore:
    """Durable windows shared across workers. Slower: one count query per check."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def hit(self, key: str, max_requests: int, window_seconds: float, now: float) -> RateLimitResult:
        with self._session_factory() as db:
            db.query(RateLimitEntry).filter(
                RateLimitEntry.user_key == key, RateLimitEntry.reset_at <= now
            ).delete(synchronize_session=False)
            count, window_end = (
                db.query(func.count(RateLimitEntry.id), func.min(RateLimitEntry.reset_at))
                .filter(RateLimitEntry.user_key == key, RateLimitEntry.reset_at > now)
                .one()
            )
            reset_at = window_end if count else now + window_seconds
            if count >= max_requests:
                db.commit()
                return RateLimitResult(False, 0, reset_at)
            db.add(RateLimitEntry(user_key=key, reset_at=reset_at, created_at=now))
            db.commit()
            return RateLimitResult(True, max_requests - count - 1, reset_at)

    def cleanup_expired(self, now: float) -> int:
        with self._session_factory() as db:
            deleted = (
                db.query(RateLimitEntry)
                .filter(RateLimitEntry.reset_at <= now)
                .delete(synchronize_session=False)
            )
            db.commit()
            return deleted


class UserRateLimiter:
    def __init__(self, store=None, clock=time.time):
        self.store = store if store is not None else MemoryRateLimitStore()
        self._clock = clock

    def check(self, user_id, max_requests: int, window_seconds: float = 60) -> RateLimitResult:
        result = self.store.hit(str(user_id), max_requests, window_seconds, self._clock())
        if not result.allowed:
            logger.info(f"Rate limit hit for user {user_id} ({max_requests}/{window_seconds}s)")
        return result

    def cleanup_expired(self) -> int:
        return self.store.cleanup_expired(self._clock())


_user_limiter: UserRateLimiter | None = None


def get_user_limiter() -> UserRateLimiter:
    global _user_limiter
    if _user_limiter is None:
        if settings.rate_limit_backend == "database":
            from .database import SessionLocal

            _user_limiter = UserRateLimiter(DatabaseRateLimitStore(SessionLocal))
        else:
            _user_limiter = UserRateLimiter(MemoryRateLimitStore())
    return _user_limiter


def check_rate_limit(user_id, max_requests: int, window_seconds: float = 60) -> RateLimitResult:
    return get_user_limiter().check(user_id, max_requests, window_seconds)


def ai_quota_available(user_id) -> bool:
    """Count one background AI call against the user's AI window.

    Shares the "ai:<id>" key with the ai_rate_limit dependency, so uploads and
    deal accepts draw from the same per-minute budget as the AI endpoints.
    """
    return check_rate_limit(f"ai:{user_id}", settings.ai_rate_limit_per_minute).allowed
