"""Circuit breaker for the LLM vendor.

State machine:
  closed    → open       after fail_max consecutive failures
  open      → half_open  once reset_timeout seconds pass since the last failure
  half_open → closed     when the single trial call succeeds
  half_open → open       when the trial call fails (cooldown restarts)

State lives in an injected store. MemoryBreakerStore is process-local and
guarded by a lock; DatabaseBreakerStore keeps one circuit_breaker_state row
per service so an open breaker survives restarts. Both expose the same
compare-and-set primitive, so concurrent failure reports never lose updates.

Usage:
    from protein_pricing.circuit_breaker import get_breaker
    breaker = get_breaker()
    result = await breaker.call(provider.complete, request)

Called by: services/ai_parsers.py, routers/ai.py (health)
Depends on: models/resilience.py, database.py, config.py
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from .config import settings
from .models.resilience import CircuitBreakerState

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half_open"

_CAS_ATTEMPTS = 5


class CircuitOpenError(Exception):
    """Raised when the breaker short-circuits a call."""

    def __init__(self, service: str, retry_after: float = 0):
        self.service = service
        self.retry_after = max(0, int(retry_after))
        super().__init__(f"{service} temporarily unavailable")


@dataclass(frozen=True)
class BreakerSnapshot:
    failures: int = 0
    last_failure_at: float | None = None
    trial_started_at: float | None = None
    is_open: bool = False
    version: int = 0


class MemoryBreakerStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[str, BreakerSnapshot] = {}

    def load(self, key: str) -> BreakerSnapshot:
        with self._lock:
            return self._rows.get(key, BreakerSnapshot())

    def compare_and_set(self, key: str, expected_version: int, new: BreakerSnapshot) -> bool:
        with self._lock:
            current = self._rows.get(key, BreakerSnapshot())
            if current.version != expected_version:
                return False
            self._rows[key] = replace(new, version=expected_version + 1)
            return True

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._rows.clear()
            else:
                self._rows.pop(key, None)


class DatabaseBreakerStore:
    """One circuit_breaker_state row per service, updated with optimistic versioning."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def load(self, key: str) -> BreakerSnapshot:
        with self._session_factory() as db:
            row = db.query(CircuitBreakerState).filter_by(service_key=key).first()
            if row is None:
                db.add(CircuitBreakerState(service_key=key, failures=0, is_open=False, version=0))
                try:
                    db.commit()
                except IntegrityError:
                    # Another worker created it first
                    db.rollback()
                    row = db.query(CircuitBreakerState).filter_by(service_key=key).one()
                else:
                    return BreakerSnapshot()
            return BreakerSnapshot(
                failures=row.failures or 0,
                last_failure_at=row.last_failure_at,
                trial_started_at=row.trial_started_at,
                is_open=bool(row.is_open),
                version=row.version or 0,
            )

    def compare_and_set(self, key: str, expected_version: int, new: BreakerSnapshot) -> bool:
        with self._session_factory() as db:
            result = db.execute(
                update(CircuitBreakerState)
                .where(
                    CircuitBreakerState.service_key == key,
                    CircuitBreakerState.version == expected_version,
                )
                .values(
                    failures=new.failures,
                    last_failure_at=new.last_failure_at,
                    trial_started_at=new.trial_started_at,
                    is_open=new.is_open,
                    version=expected_version + 1,
                )
            )
            db.commit()
            return result.rowcount == 1


class CircuitBreaker:
    def __init__(
        self,
        store=None,
        name: str = "ai_service",
        fail_max: int = 5,
        reset_timeout: float = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else MemoryBreakerStore()
        self.name = name
        self.fail_max = fail_max
        self.reset_timeout = reset_timeout
        self._clock = clock

    def _state_of(self, snap: BreakerSnapshot, now: float) -> str:
        if not snap.is_open:
            return CLOSED
        if snap.last_failure_at is None or now - snap.last_failure_at >= self.reset_timeout:
            return HALF_OPEN
        return OPEN

    @property
    def current_state(self) -> str:
        return self._state_of(self.store.load(self.name), self._clock())

    @property
    def _fail_count(self) -> int:
        return self.store.load(self.name).failures

    def is_open(self) -> bool:
        return self.current_state == OPEN

    def retry_after(self) -> float:
        snap = self.store.load(self.name)
        if not snap.is_open or snap.last_failure_at is None:
            return 0
        return max(0.0, snap.last_failure_at + self.reset_timeout - self._clock())

    def allow_request(self) -> bool:
        """True if a call may go out now. Claims the single half-open trial slot."""
        for _ in range(_CAS_ATTEMPTS):
            snap = self.store.load(self.name)
            now = self._clock()
            state = self._state_of(snap, now)
            if state == CLOSED:
                return True
            if state == OPEN:
                return False
            # half_open: one trial at a time; a trial that never reported back
            # frees the slot after another reset_timeout
            if snap.trial_started_at is not None and now - snap.trial_started_at < self.reset_timeout:
                return False
            if self.store.compare_and_set(
                self.name, snap.version, replace(snap, trial_started_at=now)
            ):
                logger.info(f"Circuit breaker '{self.name}' half-open, allowing trial call")
                return True
        return False

    def record_failure(self) -> None:
        for _ in range(_CAS_ATTEMPTS):
            snap = self.store.load(self.name)
            now = self._clock()
            failures = snap.failures + 1
            opening = snap.is_open or failures >= self.fail_max
            new = replace(
                snap,
                failures=failures,
                last_failure_at=now,
                trial_started_at=None,
                is_open=opening,
            )
            if self.store.compare_and_set(self.name, snap.version, new):
                if opening and not snap.is_open:
                    logger.warning(
                        f"Circuit breaker '{self.name}' opened after {failures} failures"
                    )
                elif snap.is_open:
                    logger.warning(f"Circuit breaker '{self.name}' trial failed, reopening")
                return
        logger.warning(f"Circuit breaker '{self.name}': failure not recorded (contention)")

    def record_success(self) -> None:
        for _ in range(_CAS_ATTEMPTS):
            snap = self.store.load(self.name)
            if snap.failures == 0 and not snap.is_open and snap.trial_started_at is None:
                return
            if snap.is_open and snap.trial_started_at is None:
                # Late success from a call that started before the breaker opened
                return
            new = BreakerSnapshot(version=snap.version)
            if self.store.compare_and_set(self.name, snap.version, new):
                if snap.is_open:
                    logger.info(f"Circuit breaker '{self.name}' closed after successful trial")
                return

    async def call(self, func, *args, **kwargs):
        """Run an async vendor call through the breaker.

        Raises CircuitOpenError without calling func while open. Any exception
        from func counts as a failure and propagates.
        """
        if not self.allow_request():
            raise CircuitOpenError(self.name, self.retry_after())
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


_breakers: dict[str, CircuitBreaker] = {}


def get_breaker(name: str = "ai_service") -> CircuitBreaker:
    """Process-wide breaker for a service, backed by the configured store."""
    if name not in _breakers:
        if settings.breaker_backend == "database":
            from .database import SessionLocal

            store = DatabaseBreakerStore(SessionLocal)
        else:
            store = MemoryBreakerStore()
        _breakers[name] = CircuitBreaker(
            store,
            name=name,
            fail_max=settings.breaker_fail_max,
            reset_timeout=settings.breaker_reset_seconds,
        )
    return _breakers[name]
