"""
tests/test_rate_limit.py — Tests for per-user fixed-window rate limiting

Covers: window admission and rejection, window reset, per-user isolation,
reset headers, expired-entry cleanup (memory and database stores, plus the
per-key purge on each database check), the
slowapi per-IP limiter wiring, and the 429 dependency.

Called by: pytest
Depends on: protein_pricing.rate_limit, protein_pricing.dependencies
"""

from datetime import datetime

import pytest
from fastapi import HTTPException

from protein_pricing.models import RateLimitEntry
from protein_pricing.rate_limit import (
    DatabaseRateLimitStore,
    MemoryRateLimitStore,
    RateLimitResult,
    UserRateLimiter,
    limiter,
)


class FakeClock:
    def __init__(self, t: float = 10_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture(params=["memory", "database"])
def user_limiter(request, session_factory, clock):
    store = MemoryRateLimitStore() if request.param == "memory" else DatabaseRateLimitStore(session_factory)
    return UserRateLimiter(store, clock=clock)


def test_first_request_opens_window(user_limiter, clock):
    r = user_limiter.check("u1", 3, 60)
    assert r.allowed is True
    assert r.remaining == 2
    assert r.reset_at == clock.t + 60


def test_rejects_after_max(user_limiter):
    results = [user_limiter.check("u1", 3, 60) for _ in range(4)]
    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]


def test_window_resets_after_expiry(user_limiter, clock):
    for _ in range(3):
        user_limiter.check("u1", 3, 60)
    assert user_limiter.check("u1", 3, 60).allowed is False
    clock.t += 60
    r = user_limiter.check("u1", 3, 60)
    assert r.allowed is True
    assert r.remaining == 2
    assert r.reset_at == clock.t + 60


def test_users_are_isolated(user_limiter):
    for _ in range(3):
        user_limiter.check("u1", 3, 60)
    assert user_limiter.check("u1", 3, 60).allowed is False
    assert user_limiter.check("u2", 3, 60).allowed is True


def test_reset_at_stays_fixed_within_window(user_limiter, clock):
    first = user_limiter.check("u1", 5, 60)
    clock.t += 30
    second = user_limiter.check("u1", 5, 60)
    assert second.reset_at == first.reset_at


def test_cleanup_expired(user_limiter, clock):
    user_limiter.check("u1", 3, 60)
    clock.t += 61
    assert user_limiter.cleanup_expired() >= 1


def test_database_cleanup_deletes_rows(session_factory, clock):
    lim = UserRateLimiter(DatabaseRateLimitStore(session_factory), clock=clock)
    lim.check("u1", 3, 60)
    lim.check("u1", 3, 60)
    clock.t += 61
    assert lim.cleanup_expired() == 2
    with session_factory() as db:
        assert db.query(RateLimitEntry).count() == 0


def test_headers_format():
    r = RateLimitResult(False, 0, 1_700_000_000.0)
    h = r.headers()
    assert h["X-RateLimit-Remaining"] == "0"
    parsed = datetime.fromisoformat(h["X-RateLimit-Reset"])
    assert parsed.timestamp() == 1_700_000_000.0


def test_slowapi_limiter_uses_remote_address():
    from slowapi.util import get_remote_address

    assert limiter._key_func is get_remote_address


def test_enforce_rate_limit_raises_429_with_headers():
    from protein_pricing.dependencies import enforce_rate_limit

    enforce_rate_limit("dep-test", 1)
    with pytest.raises(HTTPException) as exc:
        enforce_rate_limit("dep-test", 1)
    assert exc.value.status_code == 429
    assert exc.value.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in exc.value.headers


def test_ai_endpoint_returns_429_after_limit(client, monkeypatch):
    from protein_pricing.config import settings

    monkeypatch.setattr(settings, "ai_rate_limit_per_minute", 2)
    payload = {"pack_size": "4x10LB"}
    assert client.post("/api/ai/parse-pack-size", json=payload).status_code == 200
    assert client.post("/api/ai/parse-pack-size", json=payload).status_code == 200
    resp = client.post("/api/ai/parse-pack-size", json=payload)
    assert resp.status_code == 429
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.json()["error"] == "Rate limit exceeded. Please try again later."


def test_database_rows_stay_bounded_across_windows(session_factory, clock):
    lim = UserRateLimiter(DatabaseRateLimitStore(session_factory), clock=clock)
    for _ in range(5):
        for _ in range(3):
            assert lim.check("u1", 3, 60).allowed is True
        clock.t += 61
    with session_factory() as db:
        assert db.query(RateLimitEntry).count() == 3


def test_database_hit_only_purges_its_own_key(session_factory, clock):
    lim = UserRateLimiter(DatabaseRateLimitStore(session_factory), clock=clock)
    lim.check("u1", 3, 60)
    lim.check("u2", 3, 60)
    clock.t += 61
    lim.check("u1", 3, 60)
    with session_factory() as db:
        assert db.query(RateLimitEntry).filter_by(user_key="u1").count() == 1
        assert db.query(RateLimitEntry).filter_by(user_key="u2").count() == 1
