"""
conftest.py — Shared Test Fixtures for the pricing API

Provides an in-memory SQLite database, FastAPI TestClient with auth
overrides, and factory fixtures for the core models (Organization, User,
Zone, Warehouse, Product, FreightRate).

Business Rules:
- All tests run against an isolated in-memory DB
- Auth is overridden so tests don't need a session cookie
- AI, GoShip and Mapbox keys are blank: no test reaches a vendor
- Breaker and per-user rate-limit state is reset around every test

Called by: all test files via pytest autodiscovery
Depends on: protein_pricing.models (Base), protein_pricing.database (get_db),
            protein_pricing.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BREAKER_BACKEND"] = "memory"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["GOSHIP_API_KEY"] = ""
os.environ["MAPBOX_ACCESS_TOKEN"] = ""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from protein_pricing.models import (
    Base,
    FreightRate,
    Organization,
    Product,
    User,
    Warehouse,
    Zone,
)
from protein_pricing.models.base import utcnow

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _reset_resilience_state():
    """Fresh breakers and per-user windows for every test."""
    from protein_pricing import rate_limit
    from protein_pricing.circuit_breaker import _breakers

    _breakers.clear()
    rate_limit._user_limiter = None
    yield
    _breakers.clear()
    rate_limit._user_limiter = None


@pytest.fixture()
def org(db_session: Session) -> Organization:
    o = Organization(name="Keystone Foods Distribution")
    db_session.add(o)
    db_session.commit()
    db_session.refresh(o)
    return o


@pytest.fixture()
def test_user(db_session: Session, org: Organization) -> User:
    """A standard pricing user."""
    user = User(
        email="pricer@example.com",
        name="Test Pricer",
        role="pricing",
        organization_id=org.id,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def other_user(db_session: Session, org: Organization) -> User:
    user = User(email="other@example.com", name="Other Pricer", role="pricing", organization_id=org.id)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def zones(db_session: Session) -> dict[str, Zone]:
    """The four seeded zones, keyed by code."""
    from protein_pricing.services.zone_service import seed_zones

    seed_zones(db_session)
    return {z.code: z for z in db_session.query(Zone).all()}


@pytest.fixture()
def warehouses(db_session: Session, org: Organization) -> dict[str, Warehouse]:
    """PA, GA and IN warehouses, keyed by code."""
    from protein_pricing.services.zone_service import seed_warehouses

    seed_warehouses(db_session, organization_id=org.id)
    return {w.code: w for w in db_session.query(Warehouse).all()}


@pytest.fixture()
def product(db_session: Session, warehouses) -> Product:
    """40 lb case of chicken breast at $100/case → $2.50/lb."""
    p = Product(
        item_code="CHK-1001",
        description="Boneless skinless chicken breast IQF",
        pack_size="4x10 lb",
        case_weight_lbs=40,
        unit_cost=100,
        brand="Keystone",
        category="Chicken",
        cases_available=120,
        warehouse_id=warehouses["PA"].id,
    )
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture()
def make_rate(db_session: Session):
    """Factory for freight rates; valid for 7 days unless told otherwise."""

    def _make(warehouse, zone, rate_per_lb=0.12, valid_days=7, age_days=0, city="Newark", state="NJ"):
        now = utcnow()
        rate = FreightRate(
            origin_warehouse_id=warehouse.id,
            destination_zone_id=zone.id,
            city=city,
            state=state,
            rate_per_lb=rate_per_lb,
            rate_type="frozen_ltl",
            weight_lbs=7500,
            valid_from=now - timedelta(days=age_days),
            valid_until=now - timedelta(days=age_days) + timedelta(days=valid_days),
        )
        db_session.add(rate)
        db_session.commit()
        db_session.refresh(rate)
        return rate

    return _make


@pytest.fixture()
def client(db_session: Session, test_user: User) -> TestClient:
    """FastAPI TestClient with auth overridden to return test_user.

    Overrides get_db to use the test session and require_user to skip the
    session cookie entirely. The per-IP limiter is disabled.
    """
    from protein_pricing.database import get_db
    from protein_pricing.dependencies import require_user
    from protein_pricing.main import app
    from protein_pricing.rate_limit import limiter

    def _override_db():
        yield db_session

    def _override_user():
        return test_user

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[require_user] = _override_user
    limiter.enabled = False

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture()
def session_factory():
    """sessionmaker bound to the test engine, for stores that open their own sessions."""
    return TestSessionLocal
