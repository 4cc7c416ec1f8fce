"""
startup.py — Database Startup Migrations (Idempotent)

Tables and indexes are defined in the ORM models and created via
Base.metadata.create_all(checkfirst=True). This file adds what the ORM does
not express: reference-data seeds (zones, warehouses, default organization)
and PostgreSQL CHECK constraints on status columns.

Called by: main.py lifespan
Depends on: database.py (engine, SessionLocal), services/zone_service.py
"""

import logging
import os

from sqlalchemy import text as sqltext

from .database import SessionLocal, engine

log = logging.getLogger(__name__)

DEFAULT_ORGANIZATION = "Default"


def run_startup_migrations() -> None:
    """Execute all idempotent startup operations. Safe to call on every app boot."""
    if os.environ.get("TESTING"):
        log.info("TESTING mode — skipping startup migrations")
        return

    from .models import Base

    Base.metadata.create_all(bind=engine, checkfirst=True)
    log.info("ORM schema sync complete (create_all checkfirst=True)")

    if engine.dialect.name == "postgresql":
        with engine.connect() as conn:
            _add_check_constraints(conn)

    seed_reference_data()
    log.info("Startup migrations complete")


def seed_reference_data() -> None:
    from .models import Organization
    from .services.zone_service import seed_warehouses, seed_zones

    db = SessionLocal()
    try:
        org = db.query(Organization).order_by(Organization.id).first()
        if org is None:
            org = Organization(name=DEFAULT_ORGANIZATION)
            db.add(org)
            db.commit()
            log.info("Created default organization")
        seed_zones(db)
        seed_warehouses(db, organization_id=org.id)
    finally:
        db.close()


def _exec(conn, stmt: str) -> None:
    """Execute a single DDL statement with rollback on failure."""
    try:
        conn.execute(sqltext(stmt))
        conn.commit()
    except Exception as e:
        log.warning("DDL failed: %s", e)
        conn.rollback()


def _add_check_constraints(conn) -> None:
    checks = (
        ("price_sheets", "chk_price_sheet_status", "status IN ('draft', 'published', 'archived')"),
        ("manufacturer_deals", "chk_deal_status", "status IN ('pending', 'accepted', 'rejected')"),
        ("upload_batches", "chk_upload_status", "status IN ('processing', 'completed', 'error')"),
        ("freight_rates", "chk_freight_rate_positive", "rate_per_lb >= 0"),
    )
    for table, name, expr in checks:
        _exec(conn, f"""
            DO $$ BEGIN
                ALTER TABLE {table} ADD CONSTRAINT {name} CHECK ({expr});
            EXCEPTION WHEN duplicate_object THEN NULL;
            END $$
        """)
