"""Zones and warehouses — reference data plus state → zone assignment.

Zone codes are "1".."4"; a state belongs to at most one zone. Customers in
states outside every zone get no zone and are left for manual assignment.

Called by: startup.py (seeding), routers/customers.py, services/calibration_service.py
"""

from loguru import logger
from sqlalchemy.orm import Session

from ..models import Warehouse, Zone

ZONE_DEFINITIONS = {
    "1": {
        "name": "Southeast",
        "color": "#FF6B6B",
        "states": ["FL", "GA", "AL", "SC", "NC", "TN", "MS"],
    },
    "2": {
        "name": "Northeast",
        "color": "#4ECDC4",
        "states": ["NY", "NJ", "PA", "MA", "CT", "MD", "VA", "DE"],
    },
    "3": {
        "name": "Midwest",
        "color": "#45B7D1",
        "states": ["OH", "MI", "IL", "IN", "WI", "MN", "MO"],
    },
    "4": {
        "name": "West/Other",
        "color": "#FFA07A",
        "states": ["TX", "CA", "AZ", "NV", "OR", "WA", "CO", "UT"],
    },
}

WAREHOUSE_SEEDS = [
    {"code": "PA", "name": "Boyertown Cold Storage", "city": "Boyertown", "state": "PA",
     "zip": "19512", "lat": 40.3337, "lng": -75.6374, "serves_zones": ["1", "2", "3"]},
    {"code": "GA", "name": "Americus Cold Storage", "city": "Americus", "state": "GA",
     "zip": "31709", "lat": 32.0724, "lng": -84.2327, "serves_zones": ["1", "4"]},
    {"code": "IN", "name": "Indianapolis Cold Storage", "city": "Indianapolis", "state": "IN",
     "zip": "46204", "lat": 39.7684, "lng": -86.1581, "serves_zones": ["3", "4"]},
]


def zone_code_for_state(state: str | None) -> str | None:
    st = (state or "").strip().upper()
    for code, zone in ZONE_DEFINITIONS.items():
        if st in zone["states"]:
            return code
    return None


def zone_for_state(db: Session, state: str | None) -> Zone | None:
    code = zone_code_for_state(state)
    if code is None:
        return None
    return db.query(Zone).filter_by(code=code).first()


def seed_zones(db: Session) -> int:
    """Insert missing zones; existing rows are left alone. Returns rows added."""
    existing = {z.code for z in db.query(Zone.code).all()}
    added = 0
    for code, zone in ZONE_DEFINITIONS.items():
        if code in existing:
            continue
        db.add(Zone(
            code=code,
            name=zone["name"],
            color=zone["color"],
            states=list(zone["states"]),
            description=f"{zone['name']}: {', '.join(zone['states'])}",
        ))
        added += 1
    if added:
        db.commit()
        logger.info(f"Seeded {added} zones")
    return added


def seed_warehouses(db: Session, organization_id: int | None = None) -> int:
    existing = {w.code for w in db.query(Warehouse.code).all()}
    added = 0
    for seed in WAREHOUSE_SEEDS:
        if seed["code"] in existing:
            continue
        db.add(Warehouse(organization_id=organization_id, **seed))
        added += 1
    if added:
        db.commit()
        logger.info(f"Seeded {added} warehouses")
    return added


def zone_ids_by_code(db: Session) -> dict[str, int]:
    return {z.code: z.id for z in db.query(Zone).all()}
