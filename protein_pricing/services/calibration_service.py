"""Freight rate calibration — refresh frozen LTL rates for every served lane.

For each active warehouse and each zone it serves, quote a standard
7,500 lb / 4 pallet shipment to five reference cities, convert the dry
quote to a reefer estimate, and upsert a per-lb rate valid for
settings.freight_cache_ttl_days. One failing destination is recorded and
skipped; the rest of the run continues.

Called by: routers/freight.py (POST /api/freight/calibrate)
Depends on: connectors/goship.py, services/freight_calculator.py
"""

from datetime import date, timedelta

from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..connectors.goship import GoShipClient, GoShipError
from ..models import FreightRate, Warehouse
from ..models.base import utcnow
from .freight_calculator import estimate_reefer_rate
from .price_calculator import PricingError, calculate_freight_per_lb
from .zone_service import zone_ids_by_code

CALIBRATION_WEIGHT_LBS = 7500
CALIBRATION_PALLETS = 4
RATE_TYPE = "frozen_ltl"

ZONE_DESTINATIONS = {
    "1": [  # Southeast
        {"city": "Miami", "state": "FL", "zip": "33101"},
        {"city": "Atlanta", "state": "GA", "zip": "30303"},
        {"city": "Charlotte", "state": "NC", "zip": "28202"},
        {"city": "Nashville", "state": "TN", "zip": "37203"},
        {"city": "Columbia", "state": "SC", "zip": "29201"},
    ],
    "2": [  # Northeast
        {"city": "New York", "state": "NY", "zip": "10001"},
        {"city": "Philadelphia", "state": "PA", "zip": "19102"},
        {"city": "Boston", "state": "MA", "zip": "02108"},
        {"city": "Baltimore", "state": "MD", "zip": "21201"},
        {"city": "Newark", "state": "NJ", "zip": "07102"},
    ],
    "3": [  # Midwest
        {"city": "Chicago", "state": "IL", "zip": "60601"},
        {"city": "Detroit", "state": "MI", "zip": "48226"},
        {"city": "Cleveland", "state": "OH", "zip": "44113"},
        {"city": "Indianapolis", "state": "IN", "zip": "46204"},
        {"city": "Columbus", "state": "OH", "zip": "43215"},
    ],
    "4": [  # West
        {"city": "Los Angeles", "state": "CA", "zip": "90012"},
        {"city": "San Francisco", "state": "CA", "zip": "94102"},
        {"city": "Phoenix", "state": "AZ", "zip": "85003"},
        {"city": "Denver", "state": "CO", "zip": "80202"},
        {"city": "Seattle", "state": "WA", "zip": "98101"},
    ],
}


def _upsert_rate(db: Session, **fields) -> FreightRate:
    rate = (
        db.query(FreightRate)
        .filter_by(
            origin_warehouse_id=fields["origin_warehouse_id"],
            destination_zone_id=fields["destination_zone_id"],
            city=fields["city"],
            state=fields["state"],
            rate_type=fields["rate_type"],
        )
        .first()
    )
    if rate is None:
        rate = FreightRate(**fields)
        db.add(rate)
    else:
        for k, v in fields.items():
            setattr(rate, k, v)
    return rate


async def calibrate_rates(db: Session, client: GoShipClient, today: date | None = None) -> dict:
    warehouses = db.query(Warehouse).filter(Warehouse.is_active.is_(True)).order_by(Warehouse.code).all()
    if not warehouses:
        raise LookupError("No active warehouses found")

    zone_ids = zone_ids_by_code(db)
    ship_date = (today or date.today()) + timedelta(days=1)
    pickup = ship_date.isoformat()
    results, errors = [], []

    for wh in warehouses:
        for zone_code in wh.serves_zones or []:
            zone_code = str(zone_code)
            zone_id = zone_ids.get(zone_code)
            if zone_id is None:
                errors.append({"warehouse": wh.code, "destination": f"zone {zone_code}",
                               "error": "Unknown zone"})
                continue
            for dest in ZONE_DESTINATIONS.get(zone_code, []):
                label = f"{dest['city']}, {dest['state']}"
                try:
                    quote = await client.get_ltl_quote(
                        origin_zip=wh.zip,
                        origin_city=wh.city,
                        origin_state=wh.state,
                        destination_zip=dest["zip"],
                        destination_city=dest["city"],
                        destination_state=dest["state"],
                        weight_lbs=CALIBRATION_WEIGHT_LBS,
                        pallets=CALIBRATION_PALLETS,
                        pickup_date=pickup,
                    )
                    reefer = estimate_reefer_rate(quote.cost, wh.state, ship_date)
                    rate_per_lb = calculate_freight_per_lb(reefer.estimate, CALIBRATION_WEIGHT_LBS)
                except (GoShipError, PricingError) as e:
                    logger.warning(f"Calibration {wh.code} → {label} failed: {e}")
                    errors.append({"warehouse": wh.code, "destination": label, "error": str(e)})
                    continue

                now = utcnow()
                _upsert_rate(
                    db,
                    origin_warehouse_id=wh.id,
                    destination_zone_id=zone_id,
                    city=dest["city"],
                    state=dest["state"],
                    rate_per_lb=rate_per_lb,
                    rate_type=RATE_TYPE,
                    weight_lbs=CALIBRATION_WEIGHT_LBS,
                    dry_ltl_quote=quote.cost,
                    multipliers={
                        "base": reefer.factors["base"],
                        "origin": reefer.factors["origin"],
                        "season": reefer.factors["season"],
                        "estimate": reefer.estimate,
                    },
                    valid_from=now,
                    valid_until=now + timedelta(days=settings.freight_cache_ttl_days),
                    goship_quote_id=quote.id,
                )
                db.commit()
                results.append({
                    "warehouse": wh.code,
                    "zone": zone_code,
                    "destination": label,
                    "dry_quote": quote.cost,
                    "reefer_estimate": reefer.estimate,
                    "rate_per_lb": rate_per_lb,
                })

    logger.info(f"Freight calibration: {len(results)} rates updated, {len(errors)} errors")
    return {"calibrated": len(results), "results": results, "errors": errors}
