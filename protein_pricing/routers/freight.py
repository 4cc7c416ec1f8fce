"""
freight.py — Freight Quoting & Rate Calibration Router

Business Rules:
- A quote is a GoShip dry LTL quote converted to a reefer estimate
  (2.25× base, origin and season factors, $350 minimum)
- Calibration refreshes every warehouse × served-zone lane (admin only)
- /api/freight/rates lists ACTIVE rates only (valid_until > now)
- GoShip errors surface through the app-level GoShipError handler
  (validation → 400, not configured → 503, vendor failure → 502)

Called by: main.py (router mount)
Depends on: connectors/goship.py, services/freight_calculator.py,
            services/calibration_service.py
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..connectors.goship import GoShipError, get_goship_client
from ..database import get_db
from ..dependencies import require_admin, require_user
from ..models import FreightRate, User, Warehouse
from ..models.base import utcnow
from ..schemas.freight import (
    FreightQuoteRequest,
    FreightQuoteResponse,
    ReeferEstimateOut,
    rate_out,
)
from ..services.calibration_service import calibrate_rates
from ..services.freight_calculator import estimate_reefer_rate
from ..services.price_calculator import calculate_freight_per_lb

router = APIRouter(tags=["freight"])


@router.post("/api/freight/quote")
async def freight_quote(
    payload: FreightQuoteRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> FreightQuoteResponse:
    warehouse = db.get(Warehouse, payload.origin_warehouse_id)
    if not warehouse:
        raise HTTPException(404, "Origin warehouse not found")

    client = get_goship_client()
    quote = await client.get_ltl_quote(
        origin_zip=warehouse.zip,
        origin_city=warehouse.city,
        origin_state=warehouse.state,
        destination_zip=payload.destination_zip,
        destination_city=payload.destination_city,
        destination_state=payload.destination_state,
        weight_lbs=payload.weight_lbs,
        pallets=payload.pallets,
        pickup_date=payload.pickup_date.isoformat(),
    )
    reefer = estimate_reefer_rate(quote.cost, warehouse.state, payload.pickup_date)
    return FreightQuoteResponse(
        quote_id=quote.id,
        carrier=quote.carrier,
        transit_days=quote.transit_days,
        delivery_date=quote.delivery_date,
        dry_quote=quote.cost,
        reefer=ReeferEstimateOut(**reefer.to_dict()),
        freight_per_lb=calculate_freight_per_lb(reefer.estimate, payload.weight_lbs),
    )


@router.post("/api/freight/calibrate")
async def calibrate(
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not settings.goship_api_key:
        raise GoShipError("GoShip API key is not configured", "NOT_CONFIGURED", 503)
    try:
        return await calibrate_rates(db, get_goship_client())
    except LookupError as e:
        raise HTTPException(404, str(e))


@router.get("/api/freight/rates")
async def list_active_rates(
    zone_id: int | None = None,
    warehouse_id: int | None = None,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    q = (
        db.query(FreightRate)
        .options(joinedload(FreightRate.origin_warehouse), joinedload(FreightRate.destination_zone))
        .filter(FreightRate.valid_until.isnot(None), FreightRate.valid_until > utcnow())
    )
    if zone_id is not None:
        q = q.filter(FreightRate.destination_zone_id == zone_id)
    if warehouse_id is not None:
        q = q.filter(FreightRate.origin_warehouse_id == warehouse_id)
    rates = q.order_by(
        FreightRate.origin_warehouse_id, FreightRate.destination_zone_id, FreightRate.city
    ).all()
    return {"items": [rate_out(r) for r in rates]}
