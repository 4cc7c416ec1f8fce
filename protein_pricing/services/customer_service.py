"""Customer locations — zone assignment by state, optional Mapbox geocoding.

Business Rules:
  - zone_id always follows the customer's state (re-derived on state change)
  - Single create/update: geocoding is best effort; a failure or a match
    below MIN_CONFIDENCE leaves lat/lng null and the customer is still saved
  - Bulk import with geocoding: a row that cannot be geocoded with
    confidence >= MIN_CONFIDENCE is rejected, never imported without coordinates
  - Bulk geocoding runs in batches of GEOCODE_BATCH_SIZE with a pause between
    batches to stay under the Mapbox request rate

Called by: routers/customers.py
Depends on: connectors/mapbox.py, services/zone_service.py
"""

from __future__ import annotations

import asyncio

import httpx
from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..connectors.mapbox import MIN_CONFIDENCE, GeocodeError, GeocodeResult, geocode_address
from ..models import Customer
from .zone_service import zone_for_state

GEOCODE_BATCH_SIZE = 10
GEOCODE_BATCH_DELAY = 1.0


def full_address(c) -> str:
    return ", ".join(p for p in (c.address, c.city, c.state, c.zip) if p)


async def _geocode(address: str) -> GeocodeResult:
    return await geocode_address(address, settings.mapbox_access_token)


async def try_geocode(address: str) -> GeocodeResult | None:
    """Best-effort geocode: None on failure or low confidence."""
    if not settings.mapbox_access_token:
        return None
    try:
        result = await _geocode(address)
    except (GeocodeError, httpx.HTTPError, ValueError) as e:
        logger.warning(f"Geocoding failed: {e}")
        return None
    if result.confidence < MIN_CONFIDENCE:
        logger.info(f"Geocode confidence {result.confidence:.2f} below {MIN_CONFIDENCE} for {address!r}")
        return None
    return result


def _assign_zone(db: Session, customer: Customer) -> None:
    zone = zone_for_state(db, customer.state)
    customer.zone_id = zone.id if zone else None


async def create_customer(
    db: Session, fields: dict, *, organization_id: int | None, geocode: bool = True
) -> Customer:
    customer = Customer(organization_id=organization_id, **fields)
    _assign_zone(db, customer)
    if geocode:
        result = await try_geocode(full_address(customer))
        if result:
            customer.lat, customer.lng = result.latitude, result.longitude
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


async def update_customer(db: Session, customer: Customer, changes: dict) -> Customer:
    address_changed = any(
        k in changes and changes[k] != getattr(customer, k) for k in ("address", "city", "state", "zip")
    )
    for field, value in changes.items():
        setattr(customer, field, value)
    if "state" in changes:
        _assign_zone(db, customer)
    if address_changed:
        result = await try_geocode(full_address(customer))
        customer.lat = result.latitude if result else None
        customer.lng = result.longitude if result else None
    db.commit()
    db.refresh(customer)
    return customer


async def _geocode_row(row: int, fields: dict) -> tuple[dict | None, dict | None]:
    address = ", ".join(fields.get(k) or "" for k in ("address", "city", "state", "zip") if fields.get(k))
    try:
        result = await _geocode(address)
    except (GeocodeError, httpx.HTTPError, ValueError) as e:
        return None, {"row": row, "error": f"Geocoding failed for: {address} ({e})"}
    if result.confidence < MIN_CONFIDENCE:
        return None, {
            "row": row,
            "error": f"Low geocoding confidence ({result.confidence:.2f}) for: {address}. "
                     "Manual review required.",
        }
    return {**fields, "lat": result.latitude, "lng": result.longitude}, None


async def import_customers(
    db: Session, rows: list[dict], *, organization_id: int | None, geocode: bool = False
) -> dict:
    """Bulk insert customers. Row numbers in errors are spreadsheet rows (header = 1)."""
    accepted: list[dict] = []
    failed: list[dict] = []

    if geocode:
        if not settings.mapbox_access_token:
            raise GeocodeError("Mapbox access token is not configured")
        for start in range(0, len(rows), GEOCODE_BATCH_SIZE):
            batch = rows[start:start + GEOCODE_BATCH_SIZE]
            results = await asyncio.gather(
                *(_geocode_row(start + i + 2, fields) for i, fields in enumerate(batch))
            )
            for ok, err in results:
                if ok:
                    accepted.append(ok)
                else:
                    failed.append(err)
            if start + GEOCODE_BATCH_SIZE < len(rows):
                await asyncio.sleep(GEOCODE_BATCH_DELAY)
    else:
        accepted = list(rows)

    for fields in accepted:
        customer = Customer(organization_id=organization_id, **fields)
        _assign_zone(db, customer)
        db.add(customer)
    db.commit()

    logger.info(f"Customer import: {len(accepted)} imported, {len(failed)} failed")
    return {"imported": len(accepted), "failed": len(failed), "errors": failed}
