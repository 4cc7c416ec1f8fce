"""
schemas/freight.py — Freight quote and rate models

Business Rules:
- weight must be positive; pallets, when given, must be positive
- destination ZIP is a 5-digit US postal code (ZIP+4 accepted)
- pickup_date is YYYY-MM-DD; the GoShip connector rejects past dates

Called by: routers/freight.py
Depends on: pydantic, models.freight
"""

from __future__ import annotations

import re
from datetime import date

from pydantic import BaseModel, Field, field_validator

from ..models import FreightRate

_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")


class FreightQuoteRequest(BaseModel):
    origin_warehouse_id: int
    destination_zip: str
    destination_city: str | None = None
    destination_state: str | None = Field(default=None, min_length=2, max_length=2)
    weight_lbs: float = Field(gt=0)
    pallets: int | None = Field(default=None, gt=0)
    pickup_date: date

    @field_validator("destination_zip")
    @classmethod
    def zip_format(cls, v: str) -> str:
        v = v.strip()
        if not _ZIP_RE.match(v):
            raise ValueError("destination_zip must be a 5-digit ZIP code")
        return v

    @field_validator("destination_state")
    @classmethod
    def state_upper(cls, v: str | None) -> str | None:
        return v.upper() if v else v


class ReeferEstimateOut(BaseModel):
    estimate: float
    range_low: float
    range_high: float
    dry_quote: float
    factors: dict


class FreightQuoteResponse(BaseModel):
    quote_id: str | None = None
    carrier: str | None = None
    transit_days: int | None = None
    delivery_date: str | None = None
    dry_quote: float
    reefer: ReeferEstimateOut
    freight_per_lb: float


class FreightRateOut(BaseModel):
    id: int
    origin_warehouse_id: int
    origin_warehouse_code: str | None = None
    destination_zone_id: int
    destination_zone_name: str | None = None
    city: str | None = None
    state: str | None = None
    rate_per_lb: float
    rate_type: str
    weight_lbs: int
    dry_ltl_quote: float | None = None
    multipliers: dict | None = None
    valid_from: str | None = None
    valid_until: str | None = None


def rate_out(r: FreightRate) -> FreightRateOut:
    return FreightRateOut(
        id=r.id,
        origin_warehouse_id=r.origin_warehouse_id,
        origin_warehouse_code=r.origin_warehouse.code if r.origin_warehouse else None,
        destination_zone_id=r.destination_zone_id,
        destination_zone_name=r.destination_zone.name if r.destination_zone else None,
        city=r.city,
        state=r.state,
        rate_per_lb=float(r.rate_per_lb),
        rate_type=r.rate_type,
        weight_lbs=r.weight_lbs,
        dry_ltl_quote=float(r.dry_ltl_quote) if r.dry_ltl_quote is not None else None,
        multipliers=r.multipliers,
        valid_from=r.valid_from.isoformat() if r.valid_from else None,
        valid_until=r.valid_until.isoformat() if r.valid_until else None,
    )
