"""
schemas/deals.py — Manufacturer deal models

Called by: routers/deals.py, routers/ai.py
Depends on: pydantic, models.deals
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from ..models import ManufacturerDeal


class ParseDealRequest(BaseModel):
    content: str = Field(min_length=1, max_length=20000)


class AcceptDealRequest(BaseModel):
    warehouse_id: int


class DealOut(BaseModel):
    id: int
    status: str
    source_type: str
    manufacturer: str | None = None
    product_description: str | None = None
    price_per_lb: float | None = None
    quantity_lbs: float | None = None
    pack_size: str | None = None
    expiration_date: date | None = None
    deal_terms: str | None = None
    product_id: int | None = None
    created_at: str | None = None


class AcceptDealResponse(BaseModel):
    deal: DealOut
    product_id: int
    case_weight_lbs: float
    cases_available: int
    category: str | None = None


def deal_out(d: ManufacturerDeal) -> DealOut:
    return DealOut(
        id=d.id,
        status=d.status,
        source_type=d.source_type,
        manufacturer=d.manufacturer,
        product_description=d.product_description,
        price_per_lb=float(d.price_per_lb) if d.price_per_lb is not None else None,
        quantity_lbs=float(d.quantity_lbs) if d.quantity_lbs is not None else None,
        pack_size=d.pack_size,
        expiration_date=d.expiration_date,
        deal_terms=d.deal_terms,
        product_id=d.product_id,
        created_at=d.created_at.isoformat() if d.created_at else None,
    )
