"""
schemas/pricing.py — Delivered price and price sheet models

Business Rules:
- margin percent must be within [0, 100]
- price sheet status must be one of: draft, published, archived (checked
  in routers/pricing.py so a bad value is a 400, not a 422)
- week_end may not precede week_start

Called by: routers/pricing.py
Depends on: pydantic, models.pricing
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field, model_validator

from ..models import PriceSheet, PriceSheetItem


class DeliveredPriceOut(BaseModel):
    cost_per_lb: float
    margin_amount: float
    freight_per_lb: float
    total: float


class DeliveredPriceRequest(BaseModel):
    cost_per_lb: float = Field(ge=0)
    margin_percent: float
    freight_per_lb: float = Field(ge=0)


class PricingCalculateRequest(BaseModel):
    zone_id: int
    product_ids: list[int] = Field(min_length=1)
    margins: dict[int, float] = {}


class PricedItemOut(BaseModel):
    product_id: int
    item_code: str
    description: str
    pack_size: str
    warehouse_id: int | None = None
    cost_per_lb: float
    margin_percent: float
    margin_amount: float
    freight_per_lb: float
    delivered_price_lb: float
    case_price: float | None = None


class PricingCalculateResponse(BaseModel):
    zone_id: int
    items: list[PricedItemOut]
    missing_rate_warehouses: list[int] = []
    unpriced_product_ids: list[int] = []
    warning: str | None = None


class PriceSheetCreate(BaseModel):
    zone_id: int
    week_start: date
    week_end: date
    product_ids: list[int] = Field(min_length=1)
    margins: dict[int, float] = {}

    @model_validator(mode="after")
    def week_order(self):
        if self.week_end < self.week_start:
            raise ValueError("week_end must be on or after week_start")
        return self


class PriceSheetUpdate(BaseModel):
    status: str | None = None  # validated against SHEET_STATUSES by the router (400)
    excel_storage_path: str | None = Field(default=None, max_length=500)


class PriceSheetOut(BaseModel):
    id: int
    zone_id: int
    zone_name: str | None = None
    week_start: date
    week_end: date
    status: str
    user_id: int
    excel_storage_path: str | None = None
    item_count: int = 0
    created_at: str | None = None


class PriceSheetItemOut(BaseModel):
    id: int
    product_id: int
    item_code: str | None = None
    description: str | None = None
    pack_size: str | None = None
    warehouse_id: int | None = None
    warehouse_code: str | None = None
    cost_per_lb: float
    margin_percent: float
    margin_amount: float
    freight_per_lb: float
    delivered_price_lb: float


class PriceSheetDetail(BaseModel):
    sheet: PriceSheetOut
    items: list[PriceSheetItemOut]


class PriceSheetCreated(PriceSheetOut):
    warning: str | None = None
    missing_rate_warehouses: list[int] = []


def sheet_out(s: PriceSheet) -> PriceSheetOut:
    return PriceSheetOut(
        id=s.id,
        zone_id=s.zone_id,
        zone_name=s.zone.name if s.zone else None,
        week_start=s.week_start,
        week_end=s.week_end,
        status=s.status,
        user_id=s.user_id,
        excel_storage_path=s.excel_storage_path,
        item_count=len(s.items),
        created_at=s.created_at.isoformat() if s.created_at else None,
    )


def sheet_item_out(i: PriceSheetItem) -> PriceSheetItemOut:
    return PriceSheetItemOut(
        id=i.id,
        product_id=i.product_id,
        item_code=i.product.item_code if i.product else None,
        description=i.product.description if i.product else None,
        pack_size=i.product.pack_size if i.product else None,
        warehouse_id=i.warehouse_id,
        warehouse_code=i.warehouse.code if i.warehouse else None,
        cost_per_lb=float(i.cost_per_lb),
        margin_percent=float(i.margin_percent),
        margin_amount=float(i.margin_amount),
        freight_per_lb=float(i.freight_per_lb),
        delivered_price_lb=float(i.delivered_price_lb),
    )
