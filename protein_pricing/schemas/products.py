"""
schemas/products.py — Product and upload models

Business Rules:
- unit_cost and case_weight_lbs must be positive when given
- cost_per_lb is never accepted from clients; the model derives it

Called by: routers/products.py
Depends on: pydantic, models.catalog
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ..models import Product


class ProductUpdate(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=500)
    pack_size: str | None = Field(default=None, min_length=1, max_length=100)
    case_weight_lbs: float | None = Field(default=None, gt=0)
    unit_cost: float | None = Field(default=None, gt=0)
    cases_available: int | None = Field(default=None, ge=0)
    brand: str | None = None
    category: str | None = None
    default_margin_percent: float | None = Field(default=None, ge=0, le=100)
    spec_sheet_url: str | None = None


class ProductOut(BaseModel):
    id: int
    item_code: str
    description: str
    pack_size: str
    case_weight_lbs: float | None = None
    brand: str | None = None
    category: str | None = None
    warehouse_id: int | None = None
    warehouse_code: str | None = None
    cases_available: int = 0
    unit_cost: float | None = None
    cost_per_lb: float | None = None
    default_margin_percent: float | None = None
    upload_batch_id: int | None = None


def _f(v) -> float | None:
    return float(v) if v is not None else None


def product_out(p: Product) -> ProductOut:
    return ProductOut(
        id=p.id,
        item_code=p.item_code,
        description=p.description,
        pack_size=p.pack_size,
        case_weight_lbs=_f(p.case_weight_lbs),
        brand=p.brand,
        category=p.category,
        warehouse_id=p.warehouse_id,
        warehouse_code=p.warehouse.code if p.warehouse else None,
        cases_available=p.cases_available or 0,
        unit_cost=_f(p.unit_cost),
        cost_per_lb=_f(p.cost_per_lb),
        default_margin_percent=_f(p.default_margin_percent),
        upload_batch_id=p.upload_batch_id,
    )


class UploadRowError(BaseModel):
    row: int
    item_code: str
    error: str


class UploadResult(BaseModel):
    batch_id: int
    row_count: int
    success_count: int
    error_count: int
    errors: list[UploadRowError] = []
