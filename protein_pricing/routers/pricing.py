"""
pricing.py — Delivered Pricing & Price Sheets Router

Delivered price per lb = cost/lb + margin + freight/lb, built per zone from
the latest active freight rate on each product's warehouse → zone lane.

Business Rules:
- Missing or expired lane rates never block a calculation: the affected
  warehouses are listed in a warning and the rest is priced
- Sheets are visible to every user; only the creator may edit or delete
- DELETE is a soft delete (status → archived)
- Export renders the stored sheet items as .xlsx

Called by: main.py (router mount)
Depends on: services/price_sheet_service.py, services/price_calculator.py
"""

import io
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload

from ..database import get_db
from ..dependencies import require_user
from ..models import PriceSheet, User, Zone
from ..models.pricing import SHEET_STATUSES
from ..schemas.pricing import (
    DeliveredPriceOut,
    DeliveredPriceRequest,
    PriceSheetCreate,
    PriceSheetCreated,
    PriceSheetDetail,
    PriceSheetUpdate,
    PricingCalculateRequest,
    PricingCalculateResponse,
    sheet_item_out,
    sheet_out,
)
from ..services.price_calculator import calculate_delivered_price
from ..services.price_sheet_service import (
    XLSX_MEDIA_TYPE,
    build_sheet_xlsx,
    create_price_sheet,
    get_sheet_with_items,
    load_products,
    price_products,
)

router = APIRouter(tags=["pricing"])


def _zone_or_404(db: Session, zone_id: int) -> Zone:
    zone = db.get(Zone, zone_id)
    if not zone:
        raise HTTPException(404, "Zone not found")
    return zone


def _owned_sheet(db: Session, sheet_id: int, user: User) -> PriceSheet:
    sheet = db.get(PriceSheet, sheet_id)
    if not sheet:
        raise HTTPException(404, "Price sheet not found")
    if sheet.user_id != user.id:
        raise HTTPException(403, "Forbidden")
    return sheet


@router.post("/api/pricing/delivered-price")
async def delivered_price(payload: DeliveredPriceRequest, user: User = Depends(require_user)):
    price = calculate_delivered_price(payload.cost_per_lb, payload.margin_percent, payload.freight_per_lb)
    return DeliveredPriceOut(**price.to_dict())


@router.post("/api/pricing/calculate")
async def calculate_pricing(
    payload: PricingCalculateRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> PricingCalculateResponse:
    _zone_or_404(db, payload.zone_id)
    products = load_products(db, payload.product_ids)
    if not products:
        raise HTTPException(404, "No products found")
    result = price_products(db, payload.zone_id, products, payload.margins)
    return PricingCalculateResponse(zone_id=payload.zone_id, **result.to_dict())


@router.get("/api/pricing/sheets")
async def list_sheets(
    zone_id: int | None = None,
    status: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    q = db.query(PriceSheet).options(joinedload(PriceSheet.zone), joinedload(PriceSheet.items))
    if zone_id is not None:
        q = q.filter(PriceSheet.zone_id == zone_id)
    if status:
        q = q.filter(PriceSheet.status == status)
    sheets = q.order_by(PriceSheet.created_at.desc(), PriceSheet.id.desc()).limit(limit).all()
    return {"items": [sheet_out(s) for s in sheets]}


@router.post("/api/pricing/sheets", status_code=201)
async def create_sheet(
    payload: PriceSheetCreate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> PriceSheetCreated:
    _zone_or_404(db, payload.zone_id)
    try:
        sheet, result = create_price_sheet(
            db,
            user_id=user.id,
            zone_id=payload.zone_id,
            week_start=payload.week_start,
            week_end=payload.week_end,
            product_ids=payload.product_ids,
            margins=payload.margins,
        )
    except LookupError as e:
        raise HTTPException(404, str(e))
    return PriceSheetCreated(
        **sheet_out(sheet).model_dump(),
        warning=result.warning,
        missing_rate_warehouses=result.missing_rate_warehouses,
    )


@router.get("/api/pricing/sheets/{sheet_id}")
async def get_sheet(
    sheet_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> PriceSheetDetail:
    sheet = get_sheet_with_items(db, sheet_id)
    if not sheet:
        raise HTTPException(404, "Price sheet not found")
    return PriceSheetDetail(sheet=sheet_out(sheet), items=[sheet_item_out(i) for i in sheet.items])


@router.patch("/api/pricing/sheets/{sheet_id}")
async def update_sheet(
    sheet_id: int,
    payload: PriceSheetUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    sheet = _owned_sheet(db, sheet_id, user)
    changes = payload.model_dump(exclude_unset=True)
    if "status" in changes and changes["status"] not in SHEET_STATUSES:
        raise HTTPException(400, "Invalid status. Must be: draft, published, or archived")
    for field, value in changes.items():
        if value is not None:
            setattr(sheet, field, value)
    db.commit()
    db.refresh(sheet)
    return sheet_out(sheet)


@router.delete("/api/pricing/sheets/{sheet_id}")
async def delete_sheet(
    sheet_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    sheet = _owned_sheet(db, sheet_id, user)
    sheet.status = "archived"
    db.commit()
    return {"ok": True, "id": sheet.id, "status": sheet.status}


@router.get("/api/pricing/sheets/{sheet_id}/export")
async def export_sheet(
    sheet_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    sheet = get_sheet_with_items(db, sheet_id)
    if not sheet:
        raise HTTPException(404, "Price sheet not found")
    content = build_sheet_xlsx(sheet)
    zone = sheet.zone.name if sheet.zone else f"zone-{sheet.zone_id}"
    filename = f"price-sheet-{zone}-{sheet.week_start.isoformat()}.xlsx".replace(" ", "-").lower()
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
