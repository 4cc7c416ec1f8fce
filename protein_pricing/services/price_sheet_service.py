"""Price sheet generation — Products × active freight rates × margins.

Business Rules:
  - Freight for a product comes from the most recent ACTIVE rate
    (valid_until > now) on its warehouse → zone lane; expired rates are
    never used
  - Products whose lane has no active rate are left out and reported in a
    "missing rate" warning; the rest of the sheet still generates
  - Products without a cost per lb are skipped and reported, never priced at 0
  - Margin defaults to settings.default_margin_percent; out-of-range margins
    raise PricingError (→ 400)
  - New sheets start as draft; delete is a soft delete to archived

Called by: routers/pricing.py
Depends on: services/price_calculator.py, models (Product, FreightRate, PriceSheet)
"""

from __future__ import annotations

import io
from dataclasses import asdict, dataclass, field
from datetime import date, datetime

from loguru import logger
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..models import FreightRate, PriceSheet, PriceSheetItem, Product
from ..models.base import utcnow
from .price_calculator import PricingError, calculate_case_price, calculate_delivered_price

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass
class PricedItem:
    product_id: int
    item_code: str
    description: str
    pack_size: str
    warehouse_id: int | None
    cost_per_lb: float
    margin_percent: float
    margin_amount: float
    freight_per_lb: float
    delivered_price_lb: float
    case_price: float | None = None


@dataclass
class PricingResult:
    items: list[PricedItem] = field(default_factory=list)
    missing_rate_warehouses: list[int] = field(default_factory=list)
    unpriced_product_ids: list[int] = field(default_factory=list)

    @property
    def warning(self) -> str | None:
        parts = []
        if self.missing_rate_warehouses:
            ids = ", ".join(str(w) for w in self.missing_rate_warehouses)
            parts.append(
                f"Missing freight rates for warehouses: {ids}. Please calibrate rates first."
            )
        if self.unpriced_product_ids:
            ids = ", ".join(str(p) for p in self.unpriced_product_ids)
            parts.append(f"Products without cost per lb were skipped: {ids}.")
        return " ".join(parts) or None

    def to_dict(self) -> dict:
        return {
            "items": [asdict(i) for i in self.items],
            "missing_rate_warehouses": self.missing_rate_warehouses,
            "unpriced_product_ids": self.unpriced_product_ids,
            "warning": self.warning,
        }


def active_rates_by_warehouse(
    db: Session, zone_id: int, warehouse_ids, now: datetime | None = None
) -> dict[int, float]:
    """Latest active rate per origin warehouse for one destination zone."""
    now = now or utcnow()
    ids = [w for w in set(warehouse_ids) if w is not None]
    if not ids:
        return {}
    rates = (
        db.query(FreightRate)
        .filter(
            FreightRate.destination_zone_id == zone_id,
            FreightRate.origin_warehouse_id.in_(ids),
            FreightRate.valid_until.isnot(None),
            FreightRate.valid_until > now,
        )
        .order_by(FreightRate.valid_from.desc(), FreightRate.id.desc())
        .all()
    )
    by_wh: dict[int, float] = {}
    for rate in rates:
        by_wh.setdefault(rate.origin_warehouse_id, float(rate.rate_per_lb))
    return by_wh


def price_products(
    db: Session,
    zone_id: int,
    products: list[Product],
    margins: dict[int, float] | None = None,
    now: datetime | None = None,
) -> PricingResult:
    margins = margins or {}
    rates = active_rates_by_warehouse(db, zone_id, (p.warehouse_id for p in products), now)
    result = PricingResult()
    missing = set()

    for p in products:
        if p.warehouse_id not in rates:
            missing.add(p.warehouse_id)
            continue
        if p.cost_per_lb is None:
            result.unpriced_product_ids.append(p.id)
            continue
        margin = margins.get(p.id)
        if margin is None:
            margin = (
                float(p.default_margin_percent)
                if p.default_margin_percent is not None
                else settings.default_margin_percent
            )
        price = calculate_delivered_price(float(p.cost_per_lb), margin, rates[p.warehouse_id])
        case_weight = float(p.case_weight_lbs) if p.case_weight_lbs else None
        result.items.append(PricedItem(
            product_id=p.id,
            item_code=p.item_code,
            description=p.description,
            pack_size=p.pack_size,
            warehouse_id=p.warehouse_id,
            cost_per_lb=price.cost_per_lb,
            margin_percent=margin,
            margin_amount=price.margin_amount,
            freight_per_lb=price.freight_per_lb,
            delivered_price_lb=price.total,
            case_price=calculate_case_price(price.total, case_weight) if case_weight else None,
        ))

    result.missing_rate_warehouses = sorted(w for w in missing if w is not None)
    if None in missing:
        result.unpriced_product_ids.extend(
            p.id for p in products if p.warehouse_id is None
        )
    if result.warning:
        logger.info(f"Zone {zone_id} pricing: {result.warning}")
    return result


def load_products(db: Session, product_ids: list[int]) -> list[Product]:
    if not product_ids:
        return []
    return db.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id).all()


def create_price_sheet(
    db: Session,
    *,
    user_id: int,
    zone_id: int,
    week_start: date,
    week_end: date,
    product_ids: list[int],
    margins: dict[int, float] | None = None,
) -> tuple[PriceSheet, PricingResult]:
    if week_end < week_start:
        raise PricingError("week_end must be on or after week_start")
    products = load_products(db, product_ids)
    if not products:
        raise LookupError("No products found")

    result = price_products(db, zone_id, products, margins)
    if not result.items:
        raise PricingError(result.warning or "No products could be priced for this zone")

    sheet = PriceSheet(
        zone_id=zone_id,
        week_start=week_start,
        week_end=week_end,
        status="draft",
        user_id=user_id,
    )
    for item in result.items:
        sheet.items.append(PriceSheetItem(
            product_id=item.product_id,
            warehouse_id=item.warehouse_id,
            cost_per_lb=item.cost_per_lb,
            margin_percent=item.margin_percent,
            margin_amount=item.margin_amount,
            freight_per_lb=item.freight_per_lb,
            delivered_price_lb=item.delivered_price_lb,
        ))
    db.add(sheet)
    db.commit()
    db.refresh(sheet)
    logger.info(f"Price sheet {sheet.id} created for zone {zone_id} with {len(result.items)} items")
    return sheet, result


def get_sheet_with_items(db: Session, sheet_id: int) -> PriceSheet | None:
    return (
        db.query(PriceSheet)
        .options(
            joinedload(PriceSheet.zone),
            joinedload(PriceSheet.items).joinedload(PriceSheetItem.product),
            joinedload(PriceSheet.items).joinedload(PriceSheetItem.warehouse),
        )
        .filter(PriceSheet.id == sheet_id)
        .first()
    )


def build_sheet_xlsx(sheet: PriceSheet) -> bytes:
    """Render a price sheet as an Excel workbook, items grouped by warehouse."""
    from openpyxl import Workbook
    from openpyxl.styles import Font

    wb = Workbook()
    ws = wb.active
    zone_name = sheet.zone.name if sheet.zone else f"Zone {sheet.zone_id}"
    ws.title = zone_name[:31].replace("/", "-")
    ws.append([f"{zone_name} price sheet", f"{sheet.week_start} to {sheet.week_end}"])
    ws["A1"].font = Font(bold=True, size=14)
    ws.append([])
    headers = [
        "Warehouse", "Item Code", "Description", "Pack Size", "Brand",
        "Cases Available", "Cost/lb", "Margin %", "Freight/lb", "Delivered/lb", "Case Price",
    ]
    ws.append(headers)
    for cell in ws[3]:
        cell.font = Font(bold=True)

    def _sort_key(item):
        return (item.warehouse.code if item.warehouse else "", item.product.item_code if item.product else "")

    for item in sorted(sheet.items, key=_sort_key):
        product = item.product
        delivered = float(item.delivered_price_lb)
        case_weight = float(product.case_weight_lbs) if product and product.case_weight_lbs else None
        ws.append([
            item.warehouse.code if item.warehouse else "",
            product.item_code if product else "",
            product.description if product else "",
            product.pack_size if product else "",
            (product.brand or "") if product else "",
            product.cases_available if product else 0,
            float(item.cost_per_lb),
            float(item.margin_percent),
            float(item.freight_per_lb),
            delivered,
            calculate_case_price(delivered, case_weight) if case_weight else None,
        ])

    for col, width in zip("ABCDEFGHIJK", (10, 14, 40, 14, 16, 10, 10, 10, 10, 12, 12)):
        ws.column_dimensions[col].width = width

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
