"""Manufacturer deal lifecycle — pending → accepted | rejected.

Business Rules:
  - Only the deal's owner may act on it; anything but pending is final
  - Accept claims the deal with a conditional UPDATE ... WHERE status='pending'
    so two concurrent accepts cannot both create a product
  - An accepted deal for the same manufacturer + description inside the last
    7 days blocks acceptance (409 duplicate)
  - Case weight: regex pack-size parse, then AI fallback, else the configured
    default (40 lb)
  - cases_available = floor(quantity_lbs / case_weight)
  - unit_cost = price_per_lb × case_weight so the derived cost_per_lb equals
    the deal price
  - Category from AI when available, "Uncategorized" otherwise
  - Both AI fallbacks draw on the user's AI rate limit; a spent quota
    falls back to the default weight and "Uncategorized"
  - If the product insert fails, the claim is rolled back to pending
  - The target warehouse must belong to the user's organization

Called by: routers/deals.py, routers/ai.py (parse-deal)
Depends on: services/pack_size.py, services/ai_parsers.py, services/ai_usage.py
"""

from __future__ import annotations

import math
from datetime import date, timedelta

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..circuit_breaker import CircuitOpenError
from ..config import settings
from ..models import ManufacturerDeal, Product, User, Warehouse
from ..models.base import utcnow
from .ai_parsers import AIParseResult, categorize_product
from .ai_usage import log_result
from .pack_size import parse_pack_size

DUPLICATE_WINDOW_DAYS = 7
UNCATEGORIZED = "Uncategorized"


class DealActionError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


def create_deal_from_parse(
    db: Session, user: User, raw_content: str, parsed: AIParseResult
) -> ManufacturerDeal:
    data = parsed.data
    expiration = data.get("expiration_date")
    deal = ManufacturerDeal(
        user_id=user.id,
        source_type="email",
        raw_content=raw_content,
        manufacturer=data["manufacturer"].strip(),
        product_description=data["product_description"].strip(),
        price_per_lb=round(float(data["price_per_lb"]), 4),
        quantity_lbs=round(float(data["quantity_lbs"]), 2),
        pack_size=data["pack_size"].strip(),
        expiration_date=date.fromisoformat(expiration) if expiration else None,
        deal_terms=data.get("deal_terms") or None,
        status="pending",
    )
    db.add(deal)
    db.commit()
    db.refresh(deal)
    return deal


def _owned_pending_deal(db: Session, deal_id: int, user: User) -> ManufacturerDeal:
    deal = (
        db.query(ManufacturerDeal)
        .filter(ManufacturerDeal.id == deal_id, ManufacturerDeal.user_id == user.id)
        .first()
    )
    if not deal:
        raise DealActionError("Deal not found or access denied", 404)
    if deal.status != "pending":
        raise DealActionError("Deal has already been processed", 400)
    return deal


def _claim(db: Session, deal_id: int, new_status: str) -> bool:
    result = db.execute(
        update(ManufacturerDeal)
        .where(ManufacturerDeal.id == deal_id, ManufacturerDeal.status == "pending")
        .values(status=new_status, updated_at=utcnow())
    )
    db.commit()
    return result.rowcount == 1


def find_recent_duplicate(db: Session, deal: ManufacturerDeal) -> ManufacturerDeal | None:
    since = utcnow() - timedelta(days=DUPLICATE_WINDOW_DAYS)
    return (
        db.query(ManufacturerDeal)
        .filter(
            ManufacturerDeal.id != deal.id,
            ManufacturerDeal.status == "accepted",
            ManufacturerDeal.manufacturer == deal.manufacturer,
            ManufacturerDeal.product_description == deal.product_description,
            ManufacturerDeal.created_at >= since,
        )
        .first()
    )


async def _categorize(db: Session, user: User, description: str, provider, breaker) -> str:
    try:
        result = await categorize_product(
            description, provider=provider, breaker=breaker, user_id=user.id
        )
    except CircuitOpenError:
        return UNCATEGORIZED
    if result is None:
        return UNCATEGORIZED
    log_result(db, user.id, "categorize_product", result)
    return result.data.get("category") or UNCATEGORIZED


async def accept_deal(
    db: Session,
    deal_id: int,
    user: User,
    warehouse_id: int,
    *,
    provider=None,
    breaker=None,
) -> tuple[ManufacturerDeal, Product]:
    deal = _owned_pending_deal(db, deal_id, user)

    warehouse = db.get(Warehouse, warehouse_id)
    if not warehouse or warehouse.organization_id != user.organization_id:
        raise DealActionError("Warehouse not found", 404)

    duplicate = find_recent_duplicate(db, deal)
    if duplicate:
        raise DealActionError(
            f"A matching deal (#{duplicate.id}) was accepted in the last {DUPLICATE_WINDOW_DAYS} days",
            409,
        )

    if not _claim(db, deal.id, "accepted"):
        raise DealActionError("Deal was already processed by another request", 409)

    case_weight = await parse_pack_size(
        deal.pack_size,
        deal.product_description,
        provider=provider,
        breaker=breaker,
        user_id=user.id,
    )
    if not case_weight or case_weight <= 0:
        logger.info(f"Deal {deal.id}: pack size {deal.pack_size!r} unparsed, using default weight")
        case_weight = float(settings.default_case_weight_lbs)

    category = await _categorize(db, user, deal.product_description, provider, breaker)

    price_per_lb = float(deal.price_per_lb)
    try:
        product = Product(
            item_code=f"DEAL-{deal.id}",
            description=deal.product_description,
            pack_size=deal.pack_size,
            case_weight_lbs=case_weight,
            brand=deal.manufacturer,
            category=category,
            warehouse_id=warehouse.id,
            cases_available=math.floor(float(deal.quantity_lbs) / case_weight),
            unit_cost=round(price_per_lb * case_weight, 4),
        )
        db.add(product)
        db.flush()
        deal.product_id = product.id
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        db.execute(
            update(ManufacturerDeal)
            .where(ManufacturerDeal.id == deal.id, ManufacturerDeal.status == "accepted")
            .values(status="pending", product_id=None, updated_at=utcnow())
        )
        db.commit()
        logger.error(f"Deal {deal.id}: product creation failed, claim released: {type(e).__name__}")
        raise DealActionError("Failed to create product from deal", 500)

    db.refresh(deal)
    db.refresh(product)
    logger.info(f"Deal {deal.id} accepted → product {product.id} ({product.cases_available} cases)")
    return deal, product


def reject_deal(db: Session, deal_id: int, user: User) -> ManufacturerDeal:
    deal = _owned_pending_deal(db, deal_id, user)
    if not _claim(db, deal.id, "rejected"):
        raise DealActionError("Deal was already processed by another request", 409)
    db.refresh(deal)
    return deal
