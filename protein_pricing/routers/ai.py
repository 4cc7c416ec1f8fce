"""
ai.py — AI Parsing Router

Claude-backed helpers: deal email extraction, pack-size parsing, address
normalization, product categorization, natural-language product search.

Business Rules:
- Every AI endpoint is rate limited per user (settings.ai_rate_limit_per_minute)
- Inputs pass utils/input_sanitizer.py validators first (400 on rejection)
- AI not configured → 503, except pack-size parsing, which answers from the
  regex parser and returns a null weight when neither path can parse
- Breaker open → 503 with Retry-After (app-level CircuitOpenError handler)
- Every AI call is recorded in ai_processing_log, success or not

Called by: main.py (router mount)
Depends on: services/ai_parsers.py, services/pack_size.py, services/ai_usage.py
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..circuit_breaker import get_breaker
from ..config import settings
from ..database import get_db
from ..dependencies import ai_rate_limit, require_admin
from ..models import Product, User
from ..schemas.ai import (
    CategorizeRequest,
    NormalizeAddressRequest,
    ParsePackSizeRequest,
    ParsePackSizeResponse,
    SearchRequest,
)
from ..schemas.deals import ParseDealRequest, deal_out
from ..schemas.products import product_out
from ..services.ai_parsers import (
    categorize_product,
    normalize_address,
    parse_deal_email,
    parse_pack_size_ai,
    parse_search_query,
)
from ..services.ai_usage import log_result, usage_summary
from ..services.deal_service import create_deal_from_parse
from ..services.pack_size import parse_pack_size_sync
from ..utils.input_sanitizer import (
    InputValidationError,
    validate_address,
    validate_description,
    validate_email_content,
    validate_pack_size,
    validate_search_query,
)

router = APIRouter(tags=["ai"])

SEARCH_RESULT_LIMIT = 100


def _require_ai():
    if not settings.ai_configured:
        raise HTTPException(503, "AI features are not configured. Please set ANTHROPIC_API_KEY.")


def _validated(validator, value):
    try:
        return validator(value)
    except InputValidationError as e:
        raise HTTPException(400, str(e))


@router.get("/api/ai/health")
async def ai_health():
    if not settings.ai_configured:
        return JSONResponse({"available": False, "reason": "API key not configured"}, status_code=503)
    if get_breaker().is_open():
        return JSONResponse(
            {"available": False, "reason": "Service temporarily unavailable (circuit breaker open)"},
            status_code=503,
        )
    return {"available": True}


@router.post("/api/ai/parse-deal", status_code=201)
async def parse_deal(
    payload: ParseDealRequest,
    user: User = Depends(ai_rate_limit),
    db: Session = Depends(get_db),
):
    _validated(validate_email_content, payload.content)
    _require_ai()
    result = await parse_deal_email(payload.content)
    log_result(db, user.id, "extract_deal", result)
    if result is None:
        raise HTTPException(500, "Failed to parse deal. Please try again.")
    deal = create_deal_from_parse(db, user, payload.content, result)
    return {"deal": deal_out(deal), "tokens_used": {"input": result.input_tokens, "output": result.output_tokens}}


@router.post("/api/ai/parse-pack-size")
async def parse_pack_size_endpoint(
    payload: ParsePackSizeRequest,
    user: User = Depends(ai_rate_limit),
    db: Session = Depends(get_db),
) -> ParsePackSizeResponse:
    pack_size = _validated(validate_pack_size, payload.pack_size)
    description = _validated(validate_description, payload.description) if payload.description else None

    weight = parse_pack_size_sync(pack_size)
    if weight is not None:
        return ParsePackSizeResponse(case_weight_lbs=weight, method="regex")
    if not settings.ai_configured:
        return ParsePackSizeResponse(case_weight_lbs=None, method="none")

    result = await parse_pack_size_ai(pack_size, description)
    log_result(db, user.id, "parse_pack_size", result)
    if result is None:
        return ParsePackSizeResponse(case_weight_lbs=None, method="none")
    return ParsePackSizeResponse(case_weight_lbs=result.data["case_weight_lbs"], method="ai")


@router.post("/api/ai/normalize-address")
async def normalize_address_endpoint(
    payload: NormalizeAddressRequest,
    user: User = Depends(ai_rate_limit),
    db: Session = Depends(get_db),
):
    address = _validated(validate_address, payload.address)
    _require_ai()
    result = await normalize_address(address)
    log_result(db, user.id, "normalize_address", result)
    if result is None:
        raise HTTPException(500, "Failed to normalize address. Please try again.")
    return {"normalized": result.data, "corrections": result.extra.get("corrections", [])}


@router.post("/api/ai/categorize")
async def categorize_endpoint(
    payload: CategorizeRequest,
    user: User = Depends(ai_rate_limit),
    db: Session = Depends(get_db),
):
    description = _validated(validate_description, payload.description)
    _require_ai()
    result = await categorize_product(description)
    log_result(db, user.id, "categorize_product", result)
    if result is None:
        raise HTTPException(500, "Failed to categorize product. Please try again.")
    return result.data


def _apply_filters(db: Session, filters: dict) -> list[Product]:
    q = db.query(Product)
    if filters.get("search_term"):
        term = filters["search_term"].replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        q = q.filter(Product.description.ilike(f"%{term}%", escape="\\"))
    if filters.get("category"):
        q = q.filter(func.lower(Product.category) == filters["category"].strip().lower())
    if "warehouse_id" in filters:
        q = q.filter(Product.warehouse_id == filters["warehouse_id"])
    if "price_min" in filters:
        q = q.filter(Product.cost_per_lb >= filters["price_min"])
    if "price_max" in filters:
        q = q.filter(Product.cost_per_lb <= filters["price_max"])
    if filters.get("in_stock"):
        q = q.filter(Product.cases_available > 0)
    return q.order_by(Product.id).limit(SEARCH_RESULT_LIMIT).all()


@router.post("/api/ai/search")
async def smart_search(
    payload: SearchRequest,
    user: User = Depends(ai_rate_limit),
    db: Session = Depends(get_db),
):
    query = _validated(validate_search_query, payload.query)
    _require_ai()
    result = await parse_search_query(query)
    log_result(db, user.id, "query_to_filter", result)
    if result is None:
        raise HTTPException(500, "Failed to process search. Please try again.")
    filters = result.data["filters"]
    return {
        "filters": filters,
        "explanation": result.data["explanation"],
        "products": [product_out(p) for p in _apply_filters(db, filters)],
    }


@router.get("/api/ai/usage")
async def ai_usage(
    days: int = Query(default=30, ge=1, le=365),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = usage_summary(db, days)
    return {
        "days": days,
        "tasks": rows,
        "total_cost_usd": round(sum(r["cost_usd"] for r in rows), 6),
        "total_calls": sum(r["calls"] for r in rows),
    }
