"""
deals.py — Manufacturer Deals Router

Business Rules:
- Users only see and act on their own deals
- Accept/reject are rate limited per user (settings.deal_action_rate_limit_per_minute)
- Accept turns the deal into a Product in the chosen warehouse; see
  services/deal_service.py for the claim, duplicate and rollback rules

Called by: main.py (router mount)
Depends on: services/deal_service.py, schemas/deals.py
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import deal_action_rate_limit, require_user
from ..models import ManufacturerDeal, User
from ..schemas.deals import AcceptDealRequest, AcceptDealResponse, deal_out
from ..services.deal_service import DealActionError, accept_deal, reject_deal

router = APIRouter(tags=["deals"])


@router.get("/api/deals")
async def list_deals(
    status: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    q = db.query(ManufacturerDeal).filter(ManufacturerDeal.user_id == user.id)
    if status:
        q = q.filter(ManufacturerDeal.status == status)
    deals = q.order_by(ManufacturerDeal.created_at.desc(), ManufacturerDeal.id.desc()).limit(limit).all()
    return {"items": [deal_out(d) for d in deals]}


@router.post("/api/deals/{deal_id}/accept")
async def accept(
    deal_id: int,
    payload: AcceptDealRequest,
    user: User = Depends(deal_action_rate_limit),
    db: Session = Depends(get_db),
) -> AcceptDealResponse:
    try:
        deal, product = await accept_deal(db, deal_id, user, payload.warehouse_id)
    except DealActionError as e:
        raise HTTPException(e.status_code, str(e))
    return AcceptDealResponse(
        deal=deal_out(deal),
        product_id=product.id,
        case_weight_lbs=float(product.case_weight_lbs),
        cases_available=product.cases_available,
        category=product.category,
    )


@router.post("/api/deals/{deal_id}/reject")
async def reject(
    deal_id: int,
    user: User = Depends(deal_action_rate_limit),
    db: Session = Depends(get_db),
):
    try:
        deal = reject_deal(db, deal_id, user)
    except DealActionError as e:
        raise HTTPException(e.status_code, str(e))
    return deal_out(deal)
