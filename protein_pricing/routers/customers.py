"""
customers.py — Customer Locations Router

Business Rules:
- Customers are scoped to the user's organization
- zone_id is assigned from the state on create/update, never from the client
- Geocoding (Mapbox) is best effort on create/update: failures leave lat/lng null
- Bulk import rejects rows that cannot be geocoded when geocoding is requested

Called by: main.py (router mount)
Depends on: services/customer_service.py, schemas/customers.py
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

from ..connectors.mapbox import GeocodeError
from ..database import get_db
from ..dependencies import require_user
from ..models import Customer, User
from ..schemas.customers import (
    CustomerCreate,
    CustomerImportRequest,
    CustomerUpdate,
    customer_out,
)
from ..services.customer_service import create_customer, import_customers, update_customer

router = APIRouter(tags=["customers"])


def _customer_or_404(db: Session, customer_id: int, user: User) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer or customer.organization_id != user.organization_id:
        raise HTTPException(404, "Customer not found")
    return customer


@router.get("/api/customers")
async def list_customers(
    zone_id: int | None = None,
    state: str | None = Query(default=None, min_length=2, max_length=2),
    limit: int = Query(default=500, ge=1, le=5000),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    q = (
        db.query(Customer)
        .options(joinedload(Customer.zone))
        .filter(Customer.organization_id == user.organization_id)
    )
    if zone_id is not None:
        q = q.filter(Customer.zone_id == zone_id)
    if state:
        q = q.filter(Customer.state == state.upper())
    total = q.count()
    rows = q.order_by(Customer.company_name, Customer.id).offset(offset).limit(limit).all()
    return {"items": [customer_out(c) for c in rows], "total": total}


@router.post("/api/customers", status_code=201)
async def add_customer(
    payload: CustomerCreate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    fields = payload.model_dump(exclude={"geocode"})
    customer = await create_customer(
        db, fields, organization_id=user.organization_id, geocode=payload.geocode
    )
    return customer_out(customer)


@router.post("/api/customers/import")
async def import_customer_list(
    payload: CustomerImportRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    rows = [c.model_dump(exclude={"geocode"}) for c in payload.customers]
    try:
        return await import_customers(
            db, rows, organization_id=user.organization_id, geocode=payload.geocode
        )
    except GeocodeError as e:
        raise HTTPException(503, str(e))


@router.get("/api/customers/{customer_id}")
async def get_customer(
    customer_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return customer_out(_customer_or_404(db, customer_id, user))


@router.patch("/api/customers/{customer_id}")
async def patch_customer(
    customer_id: int,
    payload: CustomerUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    customer = _customer_or_404(db, customer_id, user)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    customer = await update_customer(db, customer, changes)
    return customer_out(customer)


@router.delete("/api/customers/{customer_id}")
async def delete_customer(
    customer_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    customer = _customer_or_404(db, customer_id, user)
    db.delete(customer)
    db.commit()
    return {"ok": True}
