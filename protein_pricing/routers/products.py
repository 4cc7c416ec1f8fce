"""
products.py — Inventory Router

Product listing/editing and inventory spreadsheet upload.

Business Rules:
- PATCH recomputes cost_per_lb whenever unit_cost or case_weight_lbs change
  (model listener; clients never send cost_per_lb)
- Upload accepts .xlsx/.xlsm/.csv/.tsv up to settings.max_upload_size_mb
- Upload warehouse: explicit warehouse_id form field, else the PA warehouse
- Pack size → case weight: regex first, AI fallback with the description

Called by: main.py (router mount)
Depends on: services/inventory_import.py, schemas/products.py
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..database import get_db
from ..dependencies import require_user
from ..file_utils import FileParseError
from ..models import Product, User, Warehouse
from ..schemas.products import ProductUpdate, UploadResult, product_out
from ..services.inventory_import import import_inventory

router = APIRouter(tags=["products"])

ALLOWED_UPLOAD_EXTENSIONS = (".xlsx", ".xlsm", ".csv", ".tsv")
DEFAULT_UPLOAD_WAREHOUSE = "PA"


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@router.get("/api/products")
async def list_products(
    warehouse_id: int | None = None,
    category: str | None = None,
    search: str | None = Query(default=None, max_length=200),
    limit: int = Query(default=200, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    q = db.query(Product).options(joinedload(Product.warehouse))
    if warehouse_id is not None:
        q = q.filter(Product.warehouse_id == warehouse_id)
    if category:
        q = q.filter(Product.category == category)
    if search and search.strip():
        q = q.filter(Product.description.ilike(f"%{_escape_like(search.strip())}%", escape="\\"))
    total = q.count()
    rows = q.order_by(Product.created_at.desc(), Product.id.desc()).offset(offset).limit(limit).all()
    return {"items": [product_out(p) for p in rows], "total": total}


@router.get("/api/products/{product_id}")
async def get_product(
    product_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product_out(product)


@router.patch("/api/products/{product_id}")
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product_out(product)


@router.post("/api/upload")
async def upload_inventory(
    file: UploadFile = File(...),
    warehouse_id: int | None = Form(default=None),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> UploadResult:
    filename = file.filename or ""
    if not filename.lower().endswith(ALLOWED_UPLOAD_EXTENSIONS):
        raise HTTPException(400, "Unsupported file type. Upload an .xlsx or .csv file")

    content = await file.read()
    if len(content) > settings.max_upload_size_mb * 1024 * 1024:
        raise HTTPException(413, f"File too large (max {settings.max_upload_size_mb} MB)")
    if not content:
        raise HTTPException(400, "File is empty")

    if warehouse_id is not None:
        warehouse = db.get(Warehouse, warehouse_id)
    else:
        warehouse = db.query(Warehouse).filter_by(code=DEFAULT_UPLOAD_WAREHOUSE).first()
    if not warehouse:
        raise HTTPException(400, "Warehouse not found")

    try:
        summary = await import_inventory(
            db, content=content, filename=filename, user_id=user.id, warehouse_id=warehouse.id
        )
    except (FileParseError, ValueError) as e:
        raise HTTPException(400, str(e))
    return UploadResult(**summary.to_dict())
