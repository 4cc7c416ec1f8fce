"""Inventory spreadsheet import → UploadBatch + Products.

Business Rules:
  - Rows need item code, description and pack size; others are optional
  - Case weight: regex parse first, AI fallback (with the description) second;
    the fallback draws on the uploader's AI rate limit, so a large file of
    unparseable sizes spends at most one window of AI calls;
    rows that stay unparsed are imported with no case weight and therefore
    no cost per lb
  - Each row is committed on its own so one bad row never sinks the batch
  - Batch status: completed when every row imported, error otherwise; the
    first 5 row errors are stored on the batch, the first 10 returned

Called by: routers/products.py (POST /api/upload)
"""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..file_utils import normalize_inventory_row, parse_tabular_file
from ..models import Product, UploadBatch
from .pack_size import parse_pack_size

STORED_ERRORS = 5
RETURNED_ERRORS = 10


@dataclass
class ImportSummary:
    batch_id: int
    row_count: int
    success_count: int = 0
    errors: list[dict] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "row_count": self.row_count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors": self.errors[:RETURNED_ERRORS],
        }


async def import_inventory(
    db: Session,
    *,
    content: bytes,
    filename: str,
    user_id: int,
    warehouse_id: int,
    provider=None,
    breaker=None,
) -> ImportSummary:
    """Parse an inventory file and create one product per valid row.

    Raises FileParseError for unreadable files and ValueError for empty ones.
    """
    rows = parse_tabular_file(content, filename)
    if not rows:
        raise ValueError("File is empty or has no valid data")

    batch = UploadBatch(filename=filename, row_count=len(rows), status="processing", user_id=user_id)
    db.add(batch)
    db.commit()
    db.refresh(batch)

    summary = ImportSummary(batch_id=batch.id, row_count=len(rows))
    for i, raw in enumerate(rows, start=1):
        row = normalize_inventory_row(raw)
        if not row["item_code"] or not row["description"] or not row["pack_size"]:
            summary.errors.append({
                "row": i,
                "item_code": row["item_code"] or "UNKNOWN",
                "error": "Missing required fields (item_code, description, or pack_size)",
            })
            continue

        case_weight = await parse_pack_size(
            row["pack_size"],
            row["description"],
            provider=provider,
            breaker=breaker,
            user_id=user_id,
        )
        try:
            db.add(Product(
                item_code=row["item_code"],
                description=row["description"],
                pack_size=row["pack_size"],
                case_weight_lbs=case_weight,
                brand=row["brand"],
                category=row["category"],
                cases_available=row["cases_available"],
                unit_cost=row["unit_cost"],
                warehouse_id=warehouse_id,
                upload_batch_id=batch.id,
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            summary.errors.append({"row": i, "item_code": row["item_code"], "error": type(e).__name__})
            continue
        summary.success_count += 1

    batch.status = "completed" if not summary.errors else "error"
    batch.error_message = "; ".join(
        f"Row {e['row']} ({e['item_code']}): {e['error']}" for e in summary.errors[:STORED_ERRORS]
    ) or None
    db.commit()
    logger.info(
        f"Upload batch {batch.id} ({filename}): {summary.success_count}/{len(rows)} rows imported"
    )
    return summary
