"""Catalog models — zones, warehouses, inventory uploads, products."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Zone(Base):
    """Geographic grouping of customer states used to select freight rates."""

    __tablename__ = "zones"
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), nullable=False, unique=True)
    description = Column(String(500))
    states = Column(JSON, nullable=False, default=list)
    color = Column(String(20), nullable=False, default="#999999")
    created_at = Column(UTCDateTime, default=utcnow)


class Warehouse(Base):
    __tablename__ = "warehouses"
    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"))
    code = Column(String(20), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(2), nullable=False)
    zip = Column(String(10), nullable=False)
    lat = Column(Float)
    lng = Column(Float)
    is_active = Column(Boolean, default=True)
    serves_zones = Column(JSON, nullable=False, default=list)
    created_at = Column(UTCDateTime, default=utcnow)


class UploadBatch(Base):
    """One inventory spreadsheet import."""

    __tablename__ = "upload_batches"
    id = Column(Integer, primary_key=True)
    filename = Column(String(255), nullable=False)
    row_count = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="processing")
    # processing | completed | error
    error_message = Column(Text)
    user_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(UTCDateTime, default=utcnow)


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True)
    item_code = Column(String(50), nullable=False)
    description = Column(String(500), nullable=False)
    pack_size = Column(String(100), nullable=False)
    case_weight_lbs = Column(Numeric(10, 2))
    brand = Column(String(100))
    category = Column(String(100))
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"))
    cases_available = Column(Integer, nullable=False, default=0)
    unit_cost = Column(Numeric(12, 4))
    cost_per_lb = Column(Numeric(12, 4))
    default_margin_percent = Column(Numeric(5, 2))
    spec_sheet_url = Column(String(500))
    upload_batch_id = Column(Integer, ForeignKey("upload_batches.id"))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id])
    upload_batch = relationship("UploadBatch", foreign_keys=[upload_batch_id])

    __table_args__ = (
        Index("ix_products_warehouse", "warehouse_id"),
        Index("ix_products_item_code", "item_code"),
    )


def derive_cost_per_lb(unit_cost, case_weight_lbs) -> float | None:
    """cost_per_lb = unit_cost / case_weight_lbs when both are present, else None."""
    from ..services.price_calculator import calculate_cost_per_lb

    if unit_cost is None or case_weight_lbs is None or float(case_weight_lbs) <= 0:
        return None
    return calculate_cost_per_lb(float(unit_cost), float(case_weight_lbs))


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _refresh_cost_per_lb(mapper, connection, target: Product):
    target.cost_per_lb = derive_cost_per_lb(target.unit_cost, target.case_weight_lbs)
