"""Price sheet models — zone-scoped weekly delivered prices."""

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow

SHEET_STATUSES = ("draft", "published", "archived")


class PriceSheet(Base):
    __tablename__ = "price_sheets"
    id = Column(Integer, primary_key=True)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=False)
    week_start = Column(Date, nullable=False)
    week_end = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="draft")
    # draft | published | archived
    excel_storage_path = Column(String(500))
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    zone = relationship("Zone", foreign_keys=[zone_id])
    items = relationship(
        "PriceSheetItem",
        back_populates="price_sheet",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_price_sheets_zone", "zone_id"),
        Index("ix_price_sheets_status", "status"),
    )


class PriceSheetItem(Base):
    __tablename__ = "price_sheet_items"
    id = Column(Integer, primary_key=True)
    price_sheet_id = Column(
        Integer, ForeignKey("price_sheets.id", ondelete="CASCADE"), nullable=False
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"))
    cost_per_lb = Column(Numeric(12, 4), nullable=False)
    margin_percent = Column(Numeric(5, 2), nullable=False)
    margin_amount = Column(Numeric(12, 4), nullable=False)
    freight_per_lb = Column(Numeric(12, 4), nullable=False)
    delivered_price_lb = Column(Numeric(12, 4), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    price_sheet = relationship("PriceSheet", back_populates="items")
    product = relationship("Product", foreign_keys=[product_id])
    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id])

    __table_args__ = (Index("ix_sheet_items_sheet", "price_sheet_id"),)
