"""Manufacturer deal model — AI-extracted offers from manufacturer emails."""

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class ManufacturerDeal(Base):
    __tablename__ = "manufacturer_deals"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    source_type = Column(String(20), nullable=False, default="email")  # email | manual
    raw_content = Column(Text)
    manufacturer = Column(String(200))
    product_description = Column(Text)
    price_per_lb = Column(Numeric(10, 4))
    quantity_lbs = Column(Numeric(12, 2))
    pack_size = Column(String(200))
    expiration_date = Column(Date)
    deal_terms = Column(Text)
    status = Column(String(20), nullable=False, default="pending")
    # pending | accepted | rejected
    product_id = Column(Integer, ForeignKey("products.id"))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    product = relationship("Product", foreign_keys=[product_id])

    __table_args__ = (
        Index("ix_deals_user_status", "user_id", "status"),
        Index("ix_deals_dup_check", "manufacturer", "status", "created_at"),
    )
