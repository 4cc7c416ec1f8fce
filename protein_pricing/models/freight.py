"""Freight rate model — one calibrated per-lb rate for a warehouse → zone lane."""

from datetime import datetime

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class FreightRate(Base):
    __tablename__ = "freight_rates"
    id = Column(Integer, primary_key=True)
    origin_warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    destination_zone_id = Column(Integer, ForeignKey("zones.id"), nullable=False)
    city = Column(String(100))
    state = Column(String(2))
    rate_per_lb = Column(Numeric(10, 4), nullable=False)
    rate_type = Column(String(20), nullable=False, default="frozen_ltl")
    # dry_ltl | frozen_ltl | truckload
    weight_lbs = Column(Integer, nullable=False)
    dry_ltl_quote = Column(Numeric(12, 2))
    multipliers = Column(JSON)
    valid_from = Column(UTCDateTime, nullable=False, default=utcnow)
    valid_until = Column(UTCDateTime)
    goship_quote_id = Column(String(100))
    created_at = Column(UTCDateTime, default=utcnow)

    origin_warehouse = relationship("Warehouse", foreign_keys=[origin_warehouse_id])
    destination_zone = relationship("Zone", foreign_keys=[destination_zone_id])

    __table_args__ = (
        Index("ix_freight_lane", "origin_warehouse_id", "destination_zone_id"),
        Index("ix_freight_valid_until", "valid_until"),
    )

    def is_active(self, now: datetime | None = None) -> bool:
        """A rate is usable for pricing only while now < valid_until."""
        if self.valid_until is None:
            return False
        return (now or utcnow()) < self.valid_until
