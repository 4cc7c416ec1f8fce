"""Customer model — delivery locations assigned to pricing zones."""

from sqlalchemy import Column, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"))
    company_name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(2), nullable=False)
    zip = Column(String(10), nullable=False)
    lat = Column(Float)
    lng = Column(Float)
    zone_id = Column(Integer, ForeignKey("zones.id"))
    customer_type = Column(String(50), nullable=False, default="distributor")
    contact_name = Column(String(255))
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    notes = Column(Text)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    zone = relationship("Zone", foreign_keys=[zone_id])

    __table_args__ = (
        Index("ix_customers_zone", "zone_id"),
        Index("ix_customers_state", "state"),
    )
