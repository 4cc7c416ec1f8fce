"""Tenants and users."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Organization(Base):
    """A distributor tenant. Warehouses and users belong to one organization."""

    __tablename__ = "organizations"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    created_at = Column(UTCDateTime, default=utcnow)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255))
    role = Column(String(20), nullable=False, default="pricing")  # pricing | admin
    organization_id = Column(Integer, ForeignKey("organizations.id"))
    is_active = Column(Boolean, default=True)
    created_at = Column(UTCDateTime, default=utcnow)

    organization = relationship("Organization", foreign_keys=[organization_id])
