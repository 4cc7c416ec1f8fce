"""
schemas/customers.py — Customer location models

Business Rules:
- state is a 2-letter code, stored uppercase; it drives zone assignment
- zip is a 5-digit US postal code (ZIP+4 accepted)
- contact_email, when given, must look like an email address

Called by: routers/customers.py
Depends on: pydantic, models.customers
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

from ..models import Customer

_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _state(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip().upper()
    if len(v) != 2 or not v.isalpha():
        raise ValueError("state must be a 2-letter code")
    return v


def _zip(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not _ZIP_RE.match(v):
        raise ValueError("zip must be a 5-digit ZIP code")
    return v


def _email(v: str | None) -> str | None:
    if not v:
        return None
    v = v.strip().lower()
    if not _EMAIL_RE.match(v):
        raise ValueError("invalid contact_email")
    return v


class CustomerCreate(BaseModel):
    company_name: str = Field(min_length=1, max_length=255)
    address: str = Field(min_length=5, max_length=500)
    city: str = Field(min_length=1, max_length=100)
    state: str
    zip: str
    customer_type: str = Field(default="distributor", max_length=50)
    contact_name: str | None = Field(default=None, max_length=255)
    contact_email: str | None = None
    contact_phone: str | None = Field(default=None, max_length=50)
    notes: str | None = None
    geocode: bool = True

    @field_validator("state")
    @classmethod
    def state_code(cls, v):
        return _state(v)

    @field_validator("zip")
    @classmethod
    def zip_code(cls, v):
        return _zip(v)

    @field_validator("contact_email")
    @classmethod
    def email_format(cls, v):
        return _email(v)


class CustomerUpdate(BaseModel):
    company_name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = Field(default=None, min_length=5, max_length=500)
    city: str | None = Field(default=None, min_length=1, max_length=100)
    state: str | None = None
    zip: str | None = None
    customer_type: str | None = Field(default=None, max_length=50)
    contact_name: str | None = Field(default=None, max_length=255)
    contact_email: str | None = None
    contact_phone: str | None = Field(default=None, max_length=50)
    notes: str | None = None

    @field_validator("state")
    @classmethod
    def state_code(cls, v):
        return _state(v)

    @field_validator("zip")
    @classmethod
    def zip_code(cls, v):
        return _zip(v)

    @field_validator("contact_email")
    @classmethod
    def email_format(cls, v):
        return _email(v)


class CustomerImportRequest(BaseModel):
    customers: list[CustomerCreate] = Field(min_length=1, max_length=10000)
    geocode: bool = False


class CustomerOut(BaseModel):
    id: int
    company_name: str
    address: str
    city: str
    state: str
    zip: str
    lat: float | None = None
    lng: float | None = None
    zone_id: int | None = None
    zone_name: str | None = None
    customer_type: str
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    notes: str | None = None


def customer_out(c: Customer) -> CustomerOut:
    return CustomerOut(
        id=c.id,
        company_name=c.company_name,
        address=c.address,
        city=c.city,
        state=c.state,
        zip=c.zip,
        lat=c.lat,
        lng=c.lng,
        zone_id=c.zone_id,
        zone_name=c.zone.name if c.zone else None,
        customer_type=c.customer_type,
        contact_name=c.contact_name,
        contact_email=c.contact_email,
        contact_phone=c.contact_phone,
        notes=c.notes,
    )
