"""
schemas/ai.py — AI helper endpoint models

Length limits here are a first pass; utils/input_sanitizer.py applies the
content checks (injection markers, trimmed lengths) before any prompt is built.

Called by: routers/ai.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ParsePackSizeRequest(BaseModel):
    pack_size: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)


class ParsePackSizeResponse(BaseModel):
    case_weight_lbs: float | None
    method: str  # regex | ai | none


class NormalizeAddressRequest(BaseModel):
    address: str = Field(min_length=1, max_length=500)


class CategorizeRequest(BaseModel):
    description: str = Field(min_length=1, max_length=500)


class SearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=500)
