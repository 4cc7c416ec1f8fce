"""Shared conversion helpers used by the importers and parsers."""

import math


def safe_int(v):
    """Safely convert a value to int, returning None on failure."""
    if v is None or v == "":
        return None
    try:
        return int(float(v))
    except (ValueError, TypeError):
        return None


def safe_float(v):
    """Safely convert a value to float, returning None on failure or non-finite values."""
    if v is None or v == "":
        return None
    if isinstance(v, str):
        v = v.replace("$", "").replace(",", "").strip()
    try:
        f = float(v)
    except (ValueError, TypeError):
        return None
    return f if math.isfinite(f) else None
