"""Shared file parsing utilities for inventory spreadsheet imports.

Used by:
  - services/inventory_import.py: POST /api/upload
"""

import csv
import io
import logging

from .utils import safe_float, safe_int

log = logging.getLogger(__name__)


class FileParseError(ValueError):
    pass


def parse_tabular_file(content: bytes, filename: str) -> list[dict]:
    """Parse CSV/TSV/Excel file bytes into a list of row dicts.

    Header keys are stripped and lowercased; values are stripped strings.
    Raises FileParseError when the file cannot be read at all.
    """
    fname = (filename or "").lower()
    try:
        if fname.endswith((".xlsx", ".xlsm")):
            return _parse_excel(content)
        delimiter = "\t" if fname.endswith(".tsv") else ","
        return _parse_csv(content, delimiter)
    except FileParseError:
        raise
    except Exception as e:
        log.warning(f"File parse error ({filename}): {e}")
        raise FileParseError(f"Failed to parse {filename}") from e


def _parse_excel(content: bytes) -> list[dict]:
    import openpyxl

    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    ws = wb.active
    rows = []
    headers = []
    for i, row in enumerate(ws.iter_rows(values_only=True)):
        if i == 0:
            headers = [str(c or "").strip().lower() for c in row]
            continue
        if not headers or not any(v not in (None, "") for v in row):
            continue
        rows.append(dict(zip(headers, ["" if v is None else str(v).strip() for v in row])))
    wb.close()
    return rows


def _parse_csv(content: bytes, delimiter: str = ",") -> list[dict]:
    text = content.decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    rows = []
    for row in reader:
        cleaned = {k.strip().lower(): (v or "").strip() for k, v in row.items() if k}
        if any(cleaned.values()):
            rows.append(cleaned)
    return rows


# ── Inventory row normalization ─────────────────────────────────────────

ITEM_CODE_HEADERS = {"item code", "item_code", "itemcode", "item #", "item"}
DESCRIPTION_HEADERS = {"description", "desc", "product description", "product"}
PACK_SIZE_HEADERS = {"pack size", "pack_size", "packsize", "pack"}
BRAND_HEADERS = {"brand", "manufacturer", "mfr"}
CASES_HEADERS = {"cases available", "cases_available", "cases", "qty", "quantity"}
UNIT_COST_HEADERS = {"unit cost", "unit_cost", "cost", "case cost", "price"}
CATEGORY_HEADERS = {"category", "cat"}


def _first(r: dict, headers: set) -> str:
    for h in headers:
        v = r.get(h)
        if v not in (None, ""):
            return v
    return ""


def normalize_inventory_row(r: dict) -> dict:
    """Map a raw spreadsheet row onto product fields. Missing values come back empty/None."""
    return {
        "item_code": _first(r, ITEM_CODE_HEADERS),
        "description": _first(r, DESCRIPTION_HEADERS),
        "pack_size": _first(r, PACK_SIZE_HEADERS),
        "brand": _first(r, BRAND_HEADERS) or None,
        "cases_available": safe_int(_first(r, CASES_HEADERS)) or 0,
        "unit_cost": safe_float(_first(r, UNIT_COST_HEADERS)),
        "category": _first(r, CATEGORY_HEADERS) or None,
    }
