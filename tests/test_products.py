"""
test_products.py — Tests for products and inventory upload

Covers: cost_per_lb derivation on insert/update, listing filters and
search escaping, PATCH validation, CSV/XLSX upload (row errors, unparsed
pack sizes, batch status), AI fallback drawing on the uploader's AI rate
limit, upload rejections.

Called by: pytest
Depends on: routers/products.py, services/inventory_import.py, file_utils.py
"""

import io
from unittest.mock import AsyncMock, patch

import pytest
from openpyxl import Workbook

from protein_pricing.file_utils import FileParseError, normalize_inventory_row, parse_tabular_file
from protein_pricing.models import Product, UploadBatch
from protein_pricing.models.catalog import derive_cost_per_lb
from protein_pricing.utils.claude_client import ClaudeToolResult

CSV = (
    "Item Code,Description,Pack Size,Brand,Cases Available,Unit Cost,Category\n"
    "CHK-2001,Chicken thighs boneless,6/5 LB,Keystone,50,$75.00,Chicken\n"
    "BEEF-9,Beef patties,master case,,10,90,Beef\n"
    ",Missing code,40 LB,,,,\n"
)


def _upload(client, content, filename="inventory.csv", **data):
    return client.post("/api/upload", files={"file": (filename, content)}, data=data)


# ── cost_per_lb ──────────────────────────────────────────────────────


def test_derive_cost_per_lb():
    assert derive_cost_per_lb(100, 40) == 2.5
    assert derive_cost_per_lb(None, 40) is None
    assert derive_cost_per_lb(100, None) is None
    assert derive_cost_per_lb(100, 0) is None


def test_cost_per_lb_set_on_insert(product):
    assert float(product.cost_per_lb) == 2.5


def test_cost_per_lb_follows_updates(db_session, product):
    product.unit_cost = 120
    db_session.commit()
    db_session.refresh(product)
    assert float(product.cost_per_lb) == 3.0


# ── Listing and editing ──────────────────────────────────────────────


def test_list_products(client, product):
    data = client.get("/api/products").json()
    assert data["total"] == 1
    item = data["items"][0]
    assert item["item_code"] == "CHK-1001"
    assert item["warehouse_code"] == "PA"
    assert item["cost_per_lb"] == 2.5


def test_search_treats_wildcards_literally(client, product):
    assert client.get("/api/products", params={"search": "breast"}).json()["total"] == 1
    assert client.get("/api/products", params={"search": "%"}).json()["total"] == 0


def test_filter_by_warehouse_and_category(client, product, warehouses):
    assert client.get("/api/products", params={"warehouse_id": warehouses["GA"].id}).json()["total"] == 0
    assert client.get("/api/products", params={"category": "Chicken"}).json()["total"] == 1


def test_patch_recomputes_cost_per_lb(client, product):
    resp = client.patch(f"/api/products/{product.id}", json={"case_weight_lbs": 50})
    assert resp.status_code == 200
    assert resp.json()["cost_per_lb"] == 2.0


@pytest.mark.parametrize("body", [{"unit_cost": 0}, {"case_weight_lbs": -1}, {"default_margin_percent": 101}])
def test_patch_validation(client, product, body):
    assert client.patch(f"/api/products/{product.id}", json=body).status_code == 422


def test_missing_product_404(client):
    assert client.get("/api/products/999").status_code == 404


# ── File parsing ─────────────────────────────────────────────────────


def test_parse_csv_headers_normalized():
    rows = parse_tabular_file(CSV.encode(), "inv.csv")
    assert len(rows) == 3
    assert rows[0]["item code"] == "CHK-2001"


def test_normalize_row_aliases():
    row = normalize_inventory_row({"item #": "X1", "desc": "Pork loin", "pack": "2/10#", "qty": "7", "price": "$1,050.00"})
    assert row["item_code"] == "X1"
    assert row["cases_available"] == 7
    assert row["unit_cost"] == 1050.0
    assert row["brand"] is None


def test_unreadable_excel_raises():
    with pytest.raises(FileParseError):
        parse_tabular_file(b"not a workbook", "inv.xlsx")


# ── Upload ───────────────────────────────────────────────────────────


def test_upload_csv(client, db_session, warehouses):
    resp = _upload(client, CSV.encode())
    assert resp.status_code == 200
    data = resp.json()
    assert data["row_count"] == 3
    assert data["success_count"] == 2
    assert data["error_count"] == 1
    assert data["errors"][0]["row"] == 3

    thighs = db_session.query(Product).filter_by(item_code="CHK-2001").one()
    assert float(thighs.case_weight_lbs) == 30.0
    assert float(thighs.cost_per_lb) == 2.5
    assert thighs.warehouse_id == warehouses["PA"].id

    patties = db_session.query(Product).filter_by(item_code="BEEF-9").one()
    assert patties.case_weight_lbs is None
    assert patties.cost_per_lb is None

    batch = db_session.get(UploadBatch, data["batch_id"])
    assert batch.status == "error"
    assert "Row 3" in batch.error_message


def test_upload_xlsx_to_chosen_warehouse(client, db_session, warehouses):
    wb = Workbook()
    ws = wb.active
    ws.append(["Item Code", "Description", "Pack Size", "Unit Cost", "Cases"])
    ws.append(["PRK-1", "Pork spare ribs", "4x10LB", 96, 12])
    buf = io.BytesIO()
    wb.save(buf)

    resp = _upload(client, buf.getvalue(), "inventory.xlsx", warehouse_id=str(warehouses["GA"].id))
    assert resp.status_code == 200
    assert resp.json()["success_count"] == 1
    ribs = db_session.query(Product).filter_by(item_code="PRK-1").one()
    assert ribs.warehouse_id == warehouses["GA"].id
    assert float(ribs.cost_per_lb) == 2.4
    assert db_session.get(UploadBatch, resp.json()["batch_id"]).status == "completed"


def test_upload_rejects_extension(client, warehouses):
    resp = _upload(client, b"hello", "inventory.pdf")
    assert resp.status_code == 400


def test_upload_rejects_empty(client, warehouses):
    assert _upload(client, b"").status_code == 400


def test_upload_header_only_is_400(client, warehouses):
    resp = _upload(client, b"Item Code,Description,Pack Size\n")
    assert resp.status_code == 400
    assert "empty" in resp.json()["error"]


def test_upload_unknown_warehouse(client, warehouses):
    assert _upload(client, CSV.encode(), warehouse_id="999").status_code == 400


def test_upload_too_large(client, warehouses, monkeypatch):
    from protein_pricing.config import settings

    monkeypatch.setattr(settings, "max_upload_size_mb", 0)
    assert _upload(client, CSV.encode()).status_code == 413


def test_upload_ai_fallback_stops_at_user_ai_limit(client, db_session, warehouses, monkeypatch):
    from protein_pricing.config import settings

    monkeypatch.setattr(settings, "anthropic_api_key", "sk-ant-test")
    monkeypatch.setattr(settings, "ai_features_enabled", "on")
    monkeypatch.setattr(settings, "ai_rate_limit_per_minute", 10)
    rows = "".join(f"LQ-{i},Chicken leg quarters,one master case,,5,60\n" for i in range(30))
    content = ("Item Code,Description,Pack Size,Brand,Cases Available,Unit Cost\n" + rows).encode()
    reply = ClaudeToolResult(input={"case_weight_lbs": 40}, model="claude-3-5-haiku-20241022")

    with patch(
        "protein_pricing.services.ai_parsers.claude_tool_call", new=AsyncMock(return_value=reply)
    ) as ai_call:
        resp = _upload(client, content)

    assert resp.status_code == 200
    assert resp.json()["success_count"] == 30
    assert ai_call.await_count == 10
    weighed = db_session.query(Product).filter(Product.case_weight_lbs.isnot(None)).count()
    assert weighed == 10

    # the upload spent the window shared with the AI endpoints
    resp = client.post("/api/ai/categorize", json={"description": "IQF chicken wings"})
    assert resp.status_code == 429
