"""
test_main.py — Tests for app-level middleware and error handling

Covers: /health, X-Request-ID and security headers, request id on log
records, JSON error bodies for 404/401/422/500, pricing errors as 400,
session auth enforcement.

Called by: pytest
Depends on: protein_pricing.main
"""

from unittest.mock import patch

from fastapi.testclient import TestClient
from loguru import logger

from protein_pricing.main import SECURITY_HEADERS


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_request_id_and_security_headers(client):
    resp = client.get("/health")
    assert len(resp.headers["X-Request-ID"]) == 8
    assert resp.headers["X-API-Version"] == "v1"
    for name, value in SECURITY_HEADERS.items():
        assert resp.headers[name] == value


def test_request_ids_are_unique(client):
    ids = {client.get("/health").headers["X-Request-ID"] for _ in range(5)}
    assert len(ids) == 5


def test_request_id_bound_to_request_logs(client, warehouses):
    seen = []
    sink_id = logger.add(
        lambda m: seen.append(m.record["extra"].get("request_id")),
        format="{message}",
        filter=lambda r: r["message"].startswith("Upload batch"),
    )
    try:
        csv = b"Item Code,Description,Pack Size\nWNG-1,Chicken wings,40 LB\n"
        resp = client.post("/api/upload", files={"file": ("inventory.csv", csv)})
    finally:
        logger.remove(sink_id)
    assert resp.status_code == 200
    assert seen == [resp.headers["X-Request-ID"]]


def test_not_found_error_shape(client):
    resp = client.get("/api/products/424242")
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"] == "Product not found"
    assert body["status_code"] == 404
    assert body["request_id"] == resp.headers["X-Request-ID"]


def test_validation_error_shape(client):
    resp = client.post("/api/pricing/calculate", json={"zone_id": "abc"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "Validation error"
    assert any(d["loc"][-1] == "product_ids" for d in body["detail"])


def test_pricing_error_is_400(client):
    resp = client.post(
        "/api/pricing/delivered-price",
        json={"cost_per_lb": 2.5, "margin_percent": 150, "freight_per_lb": 0.1},
    )
    assert resp.status_code == 400
    assert "Margin percent" in resp.json()["error"]


def test_unhandled_error_is_generic_500(client, warehouses):
    with patch("protein_pricing.routers.products.import_inventory", side_effect=RuntimeError("db exploded")):
        app_client = TestClient(client.app, raise_server_exceptions=False)
        resp = app_client.post("/api/upload", files={"file": ("inv.csv", b"a,b\n1,2\n")})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Internal server error"
    assert "exploded" not in resp.text


def test_unauthenticated_is_401(db_session):
    from protein_pricing.database import get_db
    from protein_pricing.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    try:
        with TestClient(app) as c:
            resp = c.get("/api/products")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 401
    assert resp.json()["error"] == "Not authenticated"
