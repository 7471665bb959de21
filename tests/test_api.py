import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from shoptrack import create_app
from shoptrack.core.config import settings
from shoptrack.db.session import Base, get_db

from shoptrack import models  # noqa: F401


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app = create_app(init_database=False)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client


def _create_sku(client, name="Power bank", stock=2, price=15):
    response = client.post(
        "/api/v1/products",
        json={"type": "sku", "name": name, "category": "Power", "price": price, "stock": stock},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health_and_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "abc123"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert response.headers["X-Request-ID"] == "abc123"
    assert response.headers["X-Response-Time"].endswith("ms")


def test_product_crud_round_trip(client):
    response = client.post(
        "/api/v1/products",
        json={"type": "INDIVIDUAL", "name": " iPhone 12 ", "category": "Phones", "price": 300, "stock": 9, "imei": "35 209900 176148 1"},
    )
    assert response.status_code == 201
    created = response.json()
    assert created["stock"] == 1
    assert created["name"] == "iPhone 12"
    assert created["imei"] == "352099001761481"
    assert created["stock_status"] == "in_stock"

    listing = client.get("/api/v1/products").json()
    assert listing["total"] == 1
    assert listing["page"] == 1
    assert listing["limit"] == settings.DEFAULT_PAGE_SIZE
    assert listing["items"][0]["id"] == created["id"]

    response = client.put(
        f"/api/v1/products?id={created['id']}",
        json={"type": "individual", "name": "iPhone 12 Pro", "category": "Phones", "price": 320, "imei": created["imei"]},
    )
    assert response.status_code == 200
    assert response.json()["name"] == "iPhone 12 Pro"
    assert response.json()["price"] == 320.0

    response = client.delete(f"/api/v1/products/{created['id']}")
    assert response.json() == {"status": "deleted", "id": created["id"], "transactions_removed": 0}

    response = client.get(f"/api/v1/products/{created['id']}")
    assert response.status_code == 404
    assert response.json() == {"code": "http_error", "message": "Not found"}


def test_update_of_missing_product_is_404(client):
    response = client.put(
        "/api/v1/products/does-not-exist",
        json={"type": "sku", "name": "X", "category": "Y", "price": 1},
    )
    assert response.status_code == 404


def test_validation_errors_use_the_envelope(client):
    response = client.post("/api/v1/products", json={"type": "sku", "category": "Power", "price": -1})

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["details"]["errors"]

    response = client.get("/api/v1/products", params={"limit": settings.MAX_PAGE_SIZE + 1})
    assert response.status_code == 422


def test_duplicate_product_name_is_conflict(client):
    _create_sku(client)

    response = client.post(
        "/api/v1/products",
        json={"type": "sku", "name": "power bank", "category": "Power", "price": 15},
    )
    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


def test_sell_flow(client):
    product = _create_sku(client)

    response = client.post(f"/api/v1/products/{product['id']}/sell", json={"quantity": 3, "price": 25})
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "insufficient_stock"
    assert body["details"]["available"] == 2

    response = client.post(
        f"/api/v1/products/{product['id']}/sell",
        json={"quantity": 2, "price": 25, "buyer_name": "Imran", "buyer_phone": "0300"},
    )
    assert response.status_code == 201
    sale = response.json()
    assert sale["total_amount"] == 50.0
    assert sale["party"] == "Imran"
    assert sale["product_name"] == "Power bank"

    refreshed = client.get(f"/api/v1/products/{product['id']}").json()
    assert refreshed["stock"] == 0
    assert refreshed["stock_status"] == "out_of_stock"

    partners = client.get("/api/v1/partners", params={"q": "imran"}).json()
    assert partners["total"] == 1
    history = client.get(f"/api/v1/partners/{sale['partner_id']}/transactions").json()
    assert [row["id"] for row in history["items"]] == [sale["id"]]


def test_lend_and_return_flow(client):
    product = _create_sku(client, name="Tripod", stock=1)

    response = client.post(f"/api/v1/products/{product['id']}/lend", json={"party": "Studio A"})
    assert response.status_code == 201

    lent = client.get("/api/v1/products/lent").json()
    assert len(lent) == 1
    assert lent[0]["party"] == "Studio A"
    assert lent[0]["product"]["available"] == 0

    response = client.post(f"/api/v1/products/{product['id']}/lend", json={"party": "Studio B"})
    assert response.status_code == 409

    response = client.post(f"/api/v1/products/{product['id']}/return")
    assert response.status_code == 201
    assert response.json()["type"] == "return"

    assert client.get("/api/v1/products/lent").json() == []
    response = client.post(f"/api/v1/products/{product['id']}/return", json={})
    assert response.status_code == 409
    assert response.json()["code"] == "not_lent"


def test_lend_requires_a_borrower(client):
    product = _create_sku(client, name="Ring light", stock=1)

    response = client.post(f"/api/v1/products/{product['id']}/lend", json={})
    assert response.status_code == 422


def test_archive_product(client):
    product = _create_sku(client)

    response = client.post(f"/api/v1/products/{product['id']}/archive")
    assert response.status_code == 200
    assert response.json()["deleted_at"]

    assert client.get("/api/v1/products").json()["total"] == 0
    assert client.get("/api/v1/products", params={"include_deleted": "true"}).json()["total"] == 1
    assert client.post(f"/api/v1/products/{product['id']}/sell", json={"price": 1}).status_code == 404


def test_transactions_endpoints(client):
    product = _create_sku(client, stock=5)
    partner = client.post(
        "/api/v1/partners",
        json={"type": "shop", "name": "Asif", "phone": "0321", "shop_name": "Asif Electronics"},
    ).json()

    response = client.post(
        "/api/v1/transactions",
        json={"product_id": product["id"], "type": "purchase", "quantity": 3, "price": 12.5, "partner_id": partner["id"]},
    )
    assert response.status_code == 201
    txn = response.json()
    assert txn["total_amount"] == 37.5
    assert txn["party"] == "Asif"

    response = client.put(f"/api/v1/transactions?id={txn['id']}", json={"quantity": 4, "price": 12.5})
    assert response.status_code == 200
    assert response.json()["total_amount"] == 50.0
    assert client.get(f"/api/v1/products/{product['id']}").json()["stock"] == 9

    listing = client.get("/api/v1/transactions", params={"type": "purchase", "product_id": product["id"]}).json()
    assert listing["total"] == 1

    response = client.post(
        "/api/v1/transactions",
        json={"product_id": "missing", "type": "sale", "quantity": 1, "price": 1},
    )
    assert response.status_code == 404

    response = client.post(
        "/api/v1/transactions",
        json={"product_id": product["id"], "type": "gift", "quantity": 1},
    )
    assert response.status_code == 422

    response = client.delete(f"/api/v1/transactions/{txn['id']}")
    assert response.json() == {"status": "deleted", "id": txn["id"]}
    assert client.get(f"/api/v1/products/{product['id']}").json()["stock"] == 5
    assert client.get(f"/api/v1/transactions/{txn['id']}").status_code == 404


def test_partner_endpoints(client):
    response = client.post("/api/v1/partners", json={"type": "shop", "name": "Noor", "phone": "0333"})
    assert response.status_code == 422

    created = client.post("/api/v1/partners", json={"type": "individual", "name": "Noor", "phone": "0333"}).json()
    assert created["display_name"] == "Noor"

    response = client.put(
        f"/api/v1/partners/{created['id']}",
        json={"type": "shop", "name": "Noor", "phone": "0333", "shop_name": "Noor Mobile"},
    )
    assert response.json()["shop_name"] == "Noor Mobile"

    assert client.delete(f"/api/v1/partners?id={created['id']}").status_code == 200
    assert client.delete(f"/api/v1/partners/{created['id']}").status_code == 404
    assert client.get("/api/v1/partners").json()["total"] == 0


def test_expense_endpoints(client):
    response = client.post(
        "/api/v1/expenses",
        json={"category": "Rent", "description": "April rent", "amount": 300, "date": "2024-04-01T09:00:00Z"},
    )
    assert response.status_code == 201
    expense = response.json()
    assert expense["category"] == "rent"
    assert expense["date"] == "2024-04-01T09:00:00Z"

    client.post(
        "/api/v1/expenses",
        json={"category": "other", "description": "Cleaning", "amount": 12.75, "date": "2024-04-03T09:00:00Z"},
    )

    listing = client.get("/api/v1/expenses").json()
    assert listing["total"] == 2
    assert listing["total_amount"] == 312.75

    response = client.put(
        f"/api/v1/expenses/{expense['id']}",
        json={"category": "rent", "description": "April rent", "amount": 0, "date": "2024-04-01T09:00:00Z"},
    )
    assert response.status_code == 422

    assert client.delete(f"/api/v1/expenses/{expense['id']}").json()["status"] == "deleted"
    assert client.get(f"/api/v1/expenses/{expense['id']}").status_code == 404
    assert client.get("/api/v1/expenses").json()["total_amount"] == 12.75


def test_report_endpoints(client):
    product = _create_sku(client, stock=4, price=10)
    client.post(f"/api/v1/products/{product['id']}/sell", json={"quantity": 1, "price": 18})
    client.post(
        "/api/v1/expenses",
        json={"category": "utilities", "description": "Internet", "amount": 5, "date": "2024-01-05T09:00:00Z"},
    )

    summary = client.get("/api/v1/reports/summary", params={"timeframe": "all"}).json()
    assert summary["total_revenue"] == 18.0
    assert summary["cost_of_goods"] == 10.0
    assert summary["operational_expenses"] == 5.0
    assert summary["net_profit"] == 3.0
    assert summary["counts"]["sales"] == 1

    inventory = client.get("/api/v1/reports/inventory").json()
    assert inventory["stock_value"] == 30.0
    assert [item["name"] for item in inventory["low_stock"]] == ["Power bank"]

    response = client.get("/api/v1/reports/summary", params={"timeframe": "yearly"})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_json_log_formatter_includes_extra_data():
    import json
    import logging

    from shoptrack.core.logging import JsonLogFormatter
    from shoptrack.middlewares import request_id_ctx_var

    record = logging.LogRecord("shoptrack.test", logging.INFO, __file__, 1, "sale.recorded", None, None)
    record.extra_data = {"product_id": "p1", "quantity": 2}
    token = request_id_ctx_var.set("req-1")
    try:
        payload = json.loads(JsonLogFormatter().format(record))
    finally:
        request_id_ctx_var.reset(token)

    assert payload["message"] == "sale.recorded"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "req-1"
    assert payload["product_id"] == "p1"
    assert payload["quantity"] == 2
