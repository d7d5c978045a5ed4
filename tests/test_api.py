"""Tests for the FastAPI API."""

import pytest
from fastapi.testclient import TestClient

from orderdesk import api
from orderdesk.service import OrderService

from .conftest import CAIRO, DOKKI, GIZA, NASR_CITY


@pytest.fixture
def api_client(temp_dir, rates, monkeypatch):
    """Test client backed by a temporary data directory and the small rate table."""
    service = OrderService(temp_dir, rates=rates)
    monkeypatch.setattr(api, "get_service", lambda: service)
    return TestClient(api.app)


@pytest.fixture
def seeded_client(api_client):
    api_client.post("/api/products", json={"id": "a", "name": "Product A", "price": "100 EGP"})
    api_client.post(
        "/api/products",
        json={"id": "b", "name": "Product B", "price": "80", "sale_price": "60 EGP", "on_sale": True},
    )
    api_client.post(
        "/api/products",
        json={"id": "f", "name": "Kit", "price": "200", "free_delivery": True},
    )
    return api_client


def apply(client, draft, operation, **params):
    response = client.post(
        "/api/drafts/apply",
        json={"draft": draft, "operation": operation, "params": params},
    )
    assert response.status_code == 200, response.text
    return response.json()


def build_new_customer_draft(client):
    draft = client.post("/api/drafts").json()
    draft = apply(client, draft, "start_new_customer")
    draft = apply(client, draft, "set_new_customer", full_name="Mona", phone="010 1234 5678")
    draft = apply(client, draft, "set_destination", governorate=CAIRO, city=NASR_CITY)
    draft = apply(client, draft, "set_address_details", full_address="1 Street")
    draft = apply(client, draft, "add_item", product="a")
    draft = apply(client, draft, "add_item", product="b")
    return draft


class TestHealthCheck:
    def test_health(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["order_count"] == 0


class TestProducts:
    def test_create_normalizes_prices(self, seeded_client):
        response = seeded_client.get("/api/products/b")
        assert response.status_code == 200
        data = response.json()
        assert data["price"] == "80"
        assert data["sale_price"] == "60"
        assert data["currency"] == "EGP"

    def test_list(self, seeded_client):
        data = seeded_client.get("/api/products").json()
        assert data["count"] == 3

    def test_duplicate_returns_409(self, seeded_client):
        response = seeded_client.post("/api/products", json={"id": "a", "name": "Again", "price": 1})
        assert response.status_code == 409
        assert response.json()["error_type"] == "ProductExistsError"

    def test_update(self, seeded_client):
        response = seeded_client.patch("/api/products/a", json={"price": "120 EGP", "featured": True})
        assert response.status_code == 200
        assert response.json()["price"] == "120"
        assert response.json()["featured"] is True
        assert response.json()["name"] == "Product A"

    def test_missing_returns_404(self, api_client):
        response = api_client.get("/api/products/nope")
        assert response.status_code == 404
        assert response.json()["error_type"] == "ProductNotFoundError"

    def test_delete(self, seeded_client):
        assert seeded_client.delete("/api/products/a").status_code == 200
        assert seeded_client.get("/api/products").json()["count"] == 2


class TestCustomers:
    def test_create_normalizes_phone(self, api_client):
        response = api_client.post(
            "/api/customers", json={"phone": "+2 010 1234 5678", "full_name": "Mona"}
        )
        assert response.status_code == 201
        assert response.json()["id"] == "01012345678"

    def test_invalid_phone_returns_400(self, api_client):
        response = api_client.post("/api/customers", json={"phone": "123", "full_name": "Mona"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidPhoneError"

    def test_search_and_update(self, api_client):
        api_client.post("/api/customers", json={"phone": "01012345678", "full_name": "Mona Ali"})
        api_client.post("/api/customers", json={"phone": "01198765432", "full_name": "Karim"})

        data = api_client.get("/api/customers", params={"q": "mona"}).json()
        assert [c["id"] for c in data["customers"]] == ["01012345678"]

        response = api_client.patch(
            "/api/customers/01012345678",
            json={"address": {"governorate": GIZA, "city": DOKKI}, "status": "archived"},
        )
        assert response.status_code == 200
        assert response.json()["address"]["city"] == DOKKI
        assert api_client.get("/api/customers").json()["count"] == 1

    def test_invalid_status_rejected(self, api_client):
        api_client.post("/api/customers", json={"phone": "01012345678", "full_name": "Mona"})
        response = api_client.patch("/api/customers/01012345678", json={"status": "vip"})
        assert response.status_code == 422


class TestDrafts:
    def test_new_draft_has_default_fee(self, api_client):
        data = api_client.post("/api/drafts").json()
        assert data["shipping_fee"] == {"mode": "auto", "amount": "50"}
        assert data["total_amount"] == "50"

    def test_draft_totals(self, seeded_client):
        draft = build_new_customer_draft(seeded_client)
        assert draft["subtotal"] == "160"
        assert draft["shipping_fee"]["amount"] == "60"
        assert draft["total_amount"] == "220"

    def test_manual_override_and_free_delivery(self, seeded_client):
        draft = build_new_customer_draft(seeded_client)
        draft = apply(seeded_client, draft, "set_shipping_fee_override", value="-5")
        assert draft["shipping_fee"] == {"mode": "manual", "amount": "0"}

        draft = apply(seeded_client, draft, "reset_shipping_fee")
        draft = apply(seeded_client, draft, "add_item", product="f")
        assert draft["shipping_fee"]["amount"] == "0"
        assert draft["total_amount"] == "360"

    def test_unknown_operation_returns_400(self, api_client):
        draft = api_client.post("/api/drafts").json()
        response = api_client.post(
            "/api/drafts/apply", json={"draft": draft, "operation": "explode"}
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "UnknownOperationError"

    def test_select_customer(self, seeded_client):
        seeded_client.post(
            "/api/customers",
            json={
                "phone": "01012345678",
                "full_name": "Mona",
                "address": {"governorate": GIZA, "city": DOKKI, "full_address": "2 Road"},
            },
        )
        draft = seeded_client.post("/api/drafts").json()
        response = seeded_client.post(
            "/api/drafts/select-customer", json={"draft": draft, "customer_id": "01012345678"}
        )
        data = response.json()
        assert data["customer_id"] == "01012345678"
        assert data["shipping_address"]["city"] == DOKKI
        assert data["shipping_fee"]["amount"] == "45"


class TestOrders:
    def test_submit_and_get(self, seeded_client):
        draft = build_new_customer_draft(seeded_client)
        response = seeded_client.post("/api/orders", json={"draft": draft, "actor": "staff"})
        assert response.status_code == 201
        order = response.json()
        assert order["total_amount"] == "220"
        assert order["customer_id"] == "01012345678"
        assert order["internal_notes"][0]["title"] == "Order Created"

        fetched = seeded_client.get(f"/api/orders/{order['id']}").json()
        assert fetched["id"] == order["id"]

        orders = seeded_client.get("/api/customers/01012345678/orders").json()
        assert orders["count"] == 1

    def test_submit_empty_returns_400(self, api_client):
        draft = api_client.post("/api/drafts").json()
        response = api_client.post("/api/orders", json={"draft": draft})
        assert response.status_code == 400
        assert response.json()["error_type"] == "EmptyOrderError"

    def test_edit_and_save(self, seeded_client):
        draft = build_new_customer_draft(seeded_client)
        order = seeded_client.post("/api/orders", json={"draft": draft}).json()

        edit = seeded_client.get(f"/api/orders/{order['id']}/draft").json()
        assert edit["shipping_fee"]["mode"] == "manual"
        edit = apply(seeded_client, edit, "set_quantity", product_id="a", quantity=2)

        response = seeded_client.put(
            f"/api/orders/{order['id']}", json={"draft": edit, "actor": "staff"}
        )
        assert response.status_code == 200
        saved = response.json()
        assert saved["total_amount"] == "320"
        assert saved["internal_notes"][-1]["title"] == "Order Updated"

    def test_status_endpoints(self, seeded_client):
        draft = build_new_customer_draft(seeded_client)
        order_id = seeded_client.post("/api/orders", json={"draft": draft}).json()["id"]

        advanced = seeded_client.post(f"/api/orders/{order_id}/advance", json={"actor": "staff"})
        assert advanced.json()["status"] == "processing"

        cancelled = seeded_client.post(f"/api/orders/{order_id}/cancel", json={"actor": "staff"})
        assert cancelled.json()["status"] == "cancelled"

        again = seeded_client.post(f"/api/orders/{order_id}/cancel", json={"actor": "staff"})
        assert again.status_code == 409
        assert again.json()["error_type"] == "InvalidStatusTransitionError"

        chosen = seeded_client.post(
            f"/api/orders/{order_id}/status", json={"status": "shipped", "actor": "staff"}
        )
        assert chosen.json()["status"] == "shipped"

    def test_notes_and_delete(self, seeded_client):
        draft = build_new_customer_draft(seeded_client)
        order_id = seeded_client.post("/api/orders", json={"draft": draft}).json()["id"]

        response = seeded_client.post(
            f"/api/orders/{order_id}/notes",
            json={"title": "Called", "summary": "No answer", "actor": "staff"},
        )
        assert response.status_code == 201
        assert len(response.json()["internal_notes"]) == 2

        assert seeded_client.delete(f"/api/orders/{order_id}").status_code == 200
        assert seeded_client.get(f"/api/orders/{order_id}").status_code == 404


class TestShippingRates:
    def test_governorates(self, api_client):
        data = api_client.get("/api/shipping/governorates").json()
        assert data["governorates"] == [CAIRO, GIZA]

    def test_cities(self, api_client):
        data = api_client.get(f"/api/shipping/governorates/{GIZA}/cities").json()
        assert data == [{"name": DOKKI, "fee": "45"}]

    def test_fee_quote(self, api_client):
        data = api_client.get("/api/shipping/fee", params={"governorate": CAIRO, "city": NASR_CITY}).json()
        assert data["fee"] == "60"
        assert data["listed"] is True

    def test_fee_quote_fallback(self, api_client):
        data = api_client.get("/api/shipping/fee", params={"governorate": GIZA}).json()
        assert data["fee"] == "50"
        assert data["listed"] is False
