# Overview: Pytest coverage for the product catalog routes and service.

import pytest

from stockroom.models import Product, Movement
from stockroom.services import products_service
from stockroom.validation import NotFoundError


class TestCreateProduct:

    def test_create_and_fetch(self, client, basic_headers):
        resp = client.post(
            "/api/products",
            json={
                "name": "Feijao Carioca 1kg",
                "barcode": "7890000000017",
                "expiry_date": "2027-03-31",
                "unit_price_cents": 899,
                "quantity_on_hand": 40,
                "minimum_stock": 10,
            },
            headers=basic_headers,
        )
        assert resp.status_code == 201
        created = resp.get_json()
        assert created["quantity_on_hand"] == 40
        assert created["expiry_date"] == "2027-03-31"
        assert created["is_low_stock"] is False

        resp = client.get(f"/api/products/{created['id']}", headers=basic_headers)
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Feijao Carioca 1kg"

    def test_defaults(self, client, basic_headers):
        resp = client.post("/api/products", json={"name": "Sal"}, headers=basic_headers)
        assert resp.status_code == 201
        created = resp.get_json()
        assert created["quantity_on_hand"] == 0
        assert created["unit_price_cents"] == 0
        assert created["minimum_stock"] == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"name": "A"},
            {"name": "   "},
            {"name": "Oleo", "quantity_on_hand": -1},
            {"name": "Oleo", "quantity_on_hand": 10**19},
            {"name": "Oleo", "minimum_stock": 10**19},
            {"name": "Oleo", "unit_price_cents": -5},
            {"name": "Oleo", "unit_price_cents": 12.5},
            {"name": "Oleo", "minimum_stock": "many"},
            {"name": "Oleo", "expiry_date": "31/03/2027"},
            {"name": "Oleo", "sku": "X-1"},
        ],
    )
    def test_invalid_payload(self, client, basic_headers, payload):
        resp = client.post("/api/products", json=payload, headers=basic_headers)
        assert resp.status_code == 400


class TestReadProducts:

    def test_get_missing(self, client, basic_headers):
        resp = client.get("/api/products/99999", headers=basic_headers)
        assert resp.status_code == 404

    def test_list_and_search(self, client, basic_headers, product):
        client.post("/api/products", json={"name": "Acucar 1kg"}, headers=basic_headers)

        resp = client.get("/api/products", headers=basic_headers)
        assert resp.get_json()["count"] == 2

        resp = client.get("/api/products?q=arroz", headers=basic_headers)
        items = resp.get_json()["items"]
        assert [p["name"] for p in items] == ["Arroz 5kg"]

        resp = client.get("/api/products?q=7891234", headers=basic_headers)
        assert resp.get_json()["count"] == 1

    def test_pagination(self, client, basic_headers):
        for i in range(5):
            client.post("/api/products", json={"name": f"Item {i}"}, headers=basic_headers)

        resp = client.get("/api/products?page=2&per_page=2", headers=basic_headers)
        data = resp.get_json()
        assert data["count"] == 2
        assert data["pagination"]["total"] == 5
        assert data["pagination"]["total_pages"] == 3
        assert data["pagination"]["has_next"] is True
        assert data["pagination"]["has_prev"] is True

    @pytest.mark.parametrize("per_page", [-5, -1])
    def test_negative_per_page_is_clamped(self, client, basic_headers, product, per_page):
        resp = client.get(f"/api/products?page=1&per_page={per_page}", headers=basic_headers)
        assert resp.status_code == 200
        pagination = resp.get_json()["pagination"]
        assert pagination["per_page"] == 1
        assert pagination["total_pages"] == 1
        assert resp.get_json()["count"] == 1

    def test_low_stock(self, client, basic_headers, product):
        client.post(
            "/api/products",
            json={"name": "Cafe 500g", "quantity_on_hand": 2, "minimum_stock": 5},
            headers=basic_headers,
        )
        client.post(
            "/api/products",
            json={"name": "Leite 1L", "quantity_on_hand": 5, "minimum_stock": 5},
            headers=basic_headers,
        )

        resp = client.get("/api/products/low-stock", headers=basic_headers)
        assert resp.status_code == 200
        names = [p["name"] for p in resp.get_json()["items"]]
        assert names == ["Cafe 500g", "Leite 1L"]


class TestUpdateProduct:

    def test_update_details(self, client, basic_headers, product):
        resp = client.put(
            f"/api/products/{product.id}",
            json={"name": "Arroz Tipo 1 5kg", "unit_price_cents": 2799},
            headers=basic_headers,
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["name"] == "Arroz Tipo 1 5kg"
        assert data["quantity_on_hand"] == 10

    def test_quantity_not_writable(self, client, basic_headers, product):
        resp = client.put(
            f"/api/products/{product.id}",
            json={"quantity_on_hand": 999},
            headers=basic_headers,
        )
        assert resp.status_code == 400

        resp = client.get(f"/api/products/{product.id}", headers=basic_headers)
        assert resp.get_json()["quantity_on_hand"] == 10

    def test_update_missing(self, client, basic_headers):
        resp = client.put("/api/products/99999", json={"name": "Ghost"}, headers=basic_headers)
        assert resp.status_code == 404

    def test_update_bumps_version(self, client, basic_headers, product):
        before = client.get(f"/api/products/{product.id}", headers=basic_headers).get_json()["version_id"]
        client.put(f"/api/products/{product.id}", json={"description": "Long grain"}, headers=basic_headers)
        after = client.get(f"/api/products/{product.id}", headers=basic_headers).get_json()["version_id"]
        assert after == before + 1


class TestDeleteProduct:

    def test_delete_keeps_history(self, client, admin_headers, product, db_session):
        product_id = product.id
        client.post(
            "/api/movements",
            json={"product_id": product_id, "kind": "exit", "quantity": 2},
            headers=admin_headers,
        )

        resp = client.delete(f"/api/products/{product_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert db_session.get(Product, product_id) is None

        history = db_session.query(Movement).filter_by(product_id=product_id).all()
        assert len(history) == 1
        assert history[0].product_name == "Arroz 5kg"

    def test_delete_missing(self, client, admin_headers):
        resp = client.delete("/api/products/99999", headers=admin_headers)
        assert resp.status_code == 404


class TestProductService:

    def test_get_product_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.get_product(12345)

    def test_is_low_stock_at_minimum(self, db_session):
        p = Product(name="Agua", quantity_on_hand=3, minimum_stock=3)
        assert p.is_low_stock is True
