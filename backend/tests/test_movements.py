# Overview: Pytest coverage for the stock movement ledger.

"""
Stock Movement Ledger Tests

Covers:
- Entry/exit arithmetic on quantity_on_hand
- Insufficient stock leaves product and ledger untouched
- Quantity and kind validation
- History filters (product, kind, date range)
"""

from datetime import timedelta

import pytest

from stockroom.models import Movement, Product
from stockroom.services import movement_service
from stockroom.validation import InsufficientStockError, ValidationError, NotFoundError, MAX_QUANTITY
from stockroom.time_utils import utcnow


def _move(client, headers, product_id, kind, quantity, **extra):
    payload = {"product_id": product_id, "kind": kind, "quantity": quantity}
    payload.update(extra)
    return client.post("/api/movements", json=payload, headers=headers)


class TestRecordMovement:

    def test_entry_then_exit(self, client, basic_headers, product, db_session):
        product_id = product.id

        resp = _move(client, basic_headers, product_id, "entry", 5, note="Supplier delivery")
        assert resp.status_code == 201
        assert resp.get_json()["product"]["quantity_on_hand"] == 15

        resp = _move(client, basic_headers, product_id, "exit", 3)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["product"]["quantity_on_hand"] == 12
        assert data["movement"]["kind"] == "exit"
        assert data["movement"]["quantity"] == 3
        assert data["movement"]["product_name"] == "Arroz 5kg"
        assert data["movement"]["actor_name"] == "Maria Silva"

        resp = client.get(f"/api/movements?product_id={product_id}", headers=basic_headers)
        items = resp.get_json()["items"]
        assert [(m["kind"], m["quantity"]) for m in items] == [("entry", 5), ("exit", 3)]
        assert items[0]["note"] == "Supplier delivery"

    def test_exit_to_zero(self, client, basic_headers, product):
        resp = _move(client, basic_headers, product.id, "exit", 10)
        assert resp.status_code == 201
        assert resp.get_json()["product"]["quantity_on_hand"] == 0

    def test_insufficient_stock_is_a_no_op(self, client, basic_headers, product, db_session):
        product_id = product.id

        resp = _move(client, basic_headers, product_id, "exit", 11)
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["requested"] == 11
        assert data["available"] == 10

        assert db_session.get(Product, product_id).quantity_on_hand == 10
        assert db_session.query(Movement).count() == 0

    @pytest.mark.parametrize("quantity", [0, -1, 2.5, "abc", "1e3", True, None])
    def test_invalid_quantity(self, client, basic_headers, product, quantity):
        resp = _move(client, basic_headers, product.id, "entry", quantity)
        assert resp.status_code == 400

    def test_numeric_string_quantity_accepted(self, client, basic_headers, product):
        resp = _move(client, basic_headers, product.id, "entry", "4")
        assert resp.status_code == 201
        assert resp.get_json()["product"]["quantity_on_hand"] == 14

    @pytest.mark.parametrize("kind", ["transfer", "", None, "ENTRY"])
    def test_invalid_kind(self, client, basic_headers, product, kind):
        resp = _move(client, basic_headers, product.id, kind, 1)
        assert resp.status_code == 400

    def test_missing_product(self, client, basic_headers, seed):
        resp = _move(client, basic_headers, 99999, "entry", 1)
        assert resp.status_code == 404

    def test_missing_product_checked_before_quantity(self, client, basic_headers, seed):
        resp = _move(client, basic_headers, 99999, "entry", -3)
        assert resp.status_code == 404

    @pytest.mark.parametrize("product_id", [None, "1", 1.0])
    def test_bad_product_id(self, client, basic_headers, seed, product_id):
        resp = _move(client, basic_headers, product_id, "entry", 1)
        assert resp.status_code == 400

    def test_note_too_long(self, client, basic_headers, product):
        resp = _move(client, basic_headers, product.id, "entry", 1, note="x" * 300)
        assert resp.status_code == 400

    @pytest.mark.parametrize("kind", ["entry", "exit"])
    def test_huge_quantity_rejected(self, client, basic_headers, product, db_session, kind):
        resp = _move(client, basic_headers, product.id, kind, 10**19)
        assert resp.status_code == 400
        assert "cannot exceed" in resp.get_json()["error"]
        assert db_session.query(Movement).count() == 0

    def test_entry_cannot_push_stock_past_ceiling(self, client, basic_headers, product, db_session):
        product_id = product.id
        resp = _move(client, basic_headers, product_id, "entry", MAX_QUANTITY)
        assert resp.status_code == 400

        assert db_session.get(Product, product_id).quantity_on_hand == 10
        assert db_session.query(Movement).count() == 0


class TestMovementHistory:

    def test_filters(self, client, basic_headers, product):
        other = client.post(
            "/api/products", json={"name": "Oleo 900ml", "quantity_on_hand": 5}, headers=basic_headers
        ).get_json()

        _move(client, basic_headers, product.id, "entry", 2)
        _move(client, basic_headers, product.id, "exit", 1)
        _move(client, basic_headers, other["id"], "exit", 1)

        resp = client.get("/api/movements", headers=basic_headers)
        assert resp.get_json()["count"] == 3

        resp = client.get("/api/movements?kind=exit", headers=basic_headers)
        assert resp.get_json()["count"] == 2

        resp = client.get(f"/api/movements?kind=exit&product_id={other['id']}", headers=basic_headers)
        items = resp.get_json()["items"]
        assert len(items) == 1
        assert items[0]["product_name"] == "Oleo 900ml"

    def test_date_range(self, client, basic_headers, product):
        _move(client, basic_headers, product.id, "entry", 1)

        today = utcnow().date()
        tomorrow = today + timedelta(days=1)
        yesterday = today - timedelta(days=1)

        resp = client.get(f"/api/movements?from={today.isoformat()}&to={today.isoformat()}", headers=basic_headers)
        assert resp.get_json()["count"] == 1

        resp = client.get(f"/api/movements?from={tomorrow.isoformat()}", headers=basic_headers)
        assert resp.get_json()["count"] == 0

        resp = client.get(f"/api/movements?to={yesterday.isoformat()}", headers=basic_headers)
        assert resp.get_json()["count"] == 0

    def test_bad_date(self, client, basic_headers, seed):
        resp = client.get("/api/movements?from=yesterday", headers=basic_headers)
        assert resp.status_code == 400

    def test_bad_kind_filter(self, client, basic_headers, seed):
        resp = client.get("/api/movements?kind=transfer", headers=basic_headers)
        assert resp.status_code == 400


class TestMovementService:

    def test_record_entry(self, app, product):
        movement, updated = movement_service.record_movement(
            product_id=product.id, kind="entry", quantity=5, actor_name="Tester"
        )
        assert updated.quantity_on_hand == 15
        assert movement.id is not None
        assert movement.actor_name == "Tester"

    def test_insufficient_stock_raises(self, app, product):
        with pytest.raises(InsufficientStockError) as exc:
            movement_service.record_movement(
                product_id=product.id, kind="exit", quantity=50, actor_name="Tester"
            )
        assert exc.value.available == 10
        assert product.quantity_on_hand == 10

    def test_missing_product_raises(self, app, db_session):
        with pytest.raises(NotFoundError):
            movement_service.record_movement(
                product_id=4242, kind="entry", quantity=1, actor_name="Tester"
            )

    def test_invalid_kind_raises(self, app, product):
        with pytest.raises(ValidationError):
            movement_service.record_movement(
                product_id=product.id, kind="adjust", quantity=1, actor_name="Tester"
            )
