"""
In-flight guard and carts.

Verifies:
- A second submission of the same action by the same user is refused
- Different users and different actions do not block each other
- Cart quantities accumulate, update and remove as expected
"""

from decimal import Decimal

import pytest

from cafeteria.services.checkout_service import Cart, CartRegistry
from cafeteria.services.concurrency import InFlightGuard
from cafeteria.stores import get_guard
from cafeteria.validation import ConflictError, ValidationError

from conftest import auth_headers


class TestInFlightGuard:

    def test_second_submission_refused(self):
        guard = InFlightGuard()
        with guard.hold("1", "checkout"):
            with pytest.raises(ConflictError):
                with guard.hold("1", "checkout"):
                    pass
        assert not guard.is_active("1", "checkout")

    def test_independent_keys(self):
        guard = InFlightGuard()
        with guard.hold("1", "checkout"):
            with guard.hold("2", "checkout"):
                with guard.hold("1", "payment"):
                    assert guard.is_active("1", "payment")

    def test_released_after_error(self):
        guard = InFlightGuard()
        with pytest.raises(RuntimeError):
            with guard.hold("1", "checkout"):
                raise RuntimeError("boom")
        assert not guard.is_active("1", "checkout")

    def test_route_returns_409_while_held(self, app, client, customer, products):
        headers = auth_headers(customer)
        with get_guard().hold(str(customer.id), "checkout"):
            resp = client.post("/api/orders/checkout", json={
                "payment_method": "cash",
                "items": [{"product_id": products["jugo"].id, "quantity": 1}],
            }, headers=headers)
        assert resp.status_code == 409


class TestCart:

    def test_quantities_accumulate(self):
        cart = Cart()
        cart.add("1", 2, name="Jugo", unit_price=Decimal("4.00"))
        cart.add("1", 1)
        assert cart.item_count == 3
        assert cart.total == Decimal("12.00")

    def test_update_to_zero_removes(self):
        cart = Cart()
        cart.add("1", 2)
        cart.update_quantity("1", 0)
        assert cart.is_empty

    def test_bad_quantity(self):
        with pytest.raises(ValidationError):
            Cart().add("1", "2.5")

    def test_from_payload_requires_product(self):
        with pytest.raises(ValidationError):
            Cart.from_payload([{"quantity": 1}])

    def test_registry_keeps_one_cart_per_user(self):
        registry = CartRegistry()
        registry.get("1").add("5", 1)
        assert registry.get("1").item_count == 1
        assert registry.get("2").is_empty
        registry.discard("1")
        assert registry.get("1").is_empty

    def test_cart_routes(self, client, customer, products):
        headers = auth_headers(customer)
        jugo = products["jugo"].id
        client.post("/api/cart/items", json={"product_id": jugo, "quantity": 2}, headers=headers)
        resp = client.patch(f"/api/cart/items/{jugo}", json={"quantity": 3}, headers=headers)
        assert resp.get_json()["cart"]["total"] == "12.00"
        resp = client.delete(f"/api/cart/items/{jugo}", headers=headers)
        assert resp.get_json()["cart"]["item_count"] == 0

    def test_unknown_product_rejected(self, client, customer, products):
        resp = client.post("/api/cart/items", json={"product_id": 999}, headers=auth_headers(customer))
        assert resp.status_code == 404
