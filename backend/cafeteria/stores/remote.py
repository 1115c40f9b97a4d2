"""
Remote store: the external REST backend owns every entity.

Each method is one call (occasionally two) against the backend; payloads are
normalized into domain records at this boundary and nowhere else. The
backend performs the balance update and ledger append atomically, so this
store never computes balances itself.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from ..api_client import ApiClient, BackendError, SessionExpired, as_list
from ..domain.accounts import account_from_payload
from ..domain.catalog import Category, Product
from ..domain.ledger import LedgerEntry
from ..domain.menus import Menu, Reservation
from ..domain.orders import ORDER_CANCELLED, Order
from ..money import to_str
from ..services.auth_service import AuthError
from ..time_utils import to_utc_z
from ..validation import NotFoundError, ValidationError
from .base import CafeteriaStore

logger = logging.getLogger(__name__)


def _jsonable(data: dict) -> dict:
    """Decimals as strings, dates/datetimes as ISO strings."""
    out = {}
    for key, value in data.items():
        if isinstance(value, Decimal):
            out[key] = to_str(value)
        elif isinstance(value, datetime):
            out[key] = to_utc_z(value)
        elif isinstance(value, date):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


def _record(data, factory, label: str):
    if data is None:
        raise NotFoundError(f"{label} not found")
    return factory(data)


def _entry_or_none(data):
    """Parse a ledger row when the backend echoed one back."""
    if isinstance(data, dict):
        row = data.get("transaction") if isinstance(data.get("transaction"), dict) else data
        if row.get("transaction_type") or row.get("type"):
            try:
                return LedgerEntry.from_payload(row)
            except ValidationError:
                logger.debug("Backend ledger row not understood: %s", row)
    return None


class RemoteStore(CafeteriaStore):
    kind = "remote"

    def __init__(self, api: ApiClient):
        self.api = api

    def bind(self, token):
        return RemoteStore(self.api.with_token(token))

    def ping(self):
        self.api.get("/health")
        return {"backend_url": self.api.base_url}

    # =========================================================================
    # AUTH
    # =========================================================================

    def login(self, email, password, *, user_agent=None, ip_address=None):
        envelope = self.api.call("POST", "/auth/login", json={"email": email, "password": password})
        data = envelope.data if isinstance(envelope.data, dict) else {}
        token = envelope.token or data.get("token")
        inner = data.get("data") if isinstance(data.get("data"), dict) else data
        user = inner.get("user") if isinstance(inner.get("user"), dict) else None
        if not token:
            raise AuthError("The backend did not return a token")
        if user is None:
            raise AuthError("The backend did not return the user")
        return account_from_payload(user), token

    def current_account(self):
        if not self.api.token:
            return None
        try:
            data = self.api.get("/auth/me")
        except SessionExpired:
            return None
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        return account_from_payload(data) if data else None

    def logout(self):
        if self.api.token:
            self.api.post("/auth/logout")

    def request_password_reset(self, email):
        envelope = self.api.call("POST", "/auth/forgot-password", json={"email": email})
        return envelope.message or "If the email is registered, reset instructions have been sent"

    # =========================================================================
    # USERS
    # =========================================================================

    def list_accounts(self):
        return [account_from_payload(u) for u in as_list(self.api.get("/users"))]

    def get_account(self, user_id):
        return _record(self.api.get(f"/users/{user_id}"), account_from_payload, f"User {user_id}")

    def create_account(self, data):
        payload = _jsonable({
            "email": data["email"],
            "full_name": data["full_name"],
            "phone": data.get("phone"),
            "password": data["password"],
            "role": data["role"],
            "has_credit_account": data.get("has_credit_account", False),
            "credit_limit": data.get("credit_limit"),
        })
        return account_from_payload(self.api.post("/users", json=payload))

    def delete_account(self, user_id):
        self.api.delete(f"/users/{user_id}")

    def bulk_upload_accounts(self, filename, content):
        """Forward the CSV untouched; the backend parses and reports."""
        envelope = self.api.call(
            "POST",
            "/users/bulk-upload",
            files={"file": (filename, content, "text/csv")},
        )
        result = envelope.data if isinstance(envelope.data, dict) else {"data": envelope.data}
        if envelope.message:
            result.setdefault("message", envelope.message)
        return result

    def list_debtors(self):
        return [account_from_payload(u) for u in as_list(self.api.get("/credit/users-with-debt"))]

    # =========================================================================
    # CREDIT
    # =========================================================================

    def ledger_history(self, user_id, limit=None):
        params = {"limit": limit} if limit is not None else None
        rows = as_list(self.api.get(f"/credit/users/{user_id}/history", params=params))
        return [LedgerEntry.from_payload(row) for row in rows]

    def pending_credit_orders(self, user_id):
        rows = as_list(self.api.get(f"/credit/users/{user_id}/pending-orders"))
        return [Order.from_payload(row) for row in rows]

    def record_payment(self, user_id, draft, *, order_id=None, self_service=False):
        payload = _jsonable({
            "user_id": user_id,
            "amount": draft.amount,
            "payment_method": draft.payment_method,
            "notes": draft.reason,
        })
        if order_id is not None:
            payload["order_id"] = order_id
        return _entry_or_none(self.api.post("/credit/payments", json=payload))

    def post_adjustment(self, user_id, draft):
        payload = _jsonable({"amount": draft.amount, "reason": draft.reason or draft.description})
        return _entry_or_none(self.api.post(f"/credit/users/{user_id}/adjust", json=payload))

    def _account_after(self, user_id, data):
        if isinstance(data, dict) and ("user_id" in data or "id" in data):
            return account_from_payload(data)
        return self.get_account(user_id)

    def set_credit_limit(self, user_id, limit, *, actor_id=None, enforce_limit=True):
        data = self.api.put(f"/credit/users/{user_id}/limit", json={"credit_limit": to_str(limit)})
        return self._account_after(user_id, data)

    def enable_credit(self, user_id, limit, *, actor_id=None):
        data = self.api.post(f"/credit/users/{user_id}/enable", json={"credit_limit": to_str(limit)})
        return self._account_after(user_id, data)

    def disable_credit(self, user_id, *, actor_id=None):
        data = self.api.post(f"/credit/users/{user_id}/disable")
        return self._account_after(user_id, data)

    def statement_pdf(self, user_id, period):
        return self.api.get_bytes(f"/credit/users/{user_id}/report/pdf", params={"period": period})

    # =========================================================================
    # CATALOG
    # =========================================================================

    def list_categories(self, include_inactive=False):
        params = None if include_inactive else {"active_only": "true"}
        return [Category.from_payload(c) for c in as_list(self.api.get("/categories", params=params))]

    def create_category(self, data):
        return Category.from_payload(self.api.post("/categories", json=_jsonable(data)))

    def update_category(self, category_id, data):
        return Category.from_payload(self.api.put(f"/categories/{category_id}", json=_jsonable(data)))

    def delete_category(self, category_id):
        self.api.delete(f"/categories/{category_id}")

    def list_products(self, include_unavailable=False):
        params = None if include_unavailable else {"available": "true"}
        return [Product.from_payload(p) for p in as_list(self.api.get("/products", params=params))]

    def find_product(self, product_id):
        try:
            data = self.api.get(f"/products/{product_id}")
        except BackendError as exc:
            if exc.status_code == 404:
                return None
            raise
        return Product.from_payload(data) if data else None

    def create_product(self, data):
        return Product.from_payload(self.api.post("/products", json=_jsonable(data)))

    def update_product(self, product_id, data):
        return Product.from_payload(self.api.put(f"/products/{product_id}", json=_jsonable(data)))

    def delete_product(self, product_id):
        self.api.delete(f"/products/{product_id}")

    # =========================================================================
    # ORDERS
    # =========================================================================

    def place_order(self, draft, *, enforce_limit=True):
        payload = {
            "user_id": draft.user_id,
            "items": [{"product_id": line.product_id, "quantity": line.quantity} for line in draft.lines],
            "payment_method": draft.payment_method,
        }
        if draft.notes:
            payload["notes"] = draft.notes
        if draft.receipt_reference:
            payload["receipt_reference"] = draft.receipt_reference
        return Order.from_payload(self.api.post("/orders", json=payload))

    def list_orders(self, status=None):
        params = {"status": status} if status else None
        return [Order.from_payload(o) for o in as_list(self.api.get("/orders", params=params))]

    def user_orders(self, user_id):
        return [Order.from_payload(o) for o in as_list(self.api.get("/orders/my-orders"))]

    def get_order(self, order_id):
        return _record(self.api.get(f"/orders/{order_id}"), Order.from_payload, f"Order {order_id}")

    def update_order_status(self, order_id, status, *, reason=None, actor_id=None):
        if status == ORDER_CANCELLED:
            data = self.api.post(f"/orders/{order_id}/cancel", json={"reason": reason or ""})
            return Order.from_payload(data)
        payload = {"status": status}
        if reason:
            payload["cancellation_reason"] = reason
        return Order.from_payload(self.api.patch(f"/orders/{order_id}/status", json=payload))

    # =========================================================================
    # MENUS & RESERVATIONS
    # =========================================================================

    def list_menus(self):
        return [Menu.from_payload(m) for m in as_list(self.api.get("/weekly-menus"))]

    def active_menus(self):
        return [Menu.from_payload(m) for m in as_list(self.api.get("/weekly-menus/active"))]

    def get_menu(self, menu_id):
        return _record(self.api.get(f"/weekly-menus/{menu_id}"), Menu.from_payload, f"Menu {menu_id}")

    def create_menu(self, data):
        return Menu.from_payload(self.api.post("/weekly-menus", json=_jsonable(data)))

    def update_menu(self, menu_id, data):
        return Menu.from_payload(self.api.put(f"/weekly-menus/{menu_id}", json=_jsonable(data)))

    def delete_menu(self, menu_id):
        self.api.delete(f"/weekly-menus/{menu_id}")

    def reserve(self, draft):
        payload = {"quantity": draft.quantity}
        if draft.notes:
            payload["notes"] = draft.notes
        return Reservation.from_payload(self.api.post(f"/weekly-menus/{draft.menu_id}/reservations", json=payload))

    def user_reservations(self, user_id):
        return [Reservation.from_payload(r) for r in as_list(self.api.get("/reservations/my"))]

    def menu_reservations(self, menu_id):
        rows = as_list(self.api.get(f"/weekly-menus/{menu_id}/reservations"))
        return [Reservation.from_payload(r) for r in rows]

    def cancel_reservation(self, reservation_id, *, actor_id, is_admin=False, reason=None):
        payload = {"reason": reason} if reason else None
        return Reservation.from_payload(self.api.post(f"/reservations/{reservation_id}/cancel", json=payload))

    def update_reservation_status(self, reservation_id, status, *, reason=None):
        payload = {"status": status}
        if reason:
            payload["cancellation_reason"] = reason
        return Reservation.from_payload(self.api.patch(f"/reservations/{reservation_id}/status", json=payload))


