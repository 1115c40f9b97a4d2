"""
Remote store against a mocked backend.

Verifies:
- {success, data, token, ...} envelopes are unwrapped
- Bearer tokens are forwarded
- 401 / other errors / network failures map to SessionExpired /
  BackendError / BackendUnavailable, and to 401 / 502 / 503 at the API
"""

import json
from decimal import Decimal

import httpx
import pytest

from cafeteria import create_app
from cafeteria.api_client import ApiClient, BackendError, BackendUnavailable, SessionExpired
from cafeteria.services import ledger_service
from cafeteria.stores.remote import RemoteStore

BASE_URL = "http://backend.test/api"

MARIA = {
    "id": 2,
    "full_name": "María García",
    "email": "maria@estudiante.com",
    "role": "customer",
    "has_credit_account": True,
    "current_balance": "-15.50",
    "credit_limit": "100.00",
}

ADMIN = {"id": 1, "full_name": "Admin", "email": "admin@colegio.com", "role": "admin"}


class Backend:
    """Route table for httpx.MockTransport; records every request."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"success": False, "message": "Not found"})
        result = self.routes[key]
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(request)
        status, body = result
        return httpx.Response(status, json=body)


def _store(routes, token="tok-123"):
    backend = Backend(routes)
    api = ApiClient(BASE_URL, timeout=1.0, transport=httpx.MockTransport(backend))
    return RemoteStore(api).bind(token), backend


class TestEnvelope:

    def test_account_unwrapped(self):
        store, backend = _store({("GET", "/api/users/2"): (200, {"success": True, "data": MARIA})})
        account = store.get_account("2")
        assert account.user_id == "2"
        assert account.balance == Decimal("-15.50")
        assert backend.requests[0].headers["Authorization"] == "Bearer tok-123"

    def test_bare_list(self):
        store, _ = _store({("GET", "/api/credit/users-with-debt"): (200, [
            {"user_id": 2, "full_name": "María", "debt": 15.5, "credit_limit": 100},
        ])})
        accounts = store.list_debtors()
        assert accounts[0].credit.debt == Decimal("15.50")

    def test_login_reads_token_from_envelope(self):
        store, _ = _store({("POST", "/api/auth/login"): (200, {
            "success": True, "token": "abc", "data": {"user": MARIA},
        })}, token=None)
        account, token = store.login("maria@estudiante.com", "Cafeteria123")
        assert token == "abc"
        assert account.full_name == "María García"

    def test_history_rows_normalized(self):
        store, _ = _store({("GET", "/api/credit/users/2/history"): (200, {"success": True, "data": [
            {"history_id": 9, "user_id": 2, "transaction_type": "fiado", "amount": "20.00",
             "balance_before": "0.00", "balance_after": "-20.00", "description": "Compra",
             "created_at": "2026-10-19T12:00:00Z"},
        ]})})
        entries = store.ledger_history("2", 10)
        assert entries[0].kind == "credit_charge"
        assert entries[0].amount == Decimal("-20.00")

    def test_payment_body(self):
        def echo(request):
            body = json.loads(request.content)
            assert body == {"user_id": "2", "amount": "20.00", "payment_method": "cash", "notes": "Cuota"}
            return httpx.Response(201, json={"success": True, "message": "Payment registered"})

        store, _ = _store({("POST", "/api/credit/payments"): echo})
        draft = ledger_service.payment_draft(Decimal("20.00"), "cash", notes="Cuota")
        assert store.record_payment("2", draft) is None

    def test_cancel_uses_cancel_endpoint(self):
        def cancel(request):
            assert json.loads(request.content) == {"reason": "Sin stock"}
            return httpx.Response(200, json={"success": True, "data": {
                "id": 7, "user_id": 2, "order_number": "ORD-000007", "status": "cancelled",
                "total_amount": "8.00", "payment_method": "credit", "is_credit_order": True,
            }})

        store, backend = _store({("POST", "/api/orders/7/cancel"): cancel})
        order = store.update_order_status("7", "cancelled", reason="Sin stock")
        assert order.status == "cancelled"
        assert [r.method for r in backend.requests] == ["POST"]

    def test_other_statuses_patch(self):
        def patch(request):
            assert json.loads(request.content) == {"status": "ready"}
            return httpx.Response(200, json={"success": True, "data": {"id": 7, "status": "ready"}})

        store, _ = _store({("PATCH", "/api/orders/7/status"): patch})
        assert store.update_order_status("7", "ready").status == "ready"


class TestFailures:

    def test_401_is_session_expired(self):
        store, _ = _store({("GET", "/api/users/2"): (401, {"success": False, "message": "Token expired"})})
        with pytest.raises(SessionExpired):
            store.get_account("2")

    def test_current_account_none_on_401(self):
        store, _ = _store({("GET", "/api/auth/me"): (401, {"message": "Token expired"})})
        assert store.current_account() is None

    def test_backend_error_keeps_message(self):
        store, _ = _store({("POST", "/api/credit/users/2/adjust"): (500, {"success": False, "message": "DB down"})})
        draft = ledger_service.adjustment_draft(Decimal("5.00"), "fix")
        with pytest.raises(BackendError) as exc:
            store.post_adjustment("2", draft)
        assert exc.value.status_code == 500
        assert exc.value.message == "DB down"

    def test_success_false_is_error(self):
        store, _ = _store({("GET", "/api/users"): (200, {"success": False, "message": "Nope"})})
        with pytest.raises(BackendError):
            store.list_accounts()

    def test_timeout_is_unavailable(self):
        store, _ = _store({("GET", "/api/weekly-menus"): httpx.ReadTimeout("slow")})
        with pytest.raises(BackendUnavailable):
            store.list_menus()

    def test_missing_product_is_none(self):
        store, _ = _store({})
        assert store.find_product("42") is None


class TestRemoteApp:

    def _client(self, routes):
        backend = Backend(routes)
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'CAFETERIA_STORE': 'remote',
            'CAFETERIA_API_URL': BASE_URL,
            'CAFETERIA_API_TRANSPORT': httpx.MockTransport(backend),
        })
        return app.test_client(), backend

    def test_me_forwards_token(self):
        client, backend = self._client({("GET", "/api/auth/me"): (200, {"success": True, "data": MARIA})})
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer tok-1"})
        assert resp.status_code == 200
        assert resp.get_json()["user"]["current_balance"] == "-15.50"
        assert backend.requests[0].headers["Authorization"] == "Bearer tok-1"

    def test_expired_token_is_401(self):
        client, _ = self._client({("GET", "/api/auth/me"): (401, {"message": "expired"})})
        resp = client.get("/api/credit/debtors", headers={"Authorization": "Bearer old"})
        assert resp.status_code == 401

    def test_unreachable_backend_is_503(self):
        client, _ = self._client({("GET", "/api/auth/me"): httpx.ConnectError("refused")})
        resp = client.get("/api/dashboard", headers={"Authorization": "Bearer tok"})
        assert resp.status_code == 503

    def test_backend_failure_is_502(self):
        client, _ = self._client({
            ("GET", "/api/auth/me"): (200, {"success": True, "data": ADMIN}),
            ("GET", "/api/credit/users-with-debt"): (500, {"success": False, "message": "boom"}),
        })
        resp = client.get("/api/credit/debtors", headers={"Authorization": "Bearer tok"})
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "boom"
