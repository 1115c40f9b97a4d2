"""
Credit console routes.

Verifies:
- Payments credit the balance and append one payment entry
- Invalid amounts and missing reasons are rejected before any write
- Non-admin callers of admin actions are redirected to the dashboard
- History is newest first and honours the limit
- Credit can be enabled, limited and disabled under the debt rules
- Statements come back as PDF documents
"""

from decimal import Decimal

import pytest

from cafeteria.extensions import db
from cafeteria.models import CreditTransaction, User
from cafeteria.services.balance_service import CreditError

from conftest import auth_headers, balance_of


@pytest.fixture
def debtor(make_user):
    """Credit customer owing 20.00 of a 50.00 limit."""
    return make_user("pedro@estudiante.com", full_name="Pedro López", credit_limit_cents=5000, balance_cents=-2000)


def _entries(user_id):
    return db.session.query(CreditTransaction).filter_by(user_id=user_id).all()


class TestPayments:

    def test_payment_clears_debt(self, client, admin_headers, debtor):
        resp = client.post("/api/credit/payments", json={
            "user_id": debtor.id, "amount": "20.00", "payment_method": "cash",
        }, headers=admin_headers)
        assert resp.status_code == 201, resp.get_json()

        body = resp.get_json()
        assert body["new_balance"] == "0.00"
        assert body["transaction"]["type"] == "payment"
        assert body["transaction"]["amount"] == "20.00"
        assert balance_of(debtor.id) == "0.00"
        assert len(_entries(debtor.id)) == 1

    def test_partial_payment(self, client, admin_headers, debtor):
        resp = client.post("/api/credit/payments", json={
            "user_id": debtor.id, "amount": 7.5, "payment_method": "yape", "notes": "Pago parcial",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert balance_of(debtor.id) == "-12.50"
        assert "Pago parcial" in _entries(debtor.id)[0].description

    @pytest.mark.parametrize("amount", ["abc", "0", "-5", "", None])
    def test_invalid_amount_writes_nothing(self, client, admin_headers, debtor, amount):
        resp = client.post("/api/credit/payments", json={
            "user_id": debtor.id, "amount": amount, "payment_method": "cash",
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert balance_of(debtor.id) == "-20.00"
        assert _entries(debtor.id) == []

    def test_invalid_method(self, client, admin_headers, debtor):
        resp = client.post("/api/credit/payments", json={
            "user_id": debtor.id, "amount": "5.00", "payment_method": "cheque",
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_user(self, client, admin_headers):
        resp = client.post("/api/credit/payments", json={
            "user_id": 999, "amount": "5.00", "payment_method": "cash",
        }, headers=admin_headers)
        assert resp.status_code == 404

    def test_non_admin_redirected(self, client, debtor):
        resp = client.post("/api/credit/payments", json={
            "user_id": debtor.id, "amount": "20.00", "payment_method": "cash",
        }, headers=auth_headers(debtor))
        assert resp.status_code == 303
        assert resp.headers["Location"].endswith("/api/dashboard")
        assert balance_of(debtor.id) == "-20.00"

    def test_self_payment(self, client, debtor):
        resp = client.post("/api/credit/my-payments", json={"amount": "5.00", "payment_method": "card"},
                           headers=auth_headers(debtor))
        assert resp.status_code == 201
        assert balance_of(debtor.id) == "-15.00"

    def test_self_payment_cannot_exceed_debt(self, client, debtor):
        resp = client.post("/api/credit/my-payments", json={"amount": "25.00", "payment_method": "card"},
                           headers=auth_headers(debtor))
        assert resp.status_code == 400
        assert balance_of(debtor.id) == "-20.00"


class TestAdjustments:

    def test_reason_required(self, client, admin_headers, debtor):
        resp = client.post(f"/api/credit/users/{debtor.id}/adjust", json={"amount": "5.00"},
                           headers=admin_headers)
        assert resp.status_code == 400
        assert balance_of(debtor.id) == "-20.00"

    def test_zero_rejected(self, client, admin_headers, debtor):
        resp = client.post(f"/api/credit/users/{debtor.id}/adjust", json={"amount": "0", "reason": "x"},
                           headers=admin_headers)
        assert resp.status_code == 400

    def test_adjustment_applied(self, client, admin_headers, debtor):
        resp = client.post(f"/api/credit/users/{debtor.id}/adjust",
                           json={"amount": "-2.50", "reason": "Recargo"}, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["transaction"]["type"] == "adjustment"
        assert balance_of(debtor.id) == "-22.50"


class TestHistory:

    def test_newest_first_and_limited(self, client, admin_headers, debtor):
        for amount in ("1.00", "2.00", "3.00"):
            client.post("/api/credit/payments", json={
                "user_id": debtor.id, "amount": amount, "payment_method": "cash",
            }, headers=admin_headers)

        resp = client.get(f"/api/credit/users/{debtor.id}/history?limit=2", headers=admin_headers)
        assert resp.status_code == 200
        entries = resp.get_json()["transactions"]
        assert [e["amount"] for e in entries] == ["3.00", "2.00"]
        assert entries[0]["balance"] == "-14.00"

    def test_bad_limit(self, client, admin_headers, debtor):
        resp = client.get(f"/api/credit/users/{debtor.id}/history?limit=abc", headers=admin_headers)
        assert resp.status_code == 400

    def test_other_customer_denied(self, client, customer_headers, debtor):
        resp = client.get(f"/api/credit/users/{debtor.id}/history", headers=customer_headers)
        assert resp.status_code == 403


class TestCreditLine:

    def test_debtors_sorted(self, client, admin_headers, debtor, make_user):
        make_user("big@estudiante.com", credit_limit_cents=10000, balance_cents=-4500)
        resp = client.get("/api/credit/debtors", headers=admin_headers)
        body = resp.get_json()
        assert [u["debt"] for u in body["users"]] == ["45.00", "20.00"]
        assert body["total_debt"] == "65.00"

    def test_enable_with_default_limit(self, client, admin_headers, cash_customer):
        resp = client.post(f"/api/credit/users/{cash_customer.id}/enable", headers=admin_headers)
        assert resp.status_code == 200
        user = resp.get_json()["user"]
        assert user["has_credit_account"] is True
        assert user["credit_limit"] == "100.00"
        assert user["current_balance"] == "0.00"

    def test_enable_twice_conflicts(self, client, admin_headers, customer):
        resp = client.post(f"/api/credit/users/{customer.id}/enable", headers=admin_headers)
        assert resp.status_code == 409

    def test_disable_with_debt_conflicts(self, client, admin_headers, debtor):
        resp = client.post(f"/api/credit/users/{debtor.id}/disable", headers=admin_headers)
        assert resp.status_code == 409

    def test_disable_without_debt(self, client, admin_headers, customer):
        resp = client.post(f"/api/credit/users/{customer.id}/disable", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["has_credit_account"] is False

    def test_limit_below_debt_rejected(self, client, admin_headers, debtor):
        resp = client.put(f"/api/credit/users/{debtor.id}/limit", json={"credit_limit": "10.00"},
                          headers=admin_headers)
        assert resp.status_code == 400

    def test_store_rechecks_limit_against_locked_row(self, store, debtor):
        with pytest.raises(CreditError):
            store.set_credit_limit(str(debtor.id), Decimal("10.00"))
        assert db.session.get(User, debtor.id).credit_limit_cents == 5000
        assert _entries(debtor.id) == []

        account = store.set_credit_limit(str(debtor.id), Decimal("10.00"), enforce_limit=False)
        assert account.credit.limit == Decimal("10.00")

    def test_limit_change_logged(self, client, admin_headers, debtor):
        resp = client.put(f"/api/credit/users/{debtor.id}/limit", json={"credit_limit": "80.00"},
                          headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["credit_limit"] == "80.00"
        entry = _entries(debtor.id)[0]
        assert entry.transaction_type == "limit_change"
        assert entry.amount_cents == 0
        assert balance_of(debtor.id) == "-20.00"


class TestStatementAndVerify:

    def test_pdf_statement(self, client, admin_headers, debtor):
        resp = client.get(f"/api/credit/users/{debtor.id}/report?period=monthly", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")

    def test_bad_period(self, client, admin_headers, debtor):
        resp = client.get(f"/api/credit/users/{debtor.id}/report?period=yearly", headers=admin_headers)
        assert resp.status_code == 400

    def test_verify_after_activity(self, client, admin_headers, customer, customer_headers, products):
        client.post("/api/orders/checkout", json={
            "payment_method": "credit",
            "items": [{"product_id": products["almuerzo"].id, "quantity": 2}],
        }, headers=customer_headers)
        client.post("/api/credit/payments", json={
            "user_id": customer.id, "amount": "10.00", "payment_method": "cash",
        }, headers=admin_headers)

        resp = client.get(f"/api/credit/users/{customer.id}/verify", headers=admin_headers)
        body = resp.get_json()
        assert body["ok"] is True
        assert body["entries"] == 2
        assert body["ledger_balance"] == "-14.00"
