"""
Accounts, catalog administration, health and CLI.

Verifies:
- Login issues a working token; logout revokes it
- Admin user management (weak passwords, duplicates, soft delete)
- Catalog CRUD; sold products are hidden rather than deleted
- Health check, dashboard and the bootstrap commands
"""

import io

from cafeteria.extensions import db
from cafeteria.models import Product, User

from conftest import PASSWORD, auth_headers, balance_of


class TestAuth:

    def test_login_and_me(self, client, customer):
        resp = client.post("/api/auth/login", json={"email": "MARIA@estudiante.com ", "password": PASSWORD})
        assert resp.status_code == 200
        token = resp.get_json()["token"]

        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == "maria@estudiante.com"

    def test_wrong_password(self, client, customer):
        resp = client.post("/api/auth/login", json={"email": "maria@estudiante.com", "password": "nope12345"})
        assert resp.status_code == 401

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"email": "maria@estudiante.com"})
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, customer):
        headers = auth_headers(customer)
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_no_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Authentication required"

    def test_forgot_password_same_answer(self, client, customer):
        known = client.post("/api/auth/forgot-password", json={"email": "maria@estudiante.com"})
        unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@colegio.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.get_json() == unknown.get_json()


class TestUsers:

    def test_create_credit_user(self, client, admin_headers):
        resp = client.post("/api/users/", json={
            "email": "Luis@Estudiante.com",
            "full_name": "Luis Torres",
            "password": "Comedor2026",
            "credit_limit": "80.00",
        }, headers=admin_headers)
        assert resp.status_code == 201
        user = resp.get_json()["user"]
        assert user["email"] == "luis@estudiante.com"
        assert user["has_credit_account"] is True
        assert user["credit_limit"] == "80.00"
        assert user["current_balance"] == "0.00"

    def test_weak_password(self, client, admin_headers):
        resp = client.post("/api/users/", json={
            "email": "luis@estudiante.com", "full_name": "Luis", "password": "onlyletters",
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_duplicate_email(self, client, admin_headers, customer):
        resp = client.post("/api/users/", json={
            "email": "maria@estudiante.com", "full_name": "Otra María", "password": "Comedor2026",
        }, headers=admin_headers)
        assert resp.status_code == 409

    def test_customer_redirected(self, client, customer_headers):
        resp = client.get("/api/users/", headers=customer_headers)
        assert resp.status_code == 303

    def test_soft_delete(self, client, admin_headers, cash_customer):
        headers = auth_headers(cash_customer)
        resp = client.delete(f"/api/users/{cash_customer.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert db.session.get(User, cash_customer.id).account_status == "inactive"
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_delete_with_debt_refused(self, client, admin_headers, make_user):
        debtor = make_user("pedro@estudiante.com", credit_limit_cents=5000, balance_cents=-1000)
        resp = client.delete(f"/api/users/{debtor.id}", headers=admin_headers)
        assert resp.status_code == 409

    def test_cannot_delete_self(self, client, admin, admin_headers):
        resp = client.delete(f"/api/users/{admin.id}", headers=admin_headers)
        assert resp.status_code == 400

    def test_bulk_upload_needs_remote_backend(self, client, admin_headers):
        resp = client.post(
            "/api/users/bulk-upload",
            data={"file": (io.BytesIO(b"email,full_name\n"), "alumnos.csv")},
            content_type="multipart/form-data",
            headers=admin_headers,
        )
        assert resp.status_code == 501

    def test_bulk_upload_rejects_non_csv(self, client, admin_headers):
        resp = client.post(
            "/api/users/bulk-upload",
            data={"file": (io.BytesIO(b"x"), "alumnos.xlsx")},
            content_type="multipart/form-data",
            headers=admin_headers,
        )
        assert resp.status_code == 400


class TestCatalog:

    def test_category_and_product_crud(self, client, admin_headers, customer_headers):
        resp = client.post("/api/catalog/categories", json={"name": "bebidas", "display_order": 2},
                           headers=admin_headers)
        assert resp.status_code == 201
        category_id = resp.get_json()["category"]["category_id"]

        resp = client.post("/api/catalog/products", json={
            "name": "Chicha", "price": "2.50", "category_id": category_id, "stock_quantity": 20,
        }, headers=admin_headers)
        assert resp.status_code == 201
        product_id = resp.get_json()["product"]["product_id"]

        resp = client.put(f"/api/catalog/products/{product_id}", json={"price": "3.00"}, headers=admin_headers)
        assert resp.get_json()["product"]["price"] == "3.00"

        resp = client.get(f"/api/catalog/products?category_id={category_id}", headers=customer_headers)
        assert [p["name"] for p in resp.get_json()["products"]] == ["Chicha"]

        assert client.delete(f"/api/catalog/categories/{category_id}", headers=admin_headers).status_code == 409
        assert client.delete(f"/api/catalog/products/{product_id}", headers=admin_headers).status_code == 200
        assert client.delete(f"/api/catalog/categories/{category_id}", headers=admin_headers).status_code == 200

    def test_invalid_price(self, client, admin_headers):
        resp = client.post("/api/catalog/products", json={"name": "Gratis", "price": "-1"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_unavailable_hidden_from_customers(self, client, admin_headers, customer_headers, products):
        hidden = products["galletas"].id

        def names(resp):
            return {p["name"] for p in resp.get_json()["products"]}

        assert "Galletas" not in names(client.get("/api/catalog/products", headers=customer_headers))
        assert "Galletas" not in names(client.get(
            "/api/catalog/products?include_unavailable=true", headers=customer_headers))
        assert "Galletas" in names(client.get(
            "/api/catalog/products?include_unavailable=true", headers=admin_headers))
        assert client.get(f"/api/catalog/products/{hidden}", headers=customer_headers).status_code == 404

    def test_sold_product_is_hidden_not_deleted(self, client, admin_headers, cash_headers, products):
        jugo = products["jugo"].id
        resp = client.post("/api/orders/checkout", json={
            "payment_method": "cash",
            "items": [{"product_id": jugo, "quantity": 1}],
        }, headers=cash_headers)
        assert resp.status_code == 201

        assert client.delete(f"/api/catalog/products/{jugo}", headers=admin_headers).status_code == 200
        row = db.session.get(Product, jugo)
        db.session.refresh(row)
        assert row.is_available is False

    def test_customer_cannot_create(self, client, customer_headers):
        resp = client.post("/api/catalog/categories", json={"name": "x"}, headers=customer_headers)
        assert resp.status_code == 303


class TestSystem:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["store"]["store"] == "local"

    def test_dashboard_credit_block(self, client, customer_headers):
        resp = client.get("/api/dashboard", headers=customer_headers)
        assert resp.status_code == 200
        credit = resp.get_json()["credit"]
        assert credit["limit"] == "50.00"
        assert credit["available"] == "50.00"

    def test_dashboard_without_credit(self, client, cash_headers):
        body = client.get("/api/dashboard", headers=cash_headers).get_json()
        assert "credit" not in body
        assert body["recent_orders"] == []


class TestCommands:

    def test_init_seeds_and_verifies(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "PASS users: 4 created" in result.output

        maria = db.session.query(User).filter_by(email="maria@estudiante.com").one()
        assert balance_of(maria.id) == "-15.50"

        result = runner.invoke(args=["credit", "verify", "--user-id", str(maria.id)])
        assert result.exit_code == 0, result.output
        assert "balance -15.50" in result.output

        result = runner.invoke(args=["system", "init"])
        assert "PASS users: 0 created" in result.output

    def test_pay_command(self, app):
        runner = app.test_cli_runner()
        runner.invoke(args=["system", "init"])
        maria = db.session.query(User).filter_by(email="maria@estudiante.com").one()

        result = runner.invoke(args=["credit", "pay", "--user-id", str(maria.id), "--amount", "15.50"])
        assert result.exit_code == 0, result.output
        assert balance_of(maria.id) == "0.00"

        result = runner.invoke(args=["credit", "pay", "--user-id", str(maria.id), "--amount", "abc"])
        assert result.exit_code == 1
        assert "FAIL" in result.output
