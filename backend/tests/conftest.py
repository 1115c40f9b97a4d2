"""
Pytest fixtures for the cafeteria backend tests.

Provides an in-memory database per test, demo accounts (admin, credit
customer, cash-only customer), a small catalog, a capped menu and
authentication helpers.
"""

from datetime import datetime, timedelta

import pytest

from cafeteria import create_app
from cafeteria.extensions import db
from cafeteria.models import Category, Product, User, WeeklyMenu
from cafeteria.services import session_service
from cafeteria.services.auth_service import hash_password
from cafeteria.stores.local import LocalStore
from cafeteria.time_utils import utcnow

PASSWORD = "Cafeteria123"


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared password once."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CAFETERIA_STORE': 'local',
        'CREDIT_LIMIT_ENFORCED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def store(app):
    return LocalStore()


@pytest.fixture(scope='function')
def make_user(app, password_hash):
    """Factory: make_user(email, role=..., credit_limit_cents=..., balance_cents=...)."""
    def _make(email, *, full_name=None, role="customer", credit_limit_cents=None, balance_cents=0):
        user = User(
            email=email,
            full_name=full_name or email.split("@")[0].title(),
            password_hash=password_hash,
            role=role,
            account_status="active",
            has_credit_account=credit_limit_cents is not None,
            credit_limit_cents=credit_limit_cents or 0,
            current_balance_cents=balance_cents,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user("admin@colegio.com", full_name="Admin", role="admin")


@pytest.fixture(scope='function')
def customer(make_user):
    """Credit customer, limit 50.00, no debt."""
    return make_user("maria@estudiante.com", full_name="María García", credit_limit_cents=5000)


@pytest.fixture(scope='function')
def cash_customer(make_user):
    """Customer without a credit account."""
    return make_user("ana@profesor.com", full_name="Ana Martínez")


def auth_headers(user) -> dict:
    _, token = session_service.create_session(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture(scope='function')
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture(scope='function')
def cash_headers(cash_customer):
    return auth_headers(cash_customer)


@pytest.fixture(scope='function')
def products(app):
    """Almuerzo 12.00 (stock 10), Jugo 4.00 (stock 5), Galletas 1.50 (unavailable)."""
    category = Category(name="almuerzos", display_order=1, is_active=True)
    db.session.add(category)
    db.session.flush()
    rows = {
        "almuerzo": Product(name="Almuerzo", price_cents=1200, stock_quantity=10, category_id=category.id),
        "jugo": Product(name="Jugo", price_cents=400, stock_quantity=5, category_id=category.id),
        "galletas": Product(name="Galletas", price_cents=150, stock_quantity=50, is_available=False),
    }
    db.session.add_all(rows.values())
    db.session.commit()
    return rows


@pytest.fixture(scope='function')
def menu(app):
    """Tomorrow's menu with a single reservation spot."""
    tomorrow = utcnow().date() + timedelta(days=1)
    row = WeeklyMenu(
        menu_date=tomorrow,
        entry_description="Ensalada",
        main_course_description="Lomo Saltado",
        drink_description="Chicha morada",
        dessert_description="Mazamorra",
        price_cents=1200,
        max_reservations=1,
        current_reservations=0,
        reservation_deadline=datetime.combine(tomorrow, datetime.min.time()) + timedelta(hours=10),
        is_active=True,
    )
    db.session.add(row)
    db.session.commit()
    return row


def balance_of(user_id) -> str:
    user = db.session.get(User, int(user_id))
    db.session.refresh(user)
    return f"{user.current_balance_cents / 100:.2f}"
