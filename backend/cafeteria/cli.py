# Overview: Flask CLI command groups for bootstrap and credit inspection (local store).

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables and seed demo users, catalog and the week's menus (idempotent).
#
# Users:
# - python -m flask users list
#   List accounts with role, status and credit balance.
#
# Credit:
# - python -m flask credit debtors
#   Accounts with outstanding debt, largest first.
# - python -m flask credit history --user-id 2 --limit 20
#   Ledger entries for one account, newest first.
# - python -m flask credit pay --user-id 2 --amount 15.50 --method cash
#   Register a repayment on behalf of the first admin account.
# - python -m flask credit verify --user-id 2
#   Re-check the balance chain of an account.

from datetime import datetime, time, timedelta
from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext

from .domain.accounts import ROLE_ADMIN
from .extensions import db
from .models import User, WeeklyMenu
from .money import format_currency
from .services import credit_service, ledger_service
from .services.balance_service import CreditError
from .services.order_service import OrderError
from .stores.local import LocalStore
from .time_utils import utcnow
from .validation import NotFoundError, ValidationError

DEMO_PASSWORD = "Cafeteria123"

DEMO_USERS = [
    # email, full name, role, credit limit (None = no credit), opening balance
    ("admin@colegio.com", "Admin", "admin", None, None),
    ("maria@estudiante.com", "María García", "customer", Decimal("100.00"), Decimal("-15.50")),
    ("pedro@estudiante.com", "Pedro López", "customer", Decimal("50.00"), None),
    ("ana@profesor.com", "Prof. Ana Martínez", "customer", None, None),
]

DEMO_CATEGORIES = [
    ("almuerzos", "Platos de fondo", 1),
    ("bebidas", "Jugos y gaseosas", 2),
    ("snacks", "Para el recreo", 3),
    ("postres", "Dulces y postres", 4),
]

DEMO_PRODUCTS = [
    ("Almuerzo Ejecutivo", "Plato del día con guarnición, ensalada y refresco", "12.00", "almuerzos", 50),
    ("Hamburguesa Clásica", "Hamburguesa de carne con papas fritas", "8.50", "almuerzos", 30),
    ("Jugo Natural", "Jugo de frutas natural (varios sabores)", "3.00", "bebidas", 100),
    ("Gaseosa Personal", "Gaseosa de 500ml", "2.50", "bebidas", 80),
    ("Galletas", "Paquete de galletas variadas", "1.50", "snacks", 120),
    ("Chocolate", "Barra de chocolate", "2.00", "snacks", 90),
    ("Gelatina", "Gelatina de sabores", "2.50", "postres", 40),
    ("Arroz con Pollo", "Arroz con pollo, ensalada y papa", "10.00", "almuerzos", 35),
]

DEMO_MENUS = [
    # entry, main course, drink, dessert, price
    ("Arroz blanco y papas fritas", "Lomo Saltado", "Chicha morada", "Mazamorra morada", "12.00"),
    ("Arroz blanco y papa sancochada", "Ají de Gallina", "Refresco de maracuyá", "Arroz con leche", "12.00"),
    ("Ensalada y arroz integral", "Pollo a la Plancha", "Limonada", "Fruta de temporada", "11.00"),
    ("Pollo al horno", "Tallarines Rojos", "Chicha morada", "Gelatina", "10.00"),
    ("Arroz y yuca frita", "Pescado Frito", "Refresco de piña", "Suspiro limeño", "13.00"),
]


def _local_store() -> LocalStore:
    return LocalStore(currency_symbol=current_app.config.get("CURRENCY_SYMBOL", "S/"))


def seed_demo_data(store: LocalStore) -> dict:
    """Insert demo accounts, catalog and menus that are not there yet."""
    created = {"users": 0, "categories": 0, "products": 0, "menus": 0}

    admin_id = None
    for email, full_name, role, limit, opening in DEMO_USERS:
        existing = db.session.query(User).filter_by(email=email).first()
        if existing:
            if role == ROLE_ADMIN and admin_id is None:
                admin_id = str(existing.id)
            continue
        account = store.create_account({
            "email": email,
            "full_name": full_name,
            "phone": None,
            "password": DEMO_PASSWORD,
            "role": role,
            "has_credit_account": limit is not None,
            "credit_limit": limit,
        })
        created["users"] += 1
        if role == ROLE_ADMIN and admin_id is None:
            admin_id = account.user_id
        if opening is not None:
            store.post_adjustment(
                account.user_id,
                ledger_service.adjustment_draft(opening, "Opening balance", created_by=admin_id),
            )

    categories = {c.name: c.category_id for c in store.list_categories(include_inactive=True)}
    for name, description, order in DEMO_CATEGORIES:
        if name not in categories:
            category = store.create_category({"name": name, "description": description, "display_order": order})
            categories[name] = category.category_id
            created["categories"] += 1

    product_names = {p.name for p in store.list_products(include_unavailable=True)}
    for name, description, price, category, stock in DEMO_PRODUCTS:
        if name in product_names:
            continue
        store.create_product({
            "name": name,
            "description": description,
            "price": Decimal(price),
            "category_id": categories[category],
            "stock_quantity": stock,
            "min_stock_level": 10,
        })
        created["products"] += 1

    # Next five weekdays, reservations close at 10:00 UTC on the day
    if not db.session.query(WeeklyMenu).first():
        day = utcnow().date() + timedelta(days=1)
        menus = iter(DEMO_MENUS)
        while created["menus"] < len(DEMO_MENUS):
            if day.weekday() < 5:
                entry, main, drink, dessert, price = next(menus)
                store.create_menu({
                    "menu_date": day,
                    "entry_description": entry,
                    "main_course_description": main,
                    "drink_description": drink,
                    "dessert_description": dessert,
                    "price": Decimal(price),
                    "max_reservations": 30,
                    "reservation_deadline": datetime.combine(day, time(10, 0)),
                })
                created["menus"] += 1
            day += timedelta(days=1)

    return created


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and seed demo data.

    Demo accounts (password "Cafeteria123"):
    - admin@colegio.com     admin
    - maria@estudiante.com  credit, limit 100.00, owes 15.50
    - pedro@estudiante.com  credit, limit 50.00
    - ana@profesor.com      no credit
    """
    click.echo("START Initializing cafeteria database...")
    db.create_all()
    created = seed_demo_data(_local_store())
    for key, count in created.items():
        click.echo(f"PASS {key}: {count} created")
    click.echo(f"\nDemo password for every account: {DEMO_PASSWORD} (CHANGE IN PRODUCTION!)")


@click.group('users')
def users_group():
    """User inspection commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    store = _local_store()
    for account in store.list_accounts():
        credit = "no credit"
        if account.credit:
            credit = f"balance {format_currency(account.credit.balance)} / limit {format_currency(account.credit.limit)}"
        click.echo(
            f"{account.user_id:>4}  {account.email:<28} {account.role:<9} {account.account_status:<10} {credit}"
        )


@click.group('credit')
def credit_group():
    """Credit account inspection and repayments."""


@credit_group.command('debtors')
@with_appcontext
def list_debtors():
    accounts = credit_service.debtors(_local_store())
    if not accounts:
        click.echo("No outstanding debt.")
        return
    for account in accounts:
        click.echo(
            f"{account.user_id:>4}  {account.full_name:<28} owes {format_currency(account.credit.debt)}"
            f" ({account.credit.usage_percent}% of limit)"
        )


@credit_group.command('history')
@click.option('--user-id', required=True, help='Account id')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def show_history(user_id, limit):
    for entry in credit_service.history(_local_store(), user_id, limit):
        stamp = entry.created_at.strftime('%Y-%m-%d %H:%M') if entry.created_at else "-"
        click.echo(
            f"{stamp}  {entry.kind:<13} {format_currency(entry.amount):>12} "
            f"-> {format_currency(entry.balance):>12}  {entry.description}"
        )


@credit_group.command('pay')
@click.option('--user-id', required=True, help='Account id')
@click.option('--amount', required=True, help='Amount paid, e.g. 15.50')
@click.option('--method', default='cash', show_default=True,
              type=click.Choice(['cash', 'card', 'transfer', 'yape', 'plin']))
@click.option('--order-id', default=None, help='Apply the payment to this order')
@with_appcontext
def pay(user_id, amount, method, order_id):
    store = _local_store()
    admin = db.session.query(User).filter_by(role=ROLE_ADMIN).order_by(User.id).first()
    if not admin:
        click.echo("FAIL No admin account. Run 'python -m flask system init' first.")
        raise SystemExit(1)
    try:
        entry, account = credit_service.register_payment(store, admin.to_record(), {
            "user_id": user_id,
            "amount": amount,
            "payment_method": method,
            "order_id": order_id,
        })
    except (ValidationError, NotFoundError, CreditError, OrderError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {entry.description}: {format_currency(entry.amount)}")
    click.echo(f"     New balance: {format_currency(account.balance)}")


@credit_group.command('verify')
@click.option('--user-id', required=True, help='Account id')
@with_appcontext
def verify(user_id):
    result = credit_service.verify_account(_local_store(), user_id)
    if result["ok"]:
        click.echo(f"PASS {result['entries']} entries, balance {result['ledger_balance']}")
    else:
        click.echo(f"FAIL {result['error']}")
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(credit_group)
