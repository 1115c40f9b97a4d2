"""
Local store: the Flask-SQLAlchemy database owns every entity.

Used for demo/standalone mode and tests. Each balance mutation locks the
user row, applies the new balance and inserts the ledger row inside one
transaction (see services.concurrency.atomic); reservation counters are
handled the same way with the menu row.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..domain.accounts import ACCOUNT_ACTIVE, ACCOUNT_INACTIVE
from ..domain.menus import RES_CANCELLED, RES_CONFIRMED, RES_DELIVERED, RES_PENDING
from ..domain.orders import OPEN_PAY_STATUSES, ORDER_CANCELLED, ORDER_PENDING
from ..extensions import db
from ..models import (
    Category,
    CreditTransaction,
    MenuReservation,
    Order,
    OrderItem,
    Product,
    User,
    WeeklyMenu,
)
from ..money import ZERO, from_cents, to_cents
from ..reports import StatementGenerator
from ..services import (
    auth_service,
    balance_service,
    ledger_service,
    order_service,
    reservation_service,
    session_service,
)
from ..services.auth_service import AuthError
from ..services.balance_service import CreditError
from ..services.checkout_service import CheckoutError
from ..services.concurrency import atomic, lock_for_update
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError
from .base import CafeteriaStore, UnsupportedOperation

logger = logging.getLogger(__name__)

RESERVATION_TIMESTAMPS = {
    RES_CONFIRMED: "confirmed_at",
    RES_DELIVERED: "delivered_at",
    RES_CANCELLED: "cancelled_at",
}


def _pk(value, label: str) -> int:
    text = str(value).strip() if value is not None else ""
    if not text.isdigit():
        raise NotFoundError(f"{label} {value} not found")
    return int(text)


def _optional_pk(value):
    if value is None or not str(value).isdigit():
        return None
    return int(value)


class LocalStore(CafeteriaStore):
    kind = "local"

    def __init__(self, *, absolute_hours: int = 24, idle_hours: int = 2,
                 currency_symbol: str = "S/", token: str | None = None):
        self.absolute_hours = absolute_hours
        self.idle_hours = idle_hours
        self.currency_symbol = currency_symbol
        self.token = token

    def bind(self, token):
        return LocalStore(
            absolute_hours=self.absolute_hours,
            idle_hours=self.idle_hours,
            currency_symbol=self.currency_symbol,
            token=token,
        )

    def ping(self):
        return {"users": db.session.query(User).count(), "menus": db.session.query(WeeklyMenu).count()}

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def _user(self, user_id, *, lock: bool = False) -> User:
        query = db.session.query(User).filter_by(id=_pk(user_id, "User"))
        if lock:
            query = lock_for_update(query)
        user = query.first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _order(self, order_id, *, lock: bool = False) -> Order:
        query = db.session.query(Order).filter_by(id=_pk(order_id, "Order"))
        if lock:
            query = lock_for_update(query)
        order = query.first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def _menu(self, menu_id, *, lock: bool = False) -> WeeklyMenu:
        query = db.session.query(WeeklyMenu).filter_by(id=_pk(menu_id, "Menu"))
        if lock:
            query = lock_for_update(query)
        menu = query.first()
        if not menu:
            raise NotFoundError(f"Menu {menu_id} not found")
        return menu

    def _reservation(self, reservation_id, *, lock: bool = False) -> MenuReservation:
        query = db.session.query(MenuReservation).filter_by(id=_pk(reservation_id, "Reservation"))
        if lock:
            query = lock_for_update(query)
        reservation = query.first()
        if not reservation:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    def _category(self, category_id) -> Category:
        category = db.session.query(Category).filter_by(id=_pk(category_id, "Category")).first()
        if not category:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    def _product(self, product_id) -> Product:
        product = db.session.query(Product).filter_by(id=_pk(product_id, "Product")).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    # =========================================================================
    # LEDGER
    # =========================================================================

    def _append(self, user: User, draft) -> CreditTransaction:
        """
        Apply a draft to a (locked) user row and insert its ledger row.

        Must run inside atomic(); the balance and the entry commit together.
        """
        entry = ledger_service.post_draft(
            str(user.id),
            from_cents(user.current_balance_cents),
            draft,
        )
        if entry.affects_balance:
            user.current_balance_cents = to_cents(entry.balance)

        row = CreditTransaction(
            user_id=user.id,
            transaction_type=entry.kind,
            amount_cents=to_cents(entry.amount),
            balance_cents=to_cents(entry.balance),
            affects_balance=entry.affects_balance,
            description=entry.description,
            order_id=_optional_pk(entry.order_id),
            payment_method=entry.payment_method,
            created_by=_optional_pk(entry.created_by),
            created_at=entry.created_at,
        )
        db.session.add(row)
        db.session.flush()
        return row

    # =========================================================================
    # AUTH
    # =========================================================================

    def login(self, email, password, *, user_agent=None, ip_address=None):
        user = db.session.query(User).filter_by(email=(email or "").strip().lower()).first()
        if not user or not auth_service.verify_password(password, user.password_hash):
            raise AuthError("Invalid email or password")
        if user.account_status != ACCOUNT_ACTIVE:
            raise AuthError("Account is not active")

        _, token = session_service.create_session(
            user,
            absolute_hours=self.absolute_hours,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        return user.to_record(), token

    def current_account(self):
        user = session_service.validate_session(self.token, idle_hours=self.idle_hours)
        return user.to_record() if user else None

    def logout(self):
        session_service.revoke_session(self.token)

    def request_password_reset(self, email):
        user = db.session.query(User).filter_by(email=(email or "").strip().lower()).first()
        if user:
            logger.info("Password reset requested for user %s", user.id)
        # Same answer either way; do not reveal which emails exist
        return "If the email is registered, reset instructions have been sent"

    # =========================================================================
    # USERS
    # =========================================================================

    def list_accounts(self):
        users = db.session.query(User).order_by(User.full_name, User.id).all()
        return [u.to_record() for u in users]

    def get_account(self, user_id):
        return self._user(user_id).to_record()

    def create_account(self, data):
        if db.session.query(User).filter_by(email=data["email"]).first():
            raise ConflictError(f"A user with email {data['email']} already exists")
        user = User(
            email=data["email"],
            full_name=data["full_name"],
            phone=data.get("phone"),
            password_hash=auth_service.hash_password(data["password"]),
            role=data["role"],
            account_status=ACCOUNT_ACTIVE,
            has_credit_account=data.get("has_credit_account", False),
            current_balance_cents=0,
            credit_limit_cents=to_cents(data.get("credit_limit") or ZERO),
        )
        try:
            with atomic():
                db.session.add(user)
        except IntegrityError:
            raise ConflictError(f"A user with email {data['email']} already exists")
        return user.to_record()

    def delete_account(self, user_id):
        """
        Deactivate the account and revoke its sessions.

        Rows stay in place: orders and ledger entries keep pointing at them.
        """
        with atomic():
            user = self._user(user_id, lock=True)
            if user.current_balance_cents < 0:
                raise ConflictError("Cannot delete a user with outstanding debt")
            user.account_status = ACCOUNT_INACTIVE
            session_service.revoke_user_sessions(user.id, "User deleted")

    def bulk_upload_accounts(self, filename, content):
        raise UnsupportedOperation("Bulk upload is only available with the remote backend")

    def list_debtors(self):
        users = (
            db.session.query(User)
            .filter(User.has_credit_account.is_(True), User.current_balance_cents < 0)
            .order_by(User.current_balance_cents)
            .all()
        )
        return [u.to_record() for u in users]

    # =========================================================================
    # CREDIT
    # =========================================================================

    def ledger_history(self, user_id, limit=None):
        user = self._user(user_id)
        query = (
            db.session.query(CreditTransaction)
            .filter_by(user_id=user.id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [row.to_record() for row in query.all()]

    def _open_credit_orders(self, user_id: int, *, lock: bool = False):
        query = (
            db.session.query(Order)
            .filter(
                Order.user_id == user_id,
                Order.is_credit_order.is_(True),
                Order.status != ORDER_CANCELLED,
                Order.payment_status.in_(OPEN_PAY_STATUSES),
            )
            .order_by(Order.created_at, Order.id)
        )
        if lock:
            query = lock_for_update(query)
        return query.all()

    def pending_credit_orders(self, user_id):
        user = self._user(user_id)
        return [o.to_record() for o in self._open_credit_orders(user.id)]

    def record_payment(self, user_id, draft, *, order_id=None, self_service=False):
        with atomic():
            user = self._user(user_id, lock=True)
            balance_service.credit_for_payment(user.to_record(), draft.amount, self_service=self_service)

            if order_id is not None:
                candidates = [self._order(order_id, lock=True)]
                if candidates[0].user_id != user.id:
                    raise order_service.OrderError(f"Order {order_id} not found for this user")
            else:
                candidates = self._open_credit_orders(user.id, lock=True)
            by_id = {str(o.id): o for o in candidates}

            if candidates:
                allocations = order_service.allocate_payment(
                    [o.to_record() for o in candidates], draft.amount, order_id,
                )
                for allocation in allocations:
                    order = by_id[allocation.order_id]
                    order.credit_paid_cents = to_cents(allocation.credit_paid_amount)
                    order.payment_status = allocation.payment_status

            row = self._append(user, draft)
            entry = row.to_record()

        logger.info("Payment %s registered for user %s", draft.amount, user_id)
        return entry

    def post_adjustment(self, user_id, draft):
        with atomic():
            user = self._user(user_id, lock=True)
            balance_service.apply_adjustment(user.to_record(), draft.amount)
            entry = self._append(user, draft).to_record()
        return entry

    def set_credit_limit(self, user_id, limit, *, actor_id=None, enforce_limit=True):
        with atomic():
            user = self._user(user_id, lock=True)
            credit = balance_service.require_credit_line(user.to_record())
            if enforce_limit:
                balance_service.check_limit_covers_debt(credit, limit)
            user.credit_limit_cents = to_cents(limit)
            self._append(user, ledger_service.limit_change_draft(credit.limit, limit, created_by=actor_id))
            account = user.to_record()
        return account

    def enable_credit(self, user_id, limit, *, actor_id=None):
        with atomic():
            user = self._user(user_id, lock=True)
            if user.has_credit_account:
                raise ConflictError("Credit is already enabled for this account")
            user.has_credit_account = True
            user.credit_limit_cents = to_cents(limit)
            self._append(user, ledger_service.limit_change_draft(ZERO, limit, created_by=actor_id))
            account = user.to_record()
        return account

    def disable_credit(self, user_id, *, actor_id=None):
        with atomic():
            user = self._user(user_id, lock=True)
            if not user.has_credit_account:
                raise ConflictError("Credit is not enabled for this account")
            if user.current_balance_cents < 0:
                raise ConflictError("Cannot disable credit while the account has debt")
            old_limit = from_cents(user.credit_limit_cents)
            self._append(user, ledger_service.limit_change_draft(old_limit, ZERO, created_by=actor_id))
            user.has_credit_account = False
            user.credit_limit_cents = 0
            account = user.to_record()
        return account

    def statement_pdf(self, user_id, period):
        account = self.get_account(user_id)
        entries = ledger_service.filter_period(self.ledger_history(user_id), period)
        generator = StatementGenerator(self.currency_symbol)
        return generator.build(
            account,
            ledger_service.for_display(entries),
            ledger_service.totals(entries),
            period,
        )

    # =========================================================================
    # CATALOG
    # =========================================================================

    def list_categories(self, include_inactive=False):
        query = db.session.query(Category)
        if not include_inactive:
            query = query.filter(Category.is_active.is_(True))
        return [c.to_record() for c in query.order_by(Category.display_order, Category.name).all()]

    def create_category(self, data):
        if db.session.query(Category).filter_by(name=data["name"]).first():
            raise ConflictError(f"Category {data['name']} already exists")
        category = Category(**data)
        with atomic():
            db.session.add(category)
        return category.to_record()

    def update_category(self, category_id, data):
        with atomic():
            category = self._category(category_id)
            for key, value in data.items():
                setattr(category, key, value)
        return category.to_record()

    def delete_category(self, category_id):
        with atomic():
            category = self._category(category_id)
            if db.session.query(Product).filter_by(category_id=category.id).first():
                raise ConflictError("Category still has products")
            db.session.delete(category)

    def list_products(self, include_unavailable=False):
        query = db.session.query(Product)
        if not include_unavailable:
            query = query.filter(Product.is_available.is_(True))
        return [p.to_record() for p in query.order_by(Product.name, Product.id).all()]

    def find_product(self, product_id):
        pk = _optional_pk(product_id)
        if pk is None:
            return None
        product = db.session.query(Product).filter_by(id=pk).first()
        return product.to_record() if product else None

    def _product_fields(self, data) -> dict:
        fields = dict(data)
        if "price" in fields:
            fields["price_cents"] = to_cents(fields.pop("price"))
        if "category_id" in fields:
            category_id = fields["category_id"]
            fields["category_id"] = self._category(category_id).id if category_id is not None else None
        return fields

    def create_product(self, data):
        product = Product(**self._product_fields(data))
        with atomic():
            db.session.add(product)
        return product.to_record()

    def update_product(self, product_id, data):
        with atomic():
            product = self._product(product_id)
            for key, value in self._product_fields(data).items():
                setattr(product, key, value)
        return product.to_record()

    def delete_product(self, product_id):
        """Products already sold are only hidden; order lines reference them."""
        with atomic():
            product = self._product(product_id)
            if db.session.query(OrderItem).filter_by(product_id=product.id).first():
                product.is_available = False
            else:
                db.session.delete(product)

    # =========================================================================
    # ORDERS
    # =========================================================================

    def place_order(self, draft, *, enforce_limit=True):
        with atomic():
            user = self._user(draft.user_id, lock=True)
            account = user.to_record()
            if not account.is_active:
                raise CheckoutError("Account is not active")

            products = {}
            stock_problems = []
            for line in draft.lines:
                product = lock_for_update(
                    db.session.query(Product).filter_by(id=_pk(line.product_id, "Product"))
                ).first()
                if product is None or not product.is_available:
                    raise CheckoutError(f"{line.product_name or line.product_id} is not available")
                if product.stock_quantity < line.quantity:
                    stock_problems.append({
                        "product_id": str(product.id),
                        "name": product.name,
                        "requested": line.quantity,
                        "available": product.stock_quantity,
                    })
                products[line.product_id] = product
            if stock_problems:
                raise CheckoutError("Insufficient stock", details=stock_problems)

            if draft.is_credit_order:
                try:
                    balance_service.debit_for_purchase(account, draft.total, enforce_limit=enforce_limit)
                except CreditError as exc:
                    raise CheckoutError(str(exc))

            order = Order(
                user_id=user.id,
                total_cents=to_cents(draft.total),
                status=ORDER_PENDING,
                payment_method=draft.payment_method,
                payment_status=draft.payment_status,
                is_credit_order=draft.is_credit_order,
                credit_paid_cents=0,
                notes=draft.notes,
                receipt_reference=draft.receipt_reference,
            )
            db.session.add(order)
            db.session.flush()
            order.order_number = order_service.format_order_number(order.id)

            for line in draft.lines:
                db.session.add(OrderItem(
                    order_id=order.id,
                    product_id=products[line.product_id].id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price_cents=to_cents(line.unit_price),
                    subtotal_cents=to_cents(line.subtotal),
                ))
                products[line.product_id].stock_quantity -= line.quantity

            if draft.is_credit_order and account.balance > ZERO:
                # A prepaid balance settles the new charge up front
                settled = order_service.settle(order.to_record(), account.balance)
                order.credit_paid_cents = to_cents(settled.credit_paid_amount)
                order.payment_status = settled.payment_status

            if draft.is_credit_order:
                ledger_draft = ledger_service.credit_charge_draft(
                    draft.total,
                    order_id=str(order.id),
                    order_number=order.order_number,
                    created_by=account.user_id,
                )
            else:
                ledger_draft = ledger_service.purchase_draft(
                    draft.total,
                    draft.payment_method,
                    order_id=str(order.id),
                    order_number=order.order_number,
                    created_by=account.user_id,
                )
            self._append(user, ledger_draft)
            record = order.to_record()

        logger.info("Order %s placed by user %s (%s)", record.order_number, user.id, draft.payment_method)
        return record

    def list_orders(self, status=None):
        query = db.session.query(Order)
        if status:
            query = query.filter(Order.status == status)
        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
        return [o.to_record() for o in orders]

    def user_orders(self, user_id):
        user = self._user(user_id)
        orders = (
            db.session.query(Order)
            .filter_by(user_id=user.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
        return [o.to_record() for o in orders]

    def get_order(self, order_id):
        return self._order(order_id).to_record()

    def update_order_status(self, order_id, status, *, reason=None, actor_id=None):
        # User row before order row, the same order record_payment takes
        owner_id = self._order(order_id).user_id
        with atomic():
            user = self._user(owner_id, lock=True)
            order = self._order(order_id, lock=True)
            order_service.validate_transition(order.status, status)
            before = order.to_record()

            stamps = order_service.timestamps_for(status, utcnow(), {
                name: getattr(order, name)
                for name in ("confirmed_at", "ready_at", "delivered_at", "cancelled_at")
            })
            for name, value in stamps.items():
                setattr(order, name, value)
            order.status = status

            if status == ORDER_CANCELLED:
                order.cancellation_reason = reason
                for item in order.items:
                    product = db.session.query(Product).filter_by(id=item.product_id).first()
                    if product:
                        product.stock_quantity += item.quantity
                if before.is_credit_order:
                    self._append(user, ledger_service.adjustment_draft(
                        before.total_amount,
                        f"Order {order.order_number} cancelled",
                        created_by=actor_id,
                        order_id=str(order.id),
                    ))
            record = order.to_record()
        return record

    # =========================================================================
    # MENUS & RESERVATIONS
    # =========================================================================

    def _menu_fields(self, data) -> dict:
        fields = dict(data)
        if "price" in fields:
            fields["price_cents"] = to_cents(fields.pop("price"))
        return fields

    def list_menus(self):
        menus = db.session.query(WeeklyMenu).order_by(WeeklyMenu.menu_date.desc(), WeeklyMenu.id.desc()).all()
        return [m.to_record() for m in menus]

    def active_menus(self):
        today = utcnow().date()
        menus = (
            db.session.query(WeeklyMenu)
            .filter(WeeklyMenu.is_active.is_(True), WeeklyMenu.menu_date >= today)
            .order_by(WeeklyMenu.menu_date, WeeklyMenu.id)
            .all()
        )
        return [m.to_record() for m in menus]

    def get_menu(self, menu_id):
        return self._menu(menu_id).to_record()

    def create_menu(self, data):
        menu = WeeklyMenu(current_reservations=0, **self._menu_fields(data))
        with atomic():
            db.session.add(menu)
        return menu.to_record()

    def update_menu(self, menu_id, data):
        with atomic():
            menu = self._menu(menu_id, lock=True)
            fields = self._menu_fields(data)
            new_max = fields.get("max_reservations", menu.max_reservations)
            if new_max is not None and new_max < menu.current_reservations:
                raise ConflictError(
                    f"max_reservations cannot be below the {menu.current_reservations} existing reservations"
                )
            for key, value in fields.items():
                setattr(menu, key, value)
        return menu.to_record()

    def delete_menu(self, menu_id):
        with atomic():
            menu = self._menu(menu_id, lock=True)
            live = (
                db.session.query(MenuReservation)
                .filter(MenuReservation.menu_id == menu.id, MenuReservation.status != RES_CANCELLED)
                .first()
            )
            if live:
                raise ConflictError("Menu has active reservations")
            db.session.query(MenuReservation).filter_by(menu_id=menu.id).delete()
            db.session.delete(menu)

    def reserve(self, draft):
        try:
            with atomic():
                menu = self._menu(draft.menu_id, lock=True)
                user = self._user(draft.user_id)
                existing = (
                    db.session.query(MenuReservation)
                    .filter(
                        MenuReservation.menu_id == menu.id,
                        MenuReservation.user_id == user.id,
                        MenuReservation.status != RES_CANCELLED,
                    )
                    .first()
                )
                reservation_service.check_can_reserve(menu.to_record(), existing is not None)
                menu.current_reservations = reservation_service.increment(
                    menu.current_reservations, menu.max_reservations,
                )
                row = MenuReservation(
                    menu_id=menu.id,
                    user_id=user.id,
                    quantity=draft.quantity,
                    total_cents=to_cents(draft.total_amount),
                    status=RES_PENDING,
                    notes=draft.notes,
                )
                db.session.add(row)
                db.session.flush()
                record = row.to_record()
        except IntegrityError:
            raise ConflictError("You already have a reservation for this menu")
        return record

    def user_reservations(self, user_id):
        user = self._user(user_id)
        rows = (
            db.session.query(MenuReservation)
            .filter_by(user_id=user.id)
            .order_by(MenuReservation.reserved_at.desc(), MenuReservation.id.desc())
            .all()
        )
        return [r.to_record() for r in rows]

    def menu_reservations(self, menu_id):
        menu = self._menu(menu_id)
        rows = (
            db.session.query(MenuReservation)
            .filter_by(menu_id=menu.id)
            .order_by(MenuReservation.reserved_at, MenuReservation.id)
            .all()
        )
        return [r.to_record() for r in rows]

    def _move_reservation(self, row: MenuReservation, target: str, reason=None) -> None:
        menu = self._menu(row.menu_id, lock=True)
        if reservation_service.releases_spot(row.status, target):
            menu.current_reservations = reservation_service.decrement(menu.current_reservations)
        stamp = RESERVATION_TIMESTAMPS.get(target)
        if stamp and getattr(row, stamp) is None:
            setattr(row, stamp, utcnow())
        if target == RES_CANCELLED:
            row.cancellation_reason = reason
        row.status = target

    def cancel_reservation(self, reservation_id, *, actor_id, is_admin=False, reason=None):
        with atomic():
            row = self._reservation(reservation_id, lock=True)
            reservation_service.validate_transition(
                row.to_record(), RES_CANCELLED, is_admin=is_admin, actor_id=actor_id,
            )
            self._move_reservation(row, RES_CANCELLED, reason)
            record = row.to_record()
        return record

    def update_reservation_status(self, reservation_id, status, *, reason=None):
        with atomic():
            row = self._reservation(reservation_id, lock=True)
            reservation_service.validate_transition(row.to_record(), status, is_admin=True)
            self._move_reservation(row, status, reason)
            record = row.to_record()
        return record
