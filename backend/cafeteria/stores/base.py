"""
Store interface.

Route handlers never talk to the database or the backend API directly; they
get a store from ``get_store()`` and call these methods. Two implementations
exist: LocalStore (Flask-SQLAlchemy, the database owns everything) and
RemoteStore (the external REST backend owns everything).

Inputs are already validated by the service layer. Monetary values are
Decimal; ids are strings. Methods raise NotFoundError / ConflictError from
``cafeteria.validation`` or the service error classes; the remote store can
additionally raise the ApiClient errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class UnsupportedOperation(Exception):
    """Raised when a store has no way to perform an action."""
    pass


class CafeteriaStore(ABC):
    kind = "abstract"

    def bind(self, token: str | None) -> "CafeteriaStore":
        """Return a store acting on behalf of the bearer of token."""
        return self

    @abstractmethod
    def ping(self) -> dict:
        """Cheap reachability check; returns details for the health endpoint."""

    # -- auth ---------------------------------------------------------------

    @abstractmethod
    def login(self, email: str, password: str, *, user_agent=None, ip_address=None):
        """Return (Account, token) or raise AuthError."""

    @abstractmethod
    def current_account(self):
        """Account of the bound token, or None if the token is not valid."""

    @abstractmethod
    def logout(self) -> None:
        ...

    @abstractmethod
    def request_password_reset(self, email: str) -> str:
        ...

    # -- users --------------------------------------------------------------

    @abstractmethod
    def list_accounts(self):
        ...

    @abstractmethod
    def get_account(self, user_id: str):
        ...

    @abstractmethod
    def create_account(self, data: dict):
        ...

    @abstractmethod
    def delete_account(self, user_id: str) -> None:
        ...

    @abstractmethod
    def bulk_upload_accounts(self, filename: str, content: bytes) -> dict:
        ...

    @abstractmethod
    def list_debtors(self):
        ...

    # -- credit -------------------------------------------------------------

    @abstractmethod
    def ledger_history(self, user_id: str, limit: int | None = None):
        """Ledger entries, newest first, at most limit of them."""

    @abstractmethod
    def pending_credit_orders(self, user_id: str):
        ...

    @abstractmethod
    def record_payment(self, user_id: str, draft, *, order_id=None, self_service: bool = False):
        """Credit the balance, append the payment entry, settle orders."""

    @abstractmethod
    def post_adjustment(self, user_id: str, draft):
        ...

    @abstractmethod
    def set_credit_limit(self, user_id: str, limit, *, actor_id=None, enforce_limit: bool = True):
        ...

    @abstractmethod
    def enable_credit(self, user_id: str, limit, *, actor_id=None):
        ...

    @abstractmethod
    def disable_credit(self, user_id: str, *, actor_id=None):
        ...

    @abstractmethod
    def statement_pdf(self, user_id: str, period: str) -> bytes:
        ...

    # -- catalog ------------------------------------------------------------

    @abstractmethod
    def list_categories(self, include_inactive: bool = False):
        ...

    @abstractmethod
    def create_category(self, data: dict):
        ...

    @abstractmethod
    def update_category(self, category_id: str, data: dict):
        ...

    @abstractmethod
    def delete_category(self, category_id: str) -> None:
        ...

    @abstractmethod
    def list_products(self, include_unavailable: bool = False):
        ...

    @abstractmethod
    def find_product(self, product_id: str):
        """Product or None."""

    @abstractmethod
    def create_product(self, data: dict):
        ...

    @abstractmethod
    def update_product(self, product_id: str, data: dict):
        ...

    @abstractmethod
    def delete_product(self, product_id: str) -> None:
        ...

    # -- orders -------------------------------------------------------------

    @abstractmethod
    def place_order(self, draft, *, enforce_limit: bool = True):
        ...

    @abstractmethod
    def list_orders(self, status: str | None = None):
        ...

    @abstractmethod
    def user_orders(self, user_id: str):
        ...

    @abstractmethod
    def get_order(self, order_id: str):
        ...

    @abstractmethod
    def update_order_status(self, order_id: str, status: str, *, reason=None, actor_id=None):
        ...

    # -- menus & reservations -----------------------------------------------

    @abstractmethod
    def list_menus(self):
        ...

    @abstractmethod
    def active_menus(self):
        ...

    @abstractmethod
    def get_menu(self, menu_id: str):
        ...

    @abstractmethod
    def create_menu(self, data: dict):
        ...

    @abstractmethod
    def update_menu(self, menu_id: str, data: dict):
        ...

    @abstractmethod
    def delete_menu(self, menu_id: str) -> None:
        ...

    @abstractmethod
    def reserve(self, draft):
        ...

    @abstractmethod
    def user_reservations(self, user_id: str):
        ...

    @abstractmethod
    def menu_reservations(self, menu_id: str):
        ...

    @abstractmethod
    def cancel_reservation(self, reservation_id: str, *, actor_id: str, is_admin: bool = False, reason=None):
        ...

    @abstractmethod
    def update_reservation_status(self, reservation_id: str, status: str, *, reason=None):
        """Admin override."""
