# Overview: Cart handling and checkout; turns a cart into an order through the store.

"""
Checkout Service

WHY: Checkout is where money moves. The cart only carries product ids and
quantities; names and prices always come from the product records, never
from the client.

FLOW:
1. Validate cart and payment method (no writes yet)
2. Price the cart against current products (availability + stock)
3. For credit: account must be active, credit enabled, limit respected
4. Store creates the order, decrements stock and appends the ledger entry
   (credit_charge for credit, purchase audit row otherwise) in one unit
5. Cart is cleared only after the store succeeded
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from decimal import Decimal

from ..domain.accounts import Account
from ..domain.orders import VALID_PAYMENT_METHODS, OrderDraft, OrderLine
from ..money import ZERO, quantize
from ..validation import ValidationError, optional_text, parse_int, require_choice
from . import balance_service
from .balance_service import CreditError


class CheckoutError(Exception):
    """Raised when a cart cannot be turned into an order."""

    def __init__(self, message: str, details: list | None = None):
        super().__init__(message)
        self.details = details or []


MAX_LINE_QUANTITY = 99


@dataclass
class CartItem:
    product_id: str
    quantity: int
    name: str | None = None
    unit_price: Decimal | None = None

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "name": self.name,
            "unit_price": f"{self.unit_price:.2f}" if self.unit_price is not None else None,
        }


class Cart:
    """Product id -> quantity, in the order items were first added."""

    def __init__(self):
        self._items: dict[str, CartItem] = {}

    @classmethod
    def from_payload(cls, items) -> "Cart":
        if not isinstance(items, list):
            raise ValidationError("items must be a list")
        cart = cls()
        for raw in items:
            if not isinstance(raw, dict) or raw.get("product_id") in (None, ""):
                raise ValidationError("Each item needs a product_id")
            cart.add(str(raw["product_id"]), raw.get("quantity", 1))
        return cart

    def add(self, product_id: str, quantity=1, *, name: str | None = None, unit_price: Decimal | None = None) -> CartItem:
        quantity = parse_int(quantity, "quantity", minimum=1)
        item = self._items.get(product_id)
        if item is None:
            item = CartItem(product_id=product_id, quantity=0, name=name, unit_price=unit_price)
            self._items[product_id] = item
        if item.quantity + quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"quantity cannot exceed {MAX_LINE_QUANTITY}")
        item.quantity += quantity
        if name is not None:
            item.name = name
        if unit_price is not None:
            item.unit_price = unit_price
        return item

    def update_quantity(self, product_id: str, quantity) -> None:
        """Set the quantity; zero or less removes the item."""
        quantity = parse_int(quantity, "quantity")
        if quantity <= 0:
            self.remove(product_id)
            return
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"quantity cannot exceed {MAX_LINE_QUANTITY}")
        item = self._items.get(product_id)
        if item is None:
            raise ValidationError(f"Product {product_id} is not in the cart")
        item.quantity = quantity

    def remove(self, product_id: str) -> None:
        self._items.pop(product_id, None)

    def clear(self) -> None:
        self._items.clear()

    @property
    def items(self) -> list[CartItem]:
        return list(self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    @property
    def total(self) -> Decimal:
        """Display total from the prices captured when items were added."""
        return quantize(sum(
            ((item.unit_price or ZERO) * item.quantity for item in self._items.values()),
            ZERO,
        ))

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "item_count": self.item_count,
            "total": f"{self.total:.2f}",
        }


class CartRegistry:
    """Server-side carts, one per user, for clients that do not keep their own."""

    def __init__(self):
        self._lock = threading.Lock()
        self._carts: dict[str, Cart] = {}

    def get(self, user_id: str) -> Cart:
        with self._lock:
            return self._carts.setdefault(str(user_id), Cart())

    def discard(self, user_id: str) -> None:
        with self._lock:
            self._carts.pop(str(user_id), None)


def price_cart(account: Account, cart: Cart, products: dict, payment_method: str,
               notes: str | None = None, receipt_reference: str | None = None) -> OrderDraft:
    """
    Build an OrderDraft from current product records.

    products maps product_id -> Product (missing ids are unknown products).
    Stock problems are collected for every line before failing.
    """
    if cart.is_empty:
        raise CheckoutError("Cart is empty")

    lines = []
    stock_problems = []
    for item in cart.items:
        product = products.get(item.product_id)
        if product is None:
            raise CheckoutError(f"Product {item.product_id} not found")
        if not product.is_available:
            raise CheckoutError(f"{product.name} is not available")
        if item.quantity > product.stock_quantity:
            stock_problems.append({
                "product_id": product.product_id,
                "name": product.name,
                "requested": item.quantity,
                "available": product.stock_quantity,
            })
            continue
        lines.append(OrderLine(
            product_id=product.product_id,
            product_name=product.name,
            quantity=item.quantity,
            unit_price=product.price,
        ))

    if stock_problems:
        raise CheckoutError("Insufficient stock", details=stock_problems)

    draft = OrderDraft(
        user_id=account.user_id,
        lines=tuple(lines),
        payment_method=payment_method,
        notes=notes,
        receipt_reference=receipt_reference,
    )
    if draft.total <= ZERO:
        raise CheckoutError("Order total must be greater than zero")
    return draft


def checkout(store, account: Account, cart: Cart, payment_method, *,
             notes=None, receipt_reference=None, enforce_limit: bool = True):
    """
    Place an order for the cart.

    Returns the created Order. The cart is left untouched on any failure.
    """
    payment_method = require_choice(payment_method, "payment_method", VALID_PAYMENT_METHODS)
    notes = optional_text(notes, "notes", max_length=500)
    receipt_reference = optional_text(receipt_reference, "receipt_reference", max_length=255)

    if cart.is_empty:
        raise CheckoutError("Cart is empty")
    if not account.is_active:
        raise CheckoutError("Account is not active")

    products = {}
    for item in cart.items:
        product = store.find_product(item.product_id)
        if product is not None:
            products[product.product_id] = product

    draft = price_cart(account, cart, products, payment_method, notes, receipt_reference)

    if draft.is_credit_order:
        if not account.has_credit_account:
            raise CheckoutError("Credit is not enabled for this account")
        try:
            balance_service.debit_for_purchase(account, draft.total, enforce_limit=enforce_limit)
        except CreditError as exc:
            raise CheckoutError(str(exc))

    order = store.place_order(draft, enforce_limit=enforce_limit)
    cart.clear()
    return order
