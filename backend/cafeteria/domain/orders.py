"""Order records and the order/payment vocabularies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..money import ZERO, parse_amount, quantize, to_str
from ..time_utils import parse_iso_datetime, to_utc_z
from ..validation import ValidationError

# =============================================================================
# ORDER STATUS (CONSTANTS)
# =============================================================================

ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
ORDER_PREPARING = "preparing"
ORDER_READY = "ready"
ORDER_DELIVERED = "delivered"
ORDER_CANCELLED = "cancelled"

# Forward-only progression; cancellation is allowed from any step before delivery
ORDER_FLOW = (
    ORDER_PENDING,
    ORDER_CONFIRMED,
    ORDER_PREPARING,
    ORDER_READY,
    ORDER_DELIVERED,
)
VALID_ORDER_STATUSES = ORDER_FLOW + (ORDER_CANCELLED,)

# =============================================================================
# PAYMENT METHODS / STATUS (CONSTANTS)
# =============================================================================

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_CREDIT = "credit"
PAYMENT_YAPE_PLIN = "yape_plin"

VALID_PAYMENT_METHODS = (
    PAYMENT_CASH,
    PAYMENT_CARD,
    PAYMENT_CREDIT,
    PAYMENT_YAPE_PLIN,
)

# Methods accepted when a tab is repaid
VALID_REPAYMENT_METHODS = ("cash", "card", "transfer", "yape", "plin")

PAY_STATUS_PENDING = "pending"
PAY_STATUS_PAID = "paid"
PAY_STATUS_PARTIAL = "partial"
PAY_STATUS_OVERDUE = "overdue"

OPEN_PAY_STATUSES = (PAY_STATUS_PENDING, PAY_STATUS_PARTIAL, PAY_STATUS_OVERDUE)


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return quantize(self.unit_price * self.quantity)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": to_str(self.unit_price),
            "subtotal": to_str(self.subtotal),
        }

    @classmethod
    def from_payload(cls, payload) -> "OrderLine":
        return cls(
            product_id=str(payload.get("product_id")),
            product_name=payload.get("product_name") or payload.get("name") or "",
            quantity=int(payload.get("quantity") or 0),
            unit_price=parse_amount(payload.get("unit_price", payload.get("price")), "unit_price"),
        )


@dataclass(frozen=True)
class OrderDraft:
    """An order as priced at checkout, before the store assigns ids."""
    user_id: str
    lines: tuple
    payment_method: str
    notes: str | None = None
    receipt_reference: str | None = None

    @property
    def total(self) -> Decimal:
        return quantize(sum((line.subtotal for line in self.lines), ZERO))

    @property
    def is_credit_order(self) -> bool:
        return self.payment_method == PAYMENT_CREDIT

    @property
    def payment_status(self) -> str:
        return PAY_STATUS_PENDING if self.is_credit_order else PAY_STATUS_PAID


@dataclass(frozen=True)
class Order:
    order_id: str
    user_id: str
    order_number: str
    total_amount: Decimal
    status: str
    payment_method: str
    payment_status: str
    is_credit_order: bool = False
    credit_paid_amount: Decimal = ZERO
    lines: tuple = field(default_factory=tuple)
    notes: str | None = None
    cancellation_reason: str | None = None
    customer_name: str | None = None
    created_at: datetime | None = None
    confirmed_at: datetime | None = None
    ready_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def outstanding(self) -> Decimal:
        """Unpaid part of a credit order (zero for everything else)."""
        if not self.is_credit_order or self.status == ORDER_CANCELLED:
            return ZERO
        return max(ZERO, quantize(self.total_amount - self.credit_paid_amount))

    @property
    def is_pending_credit(self) -> bool:
        return self.outstanding > ZERO and self.payment_status in OPEN_PAY_STATUSES

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "user_id": self.user_id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "items": [line.to_dict() for line in self.lines],
            "total_amount": to_str(self.total_amount),
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "is_credit_order": self.is_credit_order,
            "credit_paid_amount": to_str(self.credit_paid_amount),
            "outstanding_amount": to_str(self.outstanding),
            "notes": self.notes,
            "cancellation_reason": self.cancellation_reason,
            "created_at": to_utc_z(self.created_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "ready_at": to_utc_z(self.ready_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }

    @classmethod
    def from_payload(cls, payload) -> "Order":
        if not isinstance(payload, dict) or payload.get("order_id", payload.get("id")) is None:
            raise ValidationError("Malformed order payload")
        items = payload.get("items") or []
        return cls(
            order_id=str(payload.get("order_id", payload.get("id"))),
            user_id=str(payload.get("user_id", "")),
            order_number=payload.get("order_number") or "",
            total_amount=parse_amount(payload.get("total_amount", 0), "total_amount"),
            status=payload.get("status") or ORDER_PENDING,
            payment_method=payload.get("payment_method") or "",
            payment_status=payload.get("payment_status") or PAY_STATUS_PENDING,
            is_credit_order=bool(payload.get("is_credit_order", False)),
            credit_paid_amount=parse_amount(payload.get("credit_paid_amount") or 0, "credit_paid_amount"),
            lines=tuple(OrderLine.from_payload(item) for item in items),
            notes=payload.get("notes"),
            cancellation_reason=payload.get("cancellation_reason"),
            customer_name=payload.get("customer_name"),
            created_at=parse_iso_datetime(payload.get("created_at")),
            confirmed_at=parse_iso_datetime(payload.get("confirmed_at")),
            ready_at=parse_iso_datetime(payload.get("ready_at")),
            delivered_at=parse_iso_datetime(payload.get("delivered_at")),
            cancelled_at=parse_iso_datetime(payload.get("cancelled_at")),
        )
