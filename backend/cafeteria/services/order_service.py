# Overview: Order lifecycle and repayment allocation rules.

"""
Order Lifecycle

    pending -> confirmed -> preparing -> ready -> delivered

Moves are forward-only (steps may be skipped, e.g. pending -> ready), and an
order can be cancelled from any state before delivery. Delivered and
cancelled orders are final. Each milestone timestamp is stamped once, the
first time the order reaches it.

Repayments reduce what credit orders still owe. A payment registered against
a specific order settles that order; otherwise it is spread oldest-first
across the user's open credit orders.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..domain.orders import (
    ORDER_CANCELLED,
    ORDER_CONFIRMED,
    ORDER_DELIVERED,
    ORDER_FLOW,
    ORDER_READY,
    PAY_STATUS_PAID,
    PAY_STATUS_PARTIAL,
    VALID_ORDER_STATUSES,
    Order,
)
from ..money import ZERO, quantize
from ..validation import ValidationError


class OrderError(Exception):
    """Raised for invalid order operations."""
    pass


FINAL_ORDER_STATUSES = [ORDER_DELIVERED, ORDER_CANCELLED]

# Timestamp column stamped when an order first reaches a status
STATUS_TIMESTAMPS = {
    ORDER_CONFIRMED: "confirmed_at",
    ORDER_READY: "ready_at",
    ORDER_DELIVERED: "delivered_at",
    ORDER_CANCELLED: "cancelled_at",
}


def format_order_number(order_id: int) -> str:
    return f"ORD-{int(order_id):06d}"


def validate_status(status) -> str:
    if status not in VALID_ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of {list(VALID_ORDER_STATUSES)}")
    return status


def validate_transition(current: str, target: str) -> None:
    validate_status(target)
    if current in FINAL_ORDER_STATUSES:
        raise OrderError(f"Order is already {current}")
    if target == current:
        raise OrderError(f"Order is already {current}")
    if target == ORDER_CANCELLED:
        return
    if ORDER_FLOW.index(target) < ORDER_FLOW.index(current):
        raise OrderError(f"Cannot move order from {current} back to {target}")


def timestamps_for(target: str, now: datetime, existing: dict) -> dict:
    """
    Timestamp fields to set when moving to target.

    Skipped milestones on the way (e.g. confirmed when jumping straight to
    ready) are stamped too; nothing already stamped is overwritten.
    """
    updates = {}
    if target == ORDER_CANCELLED:
        names = ["cancelled_at"]
    else:
        reached = ORDER_FLOW[: ORDER_FLOW.index(target) + 1]
        names = [STATUS_TIMESTAMPS[s] for s in reached if s in STATUS_TIMESTAMPS]
    for name in names:
        if existing.get(name) is None:
            updates[name] = now
    return updates


@dataclass(frozen=True)
class Allocation:
    order_id: str
    applied: Decimal
    credit_paid_amount: Decimal
    payment_status: str


def settle(order: Order, amount: Decimal) -> Allocation:
    applied = min(amount, order.outstanding)
    paid = quantize(order.credit_paid_amount + applied)
    status = PAY_STATUS_PAID if paid >= order.total_amount else PAY_STATUS_PARTIAL
    return Allocation(order.order_id, quantize(applied), paid, status)


def allocate_payment(orders, amount: Decimal, order_id: str | None = None) -> list[Allocation]:
    """
    Spread a repayment over open credit orders.

    With order_id the whole amount targets that order (anything beyond what it
    owes stays on the balance as credit). Without it, orders are settled
    oldest-first until the amount runs out.
    """
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")

    open_orders = [o for o in orders if o.is_pending_credit]

    if order_id is not None:
        target = next((o for o in orders if str(o.order_id) == str(order_id)), None)
        if target is None:
            raise OrderError(f"Order {order_id} not found for this user")
        if not target.is_pending_credit:
            raise OrderError(f"Order {target.order_number or order_id} has nothing left to pay")
        return [settle(target, amount)]

    allocations = []
    remaining = amount
    for order in sorted(open_orders, key=lambda o: (o.created_at or datetime.min, int(o.order_id) if str(o.order_id).isdigit() else 0)):
        if remaining <= ZERO:
            break
        allocation = settle(order, remaining)
        allocations.append(allocation)
        remaining = quantize(remaining - allocation.applied)
    return allocations
