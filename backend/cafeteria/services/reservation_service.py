# Overview: Weekly-menu reservation rules; capacity, eligibility and status moves.

"""
Menu Reservation Capacity

A menu may cap its reservations (max_reservations) or leave them unlimited
(NULL). current_reservations counts live (non-cancelled) reservations:
creating one adds 1, cancelling one subtracts 1 (never below zero), so the
counter stays within [0, max_reservations].

Status machine:
    pending -> confirmed -> delivered   (final)
    pending/confirmed -> cancelled      (final)

Admins may force any non-final reservation to any status. Customers may only
cancel their own reservation while it is still pending.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..domain.menus import (
    RES_CANCELLED,
    RES_PENDING,
    VALID_RESERVATION_STATUSES,
    Menu,
    Reservation,
    ReservationDraft,
)
from ..money import ZERO, quantize
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, parse_int


class ReservationError(Exception):
    """Raised when a reservation cannot be created or moved."""
    pass


DEMAND_UNLIMITED = "unlimited"
DEMAND_AVAILABLE = "available"
DEMAND_FULL = "full"

MAX_RESERVATION_QUANTITY = 10


def can_reserve_flag(menu: Menu, now: datetime | None = None) -> bool:
    """Open for reservations: active and before the deadline (if any)."""
    if menu.backend_can_reserve is False:
        return False
    if not menu.is_active:
        return False
    if menu.reservation_deadline is None:
        return True
    return (now or utcnow()) <= menu.reservation_deadline


def has_capacity(menu: Menu) -> bool:
    return menu.max_reservations is None or menu.current_reservations < menu.max_reservations


def can_reserve(menu: Menu, already_reserved: bool, now: datetime | None = None) -> bool:
    return can_reserve_flag(menu, now) and not already_reserved and has_capacity(menu)


def check_can_reserve(menu: Menu, already_reserved: bool, now: datetime | None = None) -> None:
    """Same rule as can_reserve, but says why not."""
    if not menu.is_active:
        raise ReservationError("This menu is not available for reservations")
    if not can_reserve_flag(menu, now):
        raise ReservationError("The reservation deadline for this menu has passed")
    if already_reserved:
        raise ConflictError("You already have a reservation for this menu")
    if not has_capacity(menu):
        raise ConflictError("No reservation spots left for this menu")


def build_draft(menu: Menu, user_id: str, quantity=1, notes: str | None = None) -> ReservationDraft:
    quantity = parse_int(quantity if quantity is not None else 1, "quantity", minimum=1)
    if quantity > MAX_RESERVATION_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_RESERVATION_QUANTITY}")
    return ReservationDraft(
        menu_id=menu.menu_id,
        user_id=str(user_id),
        quantity=quantity,
        total_amount=quantize(menu.price * quantity),
        notes=notes,
    )


def increment(current: int, maximum: int | None) -> int:
    if maximum is not None and current >= maximum:
        raise ConflictError("No reservation spots left for this menu")
    return current + 1


def decrement(current: int) -> int:
    return max(0, current - 1)


def validate_status(status) -> str:
    if status not in VALID_RESERVATION_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}. Must be one of {list(VALID_RESERVATION_STATUSES)}"
        )
    return status


def validate_transition(reservation: Reservation, target: str, *, is_admin: bool, actor_id: str | None = None) -> None:
    validate_status(target)
    if reservation.is_terminal:
        raise ReservationError(f"Reservation is already {reservation.status}")
    if target == reservation.status:
        raise ReservationError(f"Reservation is already {target}")
    if is_admin:
        return
    if actor_id is None or str(reservation.user_id) != str(actor_id):
        raise ReservationError("You can only cancel your own reservations")
    if target != RES_CANCELLED:
        raise ReservationError("Customers can only cancel reservations")
    if reservation.status != RES_PENDING:
        raise ReservationError("Only pending reservations can be cancelled")


def releases_spot(previous: str, target: str) -> bool:
    """A spot is released exactly once: when a live reservation becomes cancelled."""
    return previous != RES_CANCELLED and target == RES_CANCELLED


# =============================================================================
# STATISTICS
# =============================================================================

def demand(menu: Menu) -> dict:
    if menu.max_reservations is None:
        return {
            "menu_id": menu.menu_id,
            "current_reservations": menu.current_reservations,
            "max_reservations": None,
            "spots_available": None,
            "occupancy_percentage": None,
            "demand_status": DEMAND_UNLIMITED,
        }
    if menu.max_reservations > 0:
        occupancy = (Decimal(menu.current_reservations) * 100 / menu.max_reservations).quantize(Decimal("0.1"))
    else:
        occupancy = Decimal("100.0")
    return {
        "menu_id": menu.menu_id,
        "current_reservations": menu.current_reservations,
        "max_reservations": menu.max_reservations,
        "spots_available": menu.spots_available,
        "occupancy_percentage": str(occupancy),
        "demand_status": DEMAND_FULL if not has_capacity(menu) else DEMAND_AVAILABLE,
    }


def menu_stats(menu: Menu, reservations) -> dict:
    by_status = {status: 0 for status in VALID_RESERVATION_STATUSES}
    total_quantity = 0
    revenue = ZERO
    for reservation in reservations:
        by_status[reservation.status] = by_status.get(reservation.status, 0) + 1
        if reservation.status != RES_CANCELLED:
            total_quantity += reservation.quantity
            revenue += reservation.total_amount
    return {
        "menu_id": menu.menu_id,
        "total_reservations": sum(by_status.values()),
        "by_status": by_status,
        "total_quantity": total_quantity,
        "revenue": f"{quantize(revenue):.2f}",
        **{k: v for k, v in demand(menu).items() if k != "menu_id"},
    }
