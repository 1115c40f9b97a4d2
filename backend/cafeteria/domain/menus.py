"""Weekly menu and reservation records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from ..money import parse_amount, to_str
from ..time_utils import parse_iso_date, parse_iso_datetime, to_utc_z
from ..validation import ValidationError

RES_PENDING = "pending"
RES_CONFIRMED = "confirmed"
RES_DELIVERED = "delivered"
RES_CANCELLED = "cancelled"

VALID_RESERVATION_STATUSES = (RES_PENDING, RES_CONFIRMED, RES_DELIVERED, RES_CANCELLED)
TERMINAL_RESERVATION_STATUSES = (RES_DELIVERED, RES_CANCELLED)


@dataclass(frozen=True)
class Menu:
    menu_id: str
    menu_date: date
    entry_description: str
    main_course_description: str
    drink_description: str
    dessert_description: str
    price: Decimal
    max_reservations: int | None = None
    current_reservations: int = 0
    reservation_deadline: datetime | None = None
    is_active: bool = True
    description: str | None = None
    # can_reserve as computed by the external backend, when it sent one
    backend_can_reserve: bool | None = None

    @property
    def is_unlimited(self) -> bool:
        return self.max_reservations is None

    @property
    def spots_available(self) -> int | None:
        if self.max_reservations is None:
            return None
        return max(0, self.max_reservations - self.current_reservations)

    def to_dict(self) -> dict:
        return {
            "menu_id": self.menu_id,
            "menu_date": self.menu_date.isoformat() if self.menu_date else None,
            "entry_description": self.entry_description,
            "main_course_description": self.main_course_description,
            "drink_description": self.drink_description,
            "dessert_description": self.dessert_description,
            "description": self.description,
            "price": to_str(self.price),
            "max_reservations": self.max_reservations,
            "current_reservations": self.current_reservations,
            "spots_available": self.spots_available,
            "reservation_deadline": to_utc_z(self.reservation_deadline),
            "is_active": self.is_active,
        }

    @classmethod
    def from_payload(cls, payload) -> "Menu":
        if not isinstance(payload, dict) or payload.get("menu_id", payload.get("id")) is None:
            raise ValidationError("Malformed menu payload")
        max_res = payload.get("max_reservations")
        return cls(
            menu_id=str(payload.get("menu_id", payload.get("id"))),
            menu_date=parse_iso_date(payload.get("menu_date")),
            entry_description=payload.get("entry_description") or "",
            main_course_description=payload.get("main_course_description") or "",
            drink_description=payload.get("drink_description") or "",
            dessert_description=payload.get("dessert_description") or "",
            description=payload.get("description"),
            price=parse_amount(payload.get("price"), "price"),
            max_reservations=int(max_res) if max_res is not None else None,
            current_reservations=int(payload.get("current_reservations") or 0),
            reservation_deadline=parse_iso_datetime(payload.get("reservation_deadline")),
            is_active=bool(payload.get("is_active", True)),
            backend_can_reserve=payload.get("can_reserve"),
        )


@dataclass(frozen=True)
class ReservationDraft:
    menu_id: str
    user_id: str
    quantity: int
    total_amount: Decimal
    notes: str | None = None


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    menu_id: str
    user_id: str
    quantity: int
    total_amount: Decimal
    status: str
    notes: str | None = None
    cancellation_reason: str | None = None
    reserved_at: datetime | None = None
    confirmed_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status != RES_CANCELLED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RESERVATION_STATUSES

    def to_dict(self) -> dict:
        return {
            "reservation_id": self.reservation_id,
            "menu_id": self.menu_id,
            "user_id": self.user_id,
            "quantity": self.quantity,
            "total_amount": to_str(self.total_amount),
            "status": self.status,
            "notes": self.notes,
            "cancellation_reason": self.cancellation_reason,
            "reserved_at": to_utc_z(self.reserved_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }

    @classmethod
    def from_payload(cls, payload) -> "Reservation":
        if not isinstance(payload, dict) or payload.get("reservation_id", payload.get("id")) is None:
            raise ValidationError("Malformed reservation payload")
        return cls(
            reservation_id=str(payload.get("reservation_id", payload.get("id"))),
            menu_id=str(payload.get("menu_id", "")),
            user_id=str(payload.get("user_id", "")),
            quantity=int(payload.get("quantity") or 1),
            total_amount=parse_amount(payload.get("total_amount", 0), "total_amount"),
            status=payload.get("status") or RES_PENDING,
            notes=payload.get("notes"),
            cancellation_reason=payload.get("cancellation_reason"),
            reserved_at=parse_iso_datetime(payload.get("reserved_at")),
            confirmed_at=parse_iso_datetime(payload.get("confirmed_at")),
            delivered_at=parse_iso_datetime(payload.get("delivered_at")),
            cancelled_at=parse_iso_datetime(payload.get("cancelled_at")),
        )
