# Overview: Input rules for categories, products and weekly menus.

"""
Catalog Service

Validates and normalizes admin input for the catalog (categories, products)
and the weekly lunch menus. Functions return plain dicts with Decimal
prices; ``partial=True`` validates only the fields present (updates).
"""

from __future__ import annotations

from ..money import ZERO, parse_amount
from ..time_utils import parse_iso_date, parse_iso_datetime
from ..validation import ValidationError, optional_text, parse_bool, parse_int, require_text


def _present(payload: dict, field: str, partial: bool) -> bool:
    return not partial or field in payload


def _price(value, field: str = "price"):
    price = parse_amount(value, field)
    if price <= ZERO:
        raise ValidationError(f"{field} must be greater than zero")
    return price


def validate_category(payload: dict, *, partial: bool = False) -> dict:
    data = {}
    if _present(payload, "name", partial):
        data["name"] = require_text(payload.get("name"), "name", max_length=128)
    if "description" in payload:
        data["description"] = optional_text(payload.get("description"), "description", max_length=1000)
    if "display_order" in payload:
        data["display_order"] = parse_int(payload.get("display_order"), "display_order", minimum=0)
    if "is_active" in payload:
        data["is_active"] = parse_bool(payload.get("is_active"), "is_active")
    return data


def validate_product(payload: dict, *, partial: bool = False) -> dict:
    data = {}
    if _present(payload, "name", partial):
        data["name"] = require_text(payload.get("name"), "name", max_length=255)
    if _present(payload, "price", partial):
        data["price"] = _price(payload.get("price"))
    if "category_id" in payload:
        category_id = payload.get("category_id")
        data["category_id"] = str(category_id) if category_id not in (None, "") else None
    if "description" in payload:
        data["description"] = optional_text(payload.get("description"), "description", max_length=1000)
    for field in ("stock_quantity", "min_stock_level", "preparation_time"):
        if field in payload:
            data[field] = parse_int(payload.get(field), field, minimum=0)
    if "is_available" in payload:
        data["is_available"] = parse_bool(payload.get("is_available"), "is_available")
    if "allergens" in payload:
        allergens = payload.get("allergens") or []
        if not isinstance(allergens, list) or not all(isinstance(a, str) for a in allergens):
            raise ValidationError("allergens must be a list of strings")
        data["allergens"] = [a.strip() for a in allergens if a.strip()]
    return data


MENU_TEXT_FIELDS = (
    "entry_description",
    "main_course_description",
    "drink_description",
    "dessert_description",
)


def validate_menu(payload: dict, *, partial: bool = False) -> dict:
    data = {}
    if _present(payload, "menu_date", partial):
        try:
            menu_date = parse_iso_date(payload.get("menu_date"))
        except (TypeError, ValueError):
            raise ValidationError("menu_date must be an ISO date (YYYY-MM-DD)")
        if menu_date is None:
            raise ValidationError("menu_date is required")
        data["menu_date"] = menu_date
    for field in MENU_TEXT_FIELDS:
        if _present(payload, field, partial):
            data[field] = require_text(payload.get(field), field, max_length=255)
    if "description" in payload:
        data["description"] = optional_text(payload.get("description"), "description", max_length=1000)
    if _present(payload, "price", partial):
        data["price"] = _price(payload.get("price"))
    if "max_reservations" in payload:
        raw = payload.get("max_reservations")
        data["max_reservations"] = None if raw in (None, "") else parse_int(raw, "max_reservations", minimum=1)
    if "reservation_deadline" in payload:
        try:
            data["reservation_deadline"] = parse_iso_datetime(payload.get("reservation_deadline"))
        except (TypeError, ValueError):
            raise ValidationError("reservation_deadline must be an ISO datetime")
    if "is_active" in payload:
        data["is_active"] = parse_bool(payload.get("is_active"), "is_active")
    return data
