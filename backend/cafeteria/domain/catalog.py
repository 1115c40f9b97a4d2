"""Catalog records: categories and products."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..money import parse_amount, to_str
from ..validation import ValidationError


@dataclass(frozen=True)
class Category:
    category_id: str
    name: str
    description: str | None = None
    display_order: int = 0
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }

    @classmethod
    def from_payload(cls, payload) -> "Category":
        if not isinstance(payload, dict) or payload.get("category_id", payload.get("id")) is None:
            raise ValidationError("Malformed category payload")
        return cls(
            category_id=str(payload.get("category_id", payload.get("id"))),
            name=payload.get("name") or "",
            description=payload.get("description"),
            display_order=int(payload.get("display_order") or 0),
            is_active=bool(payload.get("is_active", True)),
        )


@dataclass(frozen=True)
class Product:
    product_id: str
    name: str
    price: Decimal
    category_id: str | None = None
    category_name: str | None = None
    description: str | None = None
    stock_quantity: int = 0
    min_stock_level: int = 0
    is_available: bool = True
    preparation_time: int = 0
    allergens: tuple = field(default_factory=tuple)

    @property
    def low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_level

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "name": self.name,
            "description": self.description,
            "price": to_str(self.price),
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "low_stock": self.low_stock,
            "is_available": self.is_available,
            "preparation_time": self.preparation_time,
            "allergens": list(self.allergens),
        }

    @classmethod
    def from_payload(cls, payload) -> "Product":
        if not isinstance(payload, dict) or payload.get("product_id", payload.get("id")) is None:
            raise ValidationError("Malformed product payload")
        category_id = payload.get("category_id")
        return cls(
            product_id=str(payload.get("product_id", payload.get("id"))),
            name=payload.get("name") or "",
            price=parse_amount(payload.get("price"), "price"),
            category_id=str(category_id) if category_id is not None else None,
            category_name=payload.get("category_name"),
            description=payload.get("description"),
            stock_quantity=int(payload.get("stock_quantity") or 0),
            min_stock_level=int(payload.get("min_stock_level") or 0),
            is_available=bool(payload.get("is_available", True)),
            preparation_time=int(payload.get("preparation_time") or 0),
            allergens=tuple(payload.get("allergens") or ()),
        )
