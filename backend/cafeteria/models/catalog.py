from __future__ import annotations

from ..extensions import db
from ..domain.catalog import Category as CategoryRecord
from ..domain.catalog import Product as ProductRecord
from ..money import from_cents
from ..time_utils import utcnow


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_record(self) -> CategoryRecord:
        return CategoryRecord(
            category_id=str(self.id),
            name=self.name,
            description=self.description,
            display_order=self.display_order,
            is_active=self.is_active,
        )


class Product(db.Model):
    """Sellable item. stock_quantity is decremented by checkout."""
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_available", "category_id", "is_available"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    preparation_time = db.Column(db.Integer, nullable=False, default=0)  # minutes
    allergens = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def to_record(self) -> ProductRecord:
        return ProductRecord(
            product_id=str(self.id),
            name=self.name,
            price=from_cents(self.price_cents),
            category_id=str(self.category_id) if self.category_id is not None else None,
            category_name=self.category.name if self.category else None,
            description=self.description,
            stock_quantity=self.stock_quantity,
            min_stock_level=self.min_stock_level,
            is_available=self.is_available,
            preparation_time=self.preparation_time,
            allergens=tuple(self.allergens or ()),
        )
