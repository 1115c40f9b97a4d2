from __future__ import annotations

from ..extensions import db
from ..domain.orders import Order as OrderRecord
from ..domain.orders import OrderLine, PAYMENT_CREDIT
from ..money import from_cents
from ..time_utils import utcnow


class Order(db.Model):
    """
    Customer order.

    Credit orders start with payment_status "pending" and are settled by
    repayments (credit_paid_cents); everything else is paid at checkout.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_credit_open", "user_id", "is_credit_order", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # Assigned after flush, derived from id
    order_number = db.Column(db.String(32), nullable=True, unique=True)

    total_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, index=True)
    payment_method = db.Column(db.String(16), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False)
    is_credit_order = db.Column(db.Boolean, nullable=False, default=False)
    credit_paid_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    receipt_reference = db.Column(db.String(255), nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    ready_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    def to_record(self) -> OrderRecord:
        return OrderRecord(
            order_id=str(self.id),
            user_id=str(self.user_id),
            order_number=self.order_number or "",
            total_amount=from_cents(self.total_cents),
            status=self.status,
            payment_method=self.payment_method,
            payment_status=self.payment_status,
            is_credit_order=self.is_credit_order or self.payment_method == PAYMENT_CREDIT,
            credit_paid_amount=from_cents(self.credit_paid_cents),
            lines=tuple(item.to_record() for item in self.items),
            notes=self.notes,
            cancellation_reason=self.cancellation_reason,
            customer_name=self.user.full_name if self.user else None,
            created_at=self.created_at,
            confirmed_at=self.confirmed_at,
            ready_at=self.ready_at,
            delivered_at=self.delivered_at,
            cancelled_at=self.cancelled_at,
        )


class OrderItem(db.Model):
    """Order line. Name and unit price are copied from the product at checkout."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_record(self) -> OrderLine:
        return OrderLine(
            product_id=str(self.product_id),
            product_name=self.product_name,
            quantity=self.quantity,
            unit_price=from_cents(self.unit_price_cents),
        )
