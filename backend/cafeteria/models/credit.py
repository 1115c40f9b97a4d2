from __future__ import annotations

from ..extensions import db
from ..domain.ledger import LedgerEntry
from ..money import from_cents
from ..time_utils import utcnow


class CreditTransaction(db.Model):
    """
    Append-only credit ledger.

    One row per balance-affecting event. balance_cents is the user's balance
    right after the event; amount_cents is signed (charges negative, payments
    positive). Rows with affects_balance=False are audit rows for purchases
    paid at the counter: they repeat the unchanged balance.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "credit_transactions"
    __table_args__ = (
        db.Index("ix_credit_txns_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    balance_cents = db.Column(db.Integer, nullable=False)
    affects_balance = db.Column(db.Boolean, nullable=False, default=True)

    description = db.Column(db.String(255), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    payment_method = db.Column(db.String(16), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_record(self) -> LedgerEntry:
        return LedgerEntry(
            entry_id=str(self.id),
            user_id=str(self.user_id),
            kind=self.transaction_type,
            amount=from_cents(self.amount_cents),
            balance=from_cents(self.balance_cents),
            description=self.description,
            created_at=self.created_at,
            created_by=str(self.created_by) if self.created_by is not None else None,
            order_id=str(self.order_id) if self.order_id is not None else None,
            payment_method=self.payment_method,
            affects_balance=self.affects_balance,
        )
