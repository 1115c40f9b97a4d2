"""Ledger entry records (one immutable row per balance-affecting event)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..money import parse_amount, to_str
from ..time_utils import parse_iso_datetime, to_utc_z
from ..validation import ValidationError

TX_PURCHASE = "purchase"
TX_PAYMENT = "payment"
TX_CREDIT_CHARGE = "credit_charge"
TX_ADJUSTMENT = "adjustment"
TX_LIMIT_CHANGE = "limit_change"

VALID_LEDGER_TYPES = (
    TX_PURCHASE,
    TX_PAYMENT,
    TX_CREDIT_CHARGE,
    TX_ADJUSTMENT,
    TX_LIMIT_CHANGE,
)

# Names used by the legacy local storage and by the backend history endpoint
LEDGER_TYPE_ALIASES = {
    "compra": TX_PURCHASE,
    "pago": TX_PAYMENT,
    "fiado": TX_CREDIT_CHARGE,
    "charge": TX_CREDIT_CHARGE,
    "ajuste": TX_ADJUSTMENT,
}


@dataclass(frozen=True)
class LedgerDraft:
    """
    A ledger entry before it is posted.

    ``amount`` is already signed. The resulting balance is only known once the
    store has the (locked) previous balance, see ledger_service.post_draft.
    """
    kind: str
    amount: Decimal
    description: str
    created_by: str | None = None
    order_id: str | None = None
    payment_method: str | None = None
    affects_balance: bool = True
    # Free text as typed (adjustment reason, payment notes)
    reason: str | None = None


@dataclass(frozen=True)
class LedgerEntry:
    entry_id: str | None
    user_id: str
    kind: str
    amount: Decimal
    balance: Decimal
    description: str
    created_at: datetime | None = None
    created_by: str | None = None
    order_id: str | None = None
    payment_method: str | None = None
    affects_balance: bool = True

    @property
    def balance_before(self) -> Decimal:
        if not self.affects_balance:
            return self.balance
        return self.balance - self.amount

    def to_dict(self) -> dict:
        return {
            "id": self.entry_id,
            "user_id": self.user_id,
            "type": self.kind,
            "amount": to_str(self.amount),
            "balance": to_str(self.balance),
            "balance_before": to_str(self.balance_before),
            "affects_balance": self.affects_balance,
            "description": self.description,
            "order_id": self.order_id,
            "payment_method": self.payment_method,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }

    @classmethod
    def from_payload(cls, payload) -> "LedgerEntry":
        """
        Accepts the backend history row (transaction_type, balance_before,
        balance_after) as well as our own to_dict() shape.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Malformed ledger payload")

        raw_kind = payload.get("transaction_type") or payload.get("type")
        kind = LEDGER_TYPE_ALIASES.get(raw_kind, raw_kind)
        if kind not in VALID_LEDGER_TYPES:
            raise ValidationError(f"Unknown ledger entry type: {raw_kind}")

        after_raw = payload.get("balance_after", payload.get("balance"))
        balance = parse_amount(after_raw, "balance")
        raw_amount = parse_amount(payload.get("amount", 0), "amount")
        before_raw = payload.get("balance_before")

        affects = payload.get("affects_balance")
        if affects is None:
            # non-credit purchases are audit rows; they never move the balance
            affects = kind != TX_PURCHASE

        if kind == TX_PURCHASE:
            amount = -abs(raw_amount)
        elif before_raw is not None:
            amount = balance - parse_amount(before_raw, "balance_before")
        elif kind == TX_CREDIT_CHARGE:
            amount = -abs(raw_amount)
        elif kind == TX_PAYMENT:
            amount = abs(raw_amount)
        else:
            amount = raw_amount

        entry_id = payload.get("history_id", payload.get("id"))
        return cls(
            entry_id=str(entry_id) if entry_id is not None else None,
            user_id=str(payload.get("user_id", "")),
            kind=kind,
            amount=amount,
            balance=balance,
            description=payload.get("description") or "",
            created_at=parse_iso_datetime(payload.get("created_at")),
            created_by=payload.get("performed_by", payload.get("created_by")),
            order_id=payload.get("order_id"),
            payment_method=payload.get("payment_method"),
            affects_balance=bool(affects),
        )
