"""
Account records.

The backend hands out two shapes of user record: the full user (credit fields
as decimal strings) and the "user with debt" summary used by the credit console
(credit fields as numbers, sometimes a positive ``debt`` instead of a balance).
Both are normalized here, once, into ``Account``. ``has_credit_account`` is the
discriminant: an account carries a ``CreditLine`` if and only if credit is
enabled, so credit fields of a cash-only account are simply absent.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..money import ZERO, parse_amount, quantize, to_str
from ..time_utils import parse_iso_datetime, to_utc_z
from ..validation import ValidationError

ROLE_ADMIN = "admin"
ROLE_CUSTOMER = "customer"
VALID_ROLES = (ROLE_ADMIN, ROLE_CUSTOMER)

ACCOUNT_ACTIVE = "active"
ACCOUNT_SUSPENDED = "suspended"
ACCOUNT_INACTIVE = "inactive"
VALID_ACCOUNT_STATUSES = (ACCOUNT_ACTIVE, ACCOUNT_SUSPENDED, ACCOUNT_INACTIVE)


@dataclass(frozen=True)
class CreditLine:
    """Balance (negative = debt) and the limit that debt may reach."""
    balance: Decimal
    limit: Decimal

    @property
    def debt(self) -> Decimal:
        return max(ZERO, -self.balance)

    @property
    def available(self) -> Decimal:
        return quantize(self.limit + self.balance)

    @property
    def usage_percent(self) -> Decimal:
        if self.debt == ZERO:
            return Decimal("0.0")
        if self.limit <= ZERO:
            return Decimal("100.0")
        return (self.debt / self.limit * 100).quantize(Decimal("0.1"))


@dataclass(frozen=True)
class Account:
    user_id: str
    full_name: str
    email: str | None
    role: str
    account_status: str = ACCOUNT_ACTIVE
    credit: CreditLine | None = None
    phone: str | None = None
    suspension_reason: str | None = None
    created_at: datetime | None = None
    last_login_at: datetime | None = None

    @property
    def has_credit_account(self) -> bool:
        return self.credit is not None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_active(self) -> bool:
        return self.account_status == ACCOUNT_ACTIVE

    @property
    def balance(self) -> Decimal:
        return self.credit.balance if self.credit else ZERO

    @property
    def credit_limit(self) -> Decimal:
        return self.credit.limit if self.credit else ZERO

    def to_dict(self) -> dict:
        data = {
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "account_status": self.account_status,
            "suspension_reason": self.suspension_reason,
            "has_credit_account": self.has_credit_account,
            "current_balance": None,
            "credit_limit": None,
            "available_credit": None,
            "debt": None,
            "usage_percent": None,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }
        if self.credit:
            data.update({
                "current_balance": to_str(self.credit.balance),
                "credit_limit": to_str(self.credit.limit),
                "available_credit": to_str(self.credit.available),
                "debt": to_str(self.credit.debt),
                "usage_percent": str(self.credit.usage_percent),
            })
        return data


def account_from_payload(payload) -> Account:
    """Normalize either backend user shape into an ``Account``."""
    if not isinstance(payload, dict):
        raise ValidationError("Malformed account payload")

    user_id = payload.get("user_id", payload.get("id"))
    if user_id in (None, ""):
        raise ValidationError("Account payload is missing user_id")

    has_credit = payload.get("has_credit_account")
    if has_credit is None:
        # debt summaries omit the flag; only credit accounts can carry debt
        has_credit = any(k in payload for k in ("credit_limit", "current_balance", "debt"))

    credit = None
    if has_credit:
        if payload.get("current_balance") is not None:
            balance = parse_amount(payload["current_balance"], "current_balance")
        else:
            balance = -parse_amount(payload.get("debt", 0), "debt")
        limit = parse_amount(payload.get("credit_limit", 0), "credit_limit")
        credit = CreditLine(balance=balance, limit=limit)

    return Account(
        user_id=str(user_id),
        full_name=payload.get("full_name") or payload.get("name") or "",
        email=payload.get("email"),
        role=payload.get("role") or ROLE_CUSTOMER,
        account_status=payload.get("account_status") or ACCOUNT_ACTIVE,
        credit=credit,
        phone=payload.get("phone"),
        suspension_reason=payload.get("suspension_reason"),
        created_at=parse_iso_datetime(payload.get("created_at")),
        last_login_at=parse_iso_datetime(payload.get("last_login")),
    )
