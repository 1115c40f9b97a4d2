# Overview: Credit ledger rules; entry construction, ordering and verification.

"""
Credit Ledger Service

WHY: The balance on an account is only trustworthy if every change to it is
explained by exactly one ledger entry. Entries are append-only and each one
snapshots the balance right after it was applied, so for a user's entries in
creation order:

    entry[k].balance == entry[k-1].balance + entry[k].amount

(opening balance 0 unless stated otherwise).

Sign convention:
- credit_charge, purchase: negative
- payment: positive
- adjustment: as given
- limit_change: zero (records a limit change, never moves the balance)

Purchase entries for orders paid at the counter keep the unchanged balance and
carry affects_balance=False; chain checks and balance arithmetic skip them.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from ..domain.ledger import (
    LedgerDraft,
    LedgerEntry,
    TX_ADJUSTMENT,
    TX_CREDIT_CHARGE,
    TX_LIMIT_CHANGE,
    TX_PAYMENT,
    TX_PURCHASE,
)
from ..money import ZERO, format_currency, quantize
from ..time_utils import utcnow
from ..validation import ValidationError


class LedgerIntegrityError(Exception):
    """Raised when a balance snapshot does not follow from the previous one."""

    def __init__(self, message: str, entry_id: str | None = None):
        super().__init__(message)
        self.entry_id = entry_id


# =============================================================================
# REPORT PERIODS (CONSTANTS)
# =============================================================================

PERIOD_DAILY = "daily"
PERIOD_WEEKLY = "weekly"
PERIOD_MONTHLY = "monthly"
PERIOD_ALL = "all"

VALID_PERIODS = [PERIOD_DAILY, PERIOD_WEEKLY, PERIOD_MONTHLY, PERIOD_ALL]


# =============================================================================
# DRAFT CONSTRUCTION
# =============================================================================

def credit_charge_draft(
    total: Decimal,
    *,
    order_id: str | None = None,
    order_number: str | None = None,
    created_by: str | None = None,
) -> LedgerDraft:
    label = f"Credit purchase {order_number}" if order_number else "Credit purchase"
    return LedgerDraft(
        kind=TX_CREDIT_CHARGE,
        amount=-abs(quantize(total)),
        description=label,
        created_by=created_by,
        order_id=order_id,
        payment_method="credit",
    )


def purchase_draft(
    total: Decimal,
    payment_method: str,
    *,
    order_id: str | None = None,
    order_number: str | None = None,
    created_by: str | None = None,
) -> LedgerDraft:
    """Audit row for an order paid at the counter."""
    label = f"Purchase {order_number}" if order_number else "Purchase"
    return LedgerDraft(
        kind=TX_PURCHASE,
        amount=-abs(quantize(total)),
        description=f"{label} ({payment_method})",
        created_by=created_by,
        order_id=order_id,
        payment_method=payment_method,
        affects_balance=False,
    )


def payment_draft(
    amount: Decimal,
    payment_method: str,
    *,
    created_by: str | None = None,
    order_id: str | None = None,
    notes: str | None = None,
) -> LedgerDraft:
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    description = f"Payment ({payment_method})"
    if notes:
        description = f"{description}: {notes}"
    return LedgerDraft(
        kind=TX_PAYMENT,
        amount=quantize(amount),
        description=description[:255],
        reason=notes,
        created_by=created_by,
        order_id=order_id,
        payment_method=payment_method,
    )


def adjustment_draft(
    amount: Decimal,
    reason: str,
    *,
    created_by: str | None = None,
    order_id: str | None = None,
) -> LedgerDraft:
    if amount == ZERO:
        raise ValidationError("Adjustment amount cannot be zero")
    if not reason or not reason.strip():
        raise ValidationError("reason is required")
    return LedgerDraft(
        kind=TX_ADJUSTMENT,
        amount=quantize(amount),
        description=f"Adjustment: {reason.strip()}"[:255],
        reason=reason.strip(),
        created_by=created_by,
        order_id=order_id,
    )


def limit_change_draft(old_limit: Decimal, new_limit: Decimal, *, created_by: str | None = None) -> LedgerDraft:
    return LedgerDraft(
        kind=TX_LIMIT_CHANGE,
        amount=ZERO,
        description=f"Credit limit changed from {format_currency(old_limit)} to {format_currency(new_limit)}",
        created_by=created_by,
    )


def post_draft(
    user_id: str,
    previous_balance: Decimal,
    draft: LedgerDraft,
    *,
    entry_id: str | None = None,
    created_at: datetime | None = None,
) -> LedgerEntry:
    """
    Turn a draft into an entry by applying it to the previous balance.

    The caller must hold whatever lock protects previous_balance.
    """
    if draft.affects_balance:
        balance = quantize(previous_balance + draft.amount)
    else:
        balance = quantize(previous_balance)
    return LedgerEntry(
        entry_id=entry_id,
        user_id=str(user_id),
        kind=draft.kind,
        amount=quantize(draft.amount),
        balance=balance,
        description=draft.description,
        created_at=created_at or utcnow(),
        created_by=draft.created_by,
        order_id=draft.order_id,
        payment_method=draft.payment_method,
        affects_balance=draft.affects_balance,
    )


# =============================================================================
# VERIFICATION / QUERIES
# =============================================================================

def verify_chain(entries, opening_balance: Decimal = ZERO) -> Decimal:
    """
    Check that each balance-moving entry's snapshot equals the previous
    snapshot plus its amount. Entries must be in creation order.

    Returns the closing balance. Raises LedgerIntegrityError on the first
    mismatch.
    """
    running = quantize(opening_balance)
    for entry in entries:
        if not entry.affects_balance:
            if entry.amount != ZERO and entry.kind != TX_PURCHASE:
                raise LedgerIntegrityError(
                    f"Entry {entry.entry_id} ({entry.kind}) is marked as not affecting the balance",
                    entry.entry_id,
                )
            continue
        expected = quantize(running + entry.amount)
        if entry.balance != expected:
            raise LedgerIntegrityError(
                f"Entry {entry.entry_id}: balance {entry.balance:.2f} does not follow "
                f"from {running:.2f} {entry.amount:+.2f}",
                entry.entry_id,
            )
        running = expected
    return running


def _sequence(entry: LedgerEntry) -> int:
    if entry.entry_id is not None and str(entry.entry_id).isdigit():
        return int(entry.entry_id)
    return 0


def for_display(entries) -> list[LedgerEntry]:
    """Newest first; entries sharing a timestamp keep newest-inserted first."""
    return sorted(
        entries,
        key=lambda e: (e.created_at or datetime.min, _sequence(e)),
        reverse=True,
    )


def recent(entries, limit: int | None) -> list[LedgerEntry]:
    ordered = for_display(entries)
    if limit is None:
        return ordered
    return ordered[:limit]


def period_start(period: str, now: datetime | None = None) -> datetime | None:
    if period not in VALID_PERIODS:
        raise ValidationError(f"Invalid period: {period}. Must be one of {VALID_PERIODS}")
    now = now or utcnow()
    if period == PERIOD_DAILY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == PERIOD_WEEKLY:
        return now - timedelta(days=7)
    if period == PERIOD_MONTHLY:
        return now - timedelta(days=30)
    return None


def filter_period(entries, period: str, now: datetime | None = None) -> list[LedgerEntry]:
    start = period_start(period, now)
    if start is None:
        return list(entries)
    return [e for e in entries if e.created_at is not None and e.created_at >= start]


def totals(entries) -> dict:
    """Charged/paid/adjusted sums for a statement (all as positive or signed Decimals)."""
    charged = ZERO
    paid = ZERO
    adjusted = ZERO
    counter_purchases = ZERO
    for entry in entries:
        if entry.kind == TX_CREDIT_CHARGE:
            charged += -entry.amount
        elif entry.kind == TX_PAYMENT:
            paid += entry.amount
        elif entry.kind == TX_ADJUSTMENT:
            adjusted += entry.amount
        elif entry.kind == TX_PURCHASE and not entry.affects_balance:
            counter_purchases += -entry.amount
    return {
        "charged": quantize(charged),
        "paid": quantize(paid),
        "adjusted": quantize(adjusted),
        "counter_purchases": quantize(counter_purchases),
        "net_change": quantize(paid + adjusted - charged),
    }
