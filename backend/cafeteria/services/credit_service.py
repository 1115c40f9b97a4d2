# Overview: Credit console actions; validates, computes, then hands off to the store.

"""
Credit Service

Every action here follows the same shape:

1. Validate input (amount, reason, method) - nothing is written on failure
2. Load the account and compute the new balance with balance_service
   (limit / debt rules)
3. Build the ledger draft and let the store apply balance + entry together

The local store re-checks the balance rules against the locked row, so a
stale snapshot can never push an account past its limit.
"""

from __future__ import annotations

from decimal import Decimal

from ..domain.accounts import Account
from ..domain.orders import VALID_REPAYMENT_METHODS
from ..money import ZERO
from ..validation import ConflictError, ValidationError, optional_text, parse_int, require_choice, require_text
from . import balance_service, ledger_service

MAX_HISTORY_LIMIT = 500


def _payment_inputs(payload: dict):
    amount = balance_service.validate_payment_amount(payload.get("amount"))
    method = require_choice(payload.get("payment_method") or "cash", "payment_method", VALID_REPAYMENT_METHODS)
    order_id = payload.get("order_id")
    order_id = str(order_id) if order_id not in (None, "") else None
    notes = optional_text(payload.get("notes"), "notes", max_length=200)
    return amount, method, order_id, notes


def register_payment(store, actor: Account, payload: dict):
    """
    Admin registers a repayment for any credit account.

    Returns (entry, account) where account is re-read after the write.
    """
    user_id = payload.get("user_id")
    if user_id in (None, ""):
        raise ValidationError("user_id is required")
    amount, method, order_id, notes = _payment_inputs(payload)

    account = store.get_account(str(user_id))
    balance_service.credit_for_payment(account, amount)
    draft = ledger_service.payment_draft(
        amount, method, created_by=actor.user_id, order_id=order_id, notes=notes,
    )
    preview = ledger_service.post_draft(account.user_id, account.balance, draft)
    entry = store.record_payment(account.user_id, draft, order_id=order_id)
    return entry or preview, store.get_account(account.user_id)


def pay_own_debt(store, actor: Account, payload: dict):
    """Customer pays (part of) their own tab; cannot exceed what is owed."""
    amount, method, order_id, notes = _payment_inputs(payload)

    account = store.get_account(actor.user_id)
    balance_service.credit_for_payment(account, amount, self_service=True)
    draft = ledger_service.payment_draft(
        amount, method, created_by=actor.user_id, order_id=order_id, notes=notes,
    )
    preview = ledger_service.post_draft(account.user_id, account.balance, draft)
    entry = store.record_payment(account.user_id, draft, order_id=order_id, self_service=True)
    return entry or preview, store.get_account(account.user_id)


def adjust_balance(store, actor: Account, user_id: str, payload: dict):
    amount = balance_service.validate_adjustment_amount(payload.get("amount"))
    reason = require_text(payload.get("reason"), "reason", max_length=200)

    account = store.get_account(user_id)
    balance_service.apply_adjustment(account, amount)
    draft = ledger_service.adjustment_draft(amount, reason, created_by=actor.user_id)
    preview = ledger_service.post_draft(account.user_id, account.balance, draft)
    entry = store.post_adjustment(account.user_id, draft)
    return entry or preview, store.get_account(account.user_id)


def update_limit(store, actor: Account, user_id: str, payload: dict, *, enforce_limit: bool = True) -> Account:
    limit = balance_service.validate_credit_limit(payload.get("credit_limit"))
    account = store.get_account(user_id)
    credit = balance_service.require_credit_line(account)
    if enforce_limit:
        balance_service.check_limit_covers_debt(credit, limit)
    return store.set_credit_limit(
        account.user_id, limit, actor_id=actor.user_id, enforce_limit=enforce_limit,
    )


def enable_credit(store, actor: Account, user_id: str, payload: dict, *, default_limit: Decimal) -> Account:
    raw = payload.get("credit_limit")
    limit = default_limit if raw in (None, "") else balance_service.validate_credit_limit(raw)
    account = store.get_account(user_id)
    if account.has_credit_account:
        raise ConflictError("Credit is already enabled for this account")
    return store.enable_credit(account.user_id, limit, actor_id=actor.user_id)


def disable_credit(store, actor: Account, user_id: str) -> Account:
    account = store.get_account(user_id)
    if not account.has_credit_account:
        raise ConflictError("Credit is not enabled for this account")
    if account.credit.debt > ZERO:
        raise ConflictError(
            f"Cannot disable credit while the account owes {account.credit.debt:.2f}"
        )
    return store.disable_credit(account.user_id, actor_id=actor.user_id)


def parse_history_limit(value, default: int) -> int:
    if value in (None, ""):
        return default
    limit = parse_int(value, "limit", minimum=1)
    return min(limit, MAX_HISTORY_LIMIT)


def history(store, user_id: str, limit: int):
    """Most recent ledger entries, newest first."""
    return ledger_service.recent(store.ledger_history(user_id, limit), limit)


def verify_account(store, user_id: str) -> dict:
    """
    Re-run the balance chain over the full history and compare the closing
    balance with the account's current balance.
    """
    account = store.get_account(user_id)
    entries = list(reversed(ledger_service.for_display(store.ledger_history(user_id, None))))
    try:
        closing = ledger_service.verify_chain(entries)
    except ledger_service.LedgerIntegrityError as exc:
        return {"ok": False, "error": str(exc), "entry_id": exc.entry_id, "entries": len(entries)}
    ok = closing == account.balance
    result = {
        "ok": ok,
        "entries": len(entries),
        "ledger_balance": f"{closing:.2f}",
        "current_balance": f"{account.balance:.2f}",
    }
    if not ok:
        result["error"] = "Ledger closing balance does not match the account balance"
    return result


def debtors(store) -> list[Account]:
    """Accounts with debt, largest debt first."""
    accounts = [a for a in store.list_debtors() if a.credit is not None and a.credit.debt > ZERO]
    return sorted(accounts, key=lambda a: a.credit.debt, reverse=True)


def statement(store, user_id: str, period: str) -> bytes:
    if period not in ledger_service.VALID_PERIODS:
        raise ValidationError(f"Invalid period: {period}. Must be one of {ledger_service.VALID_PERIODS}")
    return store.statement_pdf(user_id, period)
