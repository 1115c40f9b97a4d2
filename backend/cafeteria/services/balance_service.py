# Overview: Balance arithmetic for credit accounts; pure functions, no I/O.

"""
Credit Balance Rules

The balance is signed: negative means the customer owes the cafeteria.
Every mutation is additive:

- credit purchase:  new = current - order_total
- payment:          new = current + payment_amount      (amount > 0)
- adjustment:       new = current + adjustment_amount   (amount != 0, reason required)

These functions only compute and validate. The store applies the result and
appends the matching ledger entry in the same unit of work.
"""

from decimal import Decimal

from ..domain.accounts import Account, CreditLine
from ..money import ZERO, parse_amount, quantize
from ..validation import ValidationError


class CreditError(Exception):
    """Raised when a credit operation breaks an account rule."""
    pass


def validate_payment_amount(value) -> Decimal:
    """
    Parse a repayment amount. Non-numeric, zero and negative input is
    rejected before anything is written.
    """
    amount = parse_amount(value, "amount")
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    return amount


def validate_adjustment_amount(value) -> Decimal:
    amount = parse_amount(value, "amount")
    if amount == ZERO:
        raise ValidationError("Adjustment amount cannot be zero")
    return amount


def validate_credit_limit(value) -> Decimal:
    limit = parse_amount(value, "credit_limit")
    if limit < ZERO:
        raise ValidationError("credit_limit cannot be negative")
    return limit


def require_credit_line(account: Account) -> CreditLine:
    if account.credit is None:
        raise CreditError(f"User {account.user_id} does not have a credit account")
    return account.credit


def check_credit_limit(credit: CreditLine, total: Decimal) -> None:
    """Reject a charge that would take the debt past the limit."""
    if total > credit.available:
        raise CreditError(
            f"Credit limit exceeded: available {credit.available:.2f}, required {quantize(total):.2f}"
        )


def check_limit_covers_debt(credit: CreditLine, limit: Decimal) -> None:
    if limit < credit.debt:
        raise CreditError(
            f"New limit {limit:.2f} is below the current debt of {credit.debt:.2f}"
        )


def debit_for_purchase(account: Account, total: Decimal, *, enforce_limit: bool = True) -> Decimal:
    if not account.is_active:
        raise CreditError("Account is not active")
    credit = require_credit_line(account)
    if total <= ZERO:
        raise ValidationError("Order total must be greater than zero")
    if enforce_limit:
        check_credit_limit(credit, total)
    return quantize(credit.balance - total)


def credit_for_payment(account: Account, amount: Decimal, *, self_service: bool = False) -> Decimal:
    """
    Balance after a repayment.

    Customers paying their own tab cannot pay more than they owe; payments
    registered by an admin may leave a positive (prepaid) balance.
    """
    credit = require_credit_line(account)
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    if self_service:
        if credit.debt == ZERO:
            raise CreditError("There is no outstanding debt to pay")
        if amount > credit.debt:
            raise CreditError(f"Payment exceeds outstanding debt of {credit.debt:.2f}")
    return quantize(credit.balance + amount)


def apply_adjustment(account: Account, amount: Decimal) -> Decimal:
    credit = require_credit_line(account)
    if amount == ZERO:
        raise ValidationError("Adjustment amount cannot be zero")
    return quantize(credit.balance + amount)
