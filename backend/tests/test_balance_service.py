"""
Balance rules.

Verifies:
- Credit purchases respect the limit when it is enforced
- Self-service payments cannot exceed the debt; admin payments may
- Adjustments must be non-zero
"""

from decimal import Decimal

import pytest

from cafeteria.domain.accounts import Account, CreditLine
from cafeteria.services import balance_service
from cafeteria.services.balance_service import CreditError
from cafeteria.validation import ValidationError


def _account(balance="0.00", limit="50.00", status="active", credit=True):
    line = CreditLine(Decimal(balance), Decimal(limit)) if credit else None
    return Account(user_id="1", full_name="Test", email="t@t.com", role="customer",
                   account_status=status, credit=line)


class TestDebitForPurchase:

    def test_within_limit(self):
        assert balance_service.debit_for_purchase(_account(), Decimal("20.00")) == Decimal("-20.00")

    def test_exactly_at_limit(self):
        assert balance_service.debit_for_purchase(_account("-30.00"), Decimal("20.00")) == Decimal("-50.00")

    def test_over_limit_rejected(self):
        with pytest.raises(CreditError, match="Credit limit exceeded"):
            balance_service.debit_for_purchase(_account("-40.00"), Decimal("20.00"))

    def test_over_limit_allowed_when_not_enforced(self):
        result = balance_service.debit_for_purchase(_account("-40.00"), Decimal("20.00"), enforce_limit=False)
        assert result == Decimal("-60.00")

    def test_no_credit_line(self):
        with pytest.raises(CreditError):
            balance_service.debit_for_purchase(_account(credit=False), Decimal("5.00"))

    def test_inactive_account(self):
        with pytest.raises(CreditError):
            balance_service.debit_for_purchase(_account(status="suspended"), Decimal("5.00"))


class TestPayments:

    @pytest.mark.parametrize("raw", ["0", "-5", "abc", "", None])
    def test_invalid_amounts(self, raw):
        with pytest.raises(ValidationError):
            balance_service.validate_payment_amount(raw)

    def test_payment_clears_debt(self):
        assert balance_service.credit_for_payment(_account("-20.00"), Decimal("20.00")) == Decimal("0.00")

    def test_self_service_cannot_overpay(self):
        with pytest.raises(CreditError, match="exceeds outstanding debt"):
            balance_service.credit_for_payment(_account("-20.00"), Decimal("25.00"), self_service=True)

    def test_self_service_without_debt(self):
        with pytest.raises(CreditError):
            balance_service.credit_for_payment(_account("0.00"), Decimal("5.00"), self_service=True)

    def test_admin_may_leave_prepaid_balance(self):
        assert balance_service.credit_for_payment(_account("-20.00"), Decimal("25.00")) == Decimal("5.00")


class TestAdjustments:

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            balance_service.validate_adjustment_amount("0.00")

    def test_negative_adds_debt(self):
        assert balance_service.apply_adjustment(_account("-5.00"), Decimal("-2.50")) == Decimal("-7.50")
