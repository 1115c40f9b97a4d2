"""
Ledger drafts, chain verification and statement helpers.

Verifies:
- Each draft type carries the right sign and balance effect
- Posting any sequence of drafts yields a chain verify_chain accepts
- A tampered snapshot is reported with its entry id
- Display order is newest first, ties broken by insertion order
"""

import random
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from cafeteria.domain.ledger import TX_CREDIT_CHARGE, TX_PAYMENT, TX_PURCHASE, LedgerEntry
from cafeteria.services import ledger_service
from cafeteria.services.ledger_service import LedgerIntegrityError
from cafeteria.validation import ValidationError


def _post_all(drafts, opening=Decimal("0.00")):
    entries = []
    balance = opening
    start = datetime(2026, 10, 1, 12, 0)
    for i, draft in enumerate(drafts, start=1):
        entry = ledger_service.post_draft("1", balance, draft, entry_id=str(i), created_at=start + timedelta(minutes=i))
        entries.append(entry)
        balance = entry.balance
    return entries


class TestDrafts:

    def test_credit_charge_is_negative(self):
        draft = ledger_service.credit_charge_draft(Decimal("20.00"), order_number="ORD-000001")
        assert draft.kind == TX_CREDIT_CHARGE
        assert draft.amount == Decimal("-20.00")
        assert "ORD-000001" in draft.description

    def test_purchase_does_not_move_balance(self):
        draft = ledger_service.purchase_draft(Decimal("8.50"), "cash")
        entry = ledger_service.post_draft("1", Decimal("-10.00"), draft)
        assert entry.kind == TX_PURCHASE
        assert entry.balance == Decimal("-10.00")
        assert entry.affects_balance is False

    def test_payment_keeps_notes_as_reason(self):
        draft = ledger_service.payment_draft(Decimal("5.00"), "yape", notes="Pago parcial")
        assert draft.kind == TX_PAYMENT
        assert draft.reason == "Pago parcial"
        assert draft.description == "Payment (yape): Pago parcial"

    def test_adjustment_requires_reason(self):
        with pytest.raises(ValidationError):
            ledger_service.adjustment_draft(Decimal("5.00"), "  ")

    def test_limit_change_has_zero_amount(self):
        draft = ledger_service.limit_change_draft(Decimal("50.00"), Decimal("80.00"))
        assert draft.amount == Decimal("0.00")


class TestChain:

    def test_random_sequences_verify(self):
        rng = random.Random(20261019)
        for _ in range(50):
            drafts = []
            for _ in range(rng.randint(1, 25)):
                amount = Decimal(rng.randint(1, 5000)) / 100
                kind = rng.choice(["charge", "payment", "adjust", "purchase", "limit"])
                if kind == "charge":
                    drafts.append(ledger_service.credit_charge_draft(amount))
                elif kind == "payment":
                    drafts.append(ledger_service.payment_draft(amount, "cash"))
                elif kind == "adjust":
                    drafts.append(ledger_service.adjustment_draft(amount * rng.choice([1, -1]), "fix"))
                elif kind == "purchase":
                    drafts.append(ledger_service.purchase_draft(amount, "card"))
                else:
                    drafts.append(ledger_service.limit_change_draft(Decimal("50.00"), amount))
            entries = _post_all(drafts)
            expected = sum((d.amount for d in drafts if d.affects_balance), Decimal("0.00"))
            assert ledger_service.verify_chain(entries) == expected
            for entry in entries:
                if entry.affects_balance:
                    assert entry.balance == entry.balance_before + entry.amount

    def test_tampered_entry_detected(self):
        entries = _post_all([
            ledger_service.credit_charge_draft(Decimal("20.00")),
            ledger_service.payment_draft(Decimal("5.00"), "cash"),
        ])
        bad = LedgerEntry(**{**entries[1].__dict__, "balance": Decimal("-10.00")})
        with pytest.raises(LedgerIntegrityError) as exc:
            ledger_service.verify_chain([entries[0], bad])
        assert exc.value.entry_id == "2"


class TestDisplay:

    def test_newest_first_with_tie_break(self):
        stamp = datetime(2026, 10, 1, 12, 0)
        entries = [
            ledger_service.post_draft("1", Decimal("0"), ledger_service.payment_draft(Decimal("1"), "cash"),
                                      entry_id=str(i), created_at=stamp)
            for i in (3, 10, 2)
        ]
        assert [e.entry_id for e in ledger_service.for_display(entries)] == ["10", "3", "2"]

    def test_recent_limits(self):
        entries = _post_all([ledger_service.payment_draft(Decimal("1"), "cash") for _ in range(5)])
        recent = ledger_service.recent(entries, 2)
        assert [e.entry_id for e in recent] == ["5", "4"]

    def test_period_filter(self):
        now = datetime(2026, 10, 19, 15, 0)
        old = ledger_service.post_draft("1", Decimal("0"), ledger_service.payment_draft(Decimal("1"), "cash"),
                                        entry_id="1", created_at=now - timedelta(days=10))
        new = ledger_service.post_draft("1", Decimal("1"), ledger_service.payment_draft(Decimal("1"), "cash"),
                                        entry_id="2", created_at=now - timedelta(hours=1))
        assert ledger_service.filter_period([old, new], "weekly", now) == [new]
        assert ledger_service.filter_period([old, new], "monthly", now) == [old, new]
        with pytest.raises(ValidationError):
            ledger_service.filter_period([old], "yearly", now)

    def test_totals(self):
        entries = _post_all([
            ledger_service.credit_charge_draft(Decimal("20.00")),
            ledger_service.payment_draft(Decimal("15.00"), "cash"),
            ledger_service.adjustment_draft(Decimal("-1.00"), "fee"),
            ledger_service.purchase_draft(Decimal("3.00"), "cash"),
        ])
        totals = ledger_service.totals(entries)
        assert totals["charged"] == Decimal("20.00")
        assert totals["paid"] == Decimal("15.00")
        assert totals["adjusted"] == Decimal("-1.00")
        assert totals["counter_purchases"] == Decimal("3.00")
        assert totals["net_change"] == Decimal("-6.00")
