from decimal import Decimal

import pytest

from bizledger.services import settlement_service
from bizledger.services.settlement_service import (
    STATUS_COMPLETED,
    STATUS_PARTIAL,
    STATUS_PENDING,
    STATUS_REFUNDED,
)
from bizledger.validation import NegativeTotalRejected, NonPositivePayment, SaleRefunded


def test_full_cash_sale():
    s = settlement_service.settle_checkout(Decimal("10000"), Decimal("10000"))
    assert s.amount_paid == Decimal("10000.00")
    assert s.balance_due == 0
    assert s.payment_status == STATUS_COMPLETED
    assert s.is_settled


def test_partial_then_follow_up_payment():
    s = settlement_service.settle_checkout(10000, 4000)
    assert s.amount_paid == Decimal("4000.00")
    assert s.balance_due == Decimal("6000.00")
    assert s.payment_status == STATUS_PARTIAL

    s = settlement_service.apply_payment(s, 6000)
    assert s.amount_paid == Decimal("10000.00")
    assert s.balance_due == 0
    assert s.payment_status == STATUS_COMPLETED


def test_no_tender_means_paid_in_full():
    s = settlement_service.settle_checkout("2925.00")
    assert s.amount_paid == Decimal("2925.00")
    assert s.payment_status == STATUS_COMPLETED


def test_zero_tender_is_credit_sale():
    s = settlement_service.settle_checkout(10000, 0)
    assert s.amount_paid == 0
    assert s.balance_due == Decimal("10000.00")
    assert s.payment_status == STATUS_PENDING


def test_zero_total_is_completed():
    s = settlement_service.open_settlement(0)
    assert s.payment_status == STATUS_COMPLETED
    assert s.balance_due == 0


def test_overpayment_is_absorbed():
    s = settlement_service.settle_checkout(10000, 15000)
    assert s.amount_paid == Decimal("15000.00")
    assert s.balance_due == 0
    assert s.payment_status == STATUS_COMPLETED


@pytest.mark.parametrize("amount", [0, -1, "0.004"])
def test_non_positive_payment_rejected(amount):
    s = settlement_service.open_settlement(100)
    with pytest.raises(NonPositivePayment):
        settlement_service.apply_payment(s, amount)


def test_negative_tender_rejected():
    with pytest.raises(NonPositivePayment):
        settlement_service.settle_checkout(100, -5)


def test_negative_total_rejected():
    with pytest.raises(NegativeTotalRejected):
        settlement_service.open_settlement("-0.01")


def test_refunded_is_terminal():
    s = settlement_service.settlement_for(100, 100, STATUS_REFUNDED)
    assert s.payment_status == STATUS_REFUNDED
    with pytest.raises(SaleRefunded):
        settlement_service.apply_payment(s, 10)


@pytest.mark.parametrize("payments", [
    ["1000", "2000", "3000", "4000"],
    ["0.01"] * 5 + ["9999.95"],
    ["2500", "7500", "100", "1"],
    ["12000"],
])
def test_ledger_is_monotonic(payments):
    s = settlement_service.open_settlement(10000)
    seen_completed = False
    for amount in payments:
        nxt = settlement_service.apply_payment(s, amount)
        assert nxt.amount_paid >= s.amount_paid
        assert nxt.balance_due <= s.balance_due
        if seen_completed:
            assert nxt.payment_status == STATUS_COMPLETED
        seen_completed = seen_completed or nxt.payment_status == STATUS_COMPLETED
        s = nxt

    assert s == settlement_service.replay(10000, payments)


def test_classify():
    assert settlement_service.classify(100, 0) == STATUS_PENDING
    assert settlement_service.classify(100, "0.01") == STATUS_PARTIAL
    assert settlement_service.classify(100, 100) == STATUS_COMPLETED
    assert settlement_service.classify(100, 150) == STATUS_COMPLETED
