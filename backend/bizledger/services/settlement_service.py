# Overview: Pure settlement ledger; payment status state machine for a sale.

"""
Settlement Ledger

Tracks cumulative payments against a sale total. Pure computation: the
caller persists the resulting state together with the Payment that caused
it (see payment_service.record_payment).

STATES:
- pending:   amount_paid == 0 and something is owed
- partial:   0 < amount_paid < total_amount
- completed: balance_due == 0
- refunded:  terminal, reached only through a refund outside this ledger

RULES:
- A payment must be positive.
- Overpayment is absorbed: balance_due floors at 0, no change is owed.
- Status never moves backward.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .. import money
from ..validation import NegativeTotalRejected, NonPositivePayment, SaleRefunded


STATUS_PENDING = "pending"
STATUS_PARTIAL = "partial"
STATUS_COMPLETED = "completed"
STATUS_REFUNDED = "refunded"

PAYMENT_STATUSES = [
    STATUS_PENDING,
    STATUS_PARTIAL,
    STATUS_COMPLETED,
    STATUS_REFUNDED,
]


@dataclass(frozen=True)
class Settlement:
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    payment_status: str

    @property
    def is_settled(self) -> bool:
        return self.payment_status == STATUS_COMPLETED


def balance_due(total_amount, amount_paid) -> Decimal:
    return max(money.ZERO, money.subtract(total_amount, amount_paid))


def classify(total_amount, amount_paid) -> str:
    if balance_due(total_amount, amount_paid) == 0:
        return STATUS_COMPLETED
    if money.to_money(amount_paid) > 0:
        return STATUS_PARTIAL
    return STATUS_PENDING


def settlement_for(total_amount, amount_paid, payment_status: str | None = None) -> Settlement:
    """Build the ledger state for stored totals (e.g. a Sale row)."""
    total_amount = money.quantize(total_amount)
    amount_paid = money.quantize(amount_paid)
    if payment_status != STATUS_REFUNDED:
        payment_status = classify(total_amount, amount_paid)
    return Settlement(
        total_amount=total_amount,
        amount_paid=amount_paid,
        balance_due=balance_due(total_amount, amount_paid),
        payment_status=payment_status,
    )


def open_settlement(total_amount) -> Settlement:
    """Ledger state of a new sale before any tender."""
    total_amount = money.quantize(total_amount)
    if total_amount < 0:
        raise NegativeTotalRejected(f"Sale total cannot be negative: {total_amount}")
    return settlement_for(total_amount, money.ZERO)


def apply_payment(settlement: Settlement, amount) -> Settlement:
    """
    Apply one successful payment.

    Raises:
        NonPositivePayment: amount <= 0
        SaleRefunded: the sale is in the terminal refunded state
    """
    amount = money.quantize(amount)
    if amount <= 0:
        raise NonPositivePayment(f"Payment amount must be positive, got {amount}")
    if settlement.payment_status == STATUS_REFUNDED:
        raise SaleRefunded("Cannot apply a payment to a refunded sale")

    return settlement_for(settlement.total_amount, money.add(settlement.amount_paid, amount))


def settle_checkout(total_amount, amount_tendered=None) -> Settlement:
    """
    Ledger state right after checkout.

    No tender means the customer pays the full total. A tender of exactly
    zero records a credit sale (pending, nothing paid).

    Raises:
        NegativeTotalRejected: total_amount < 0
        NonPositivePayment: amount_tendered < 0
    """
    settlement = open_settlement(total_amount)

    if amount_tendered is None:
        amount_tendered = settlement.total_amount
    else:
        amount_tendered = money.quantize(amount_tendered)
        if amount_tendered < 0:
            raise NonPositivePayment(f"Amount tendered cannot be negative: {amount_tendered}")

    if amount_tendered == 0:
        return settlement
    return apply_payment(settlement, amount_tendered)


def replay(total_amount, payments) -> Settlement:
    """Fold a sequence of payment amounts into a settlement, in order."""
    settlement = open_settlement(total_amount)
    for amount in payments:
        settlement = apply_payment(settlement, amount)
    return settlement
