# Overview: Service-layer operations for payment; follow-up payments against a sale balance.

"""
Payment Processing Service

WHY: Sales may be paid in part at checkout and topped up later (debtors).
Each follow-up payment appends a Payment row and updates the sale balance
in the same commit.

DESIGN PRINCIPLES:
- Payments are append-only facts about a sale (many-to-one)
- Sum of successful payments == Sale.amount_paid_cents, always
- The sale row is locked and re-read before the new balance is computed;
  the version counter on Sale turns a stale write into StaleDataError,
  which is retried against fresh state
- Overpayment is absorbed: the balance floors at zero, no change is owed
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from .. import money
from ..extensions import db
from ..models import Payment, Sale
from ..time_utils import utcnow
from ..validation import InvalidPaymentMethod
from . import settlement_service
from .concurrency import lock_for_update, run_with_retry


class PaymentError(Exception):
    """Raised for payment operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_TRANSFER = "transfer"
METHOD_PAYSTACK = "paystack"
METHOD_FLUTTERWAVE = "flutterwave"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_TRANSFER,
    METHOD_PAYSTACK,
    METHOD_FLUTTERWAVE,
]


# =============================================================================
# PAYMENT RECORD STATUS (CONSTANTS)
# =============================================================================

PAYMENT_SUCCESSFUL = "successful"
PAYMENT_FAILED = "failed"
PAYMENT_PENDING = "pending"


def validate_payment_method(method: str) -> None:
    if method not in VALID_PAYMENT_METHODS:
        raise InvalidPaymentMethod(
            f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}"
        )


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(
    sale_id: int,
    amount,
    method: str = METHOD_CASH,
    reference: str | None = None,
) -> Payment:
    """
    Apply a follow-up payment to a sale.

    Args:
        sale_id: Sale being paid
        amount: Amount tendered (Decimal/str/int, major units)
        method: cash, card, transfer, paystack, flutterwave
        reference: External gateway reference (optional)

    Returns:
        The appended Payment

    Raises:
        NonPositivePayment: amount <= 0
        InvalidPaymentMethod: unknown method
        SaleRefunded: sale is refunded
        PaymentError: sale not found
    """
    validate_payment_method(method)

    def _op():
        # Re-read under lock; never trust a previously loaded balance
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).populate_existing().first()
        if not sale:
            raise PaymentError(f"Sale {sale_id} not found")

        current = settlement_service.settlement_for(
            money.from_cents(sale.total_amount_cents),
            money.from_cents(sale.amount_paid_cents),
            sale.payment_status,
        )
        updated = settlement_service.apply_payment(current, amount)

        payment = Payment(
            sale_id=sale.id,
            amount_cents=money.to_cents(amount),
            payment_method=method,
            status=PAYMENT_SUCCESSFUL,
            reference=reference,
            created_at=utcnow(),
        )
        db.session.add(payment)

        sale.amount_paid_cents = money.to_cents(updated.amount_paid)
        sale.balance_due_cents = money.to_cents(updated.balance_due)
        sale.payment_status = updated.payment_status

        db.session.commit()

        current_app.logger.info(
            "Payment of %s recorded on sale %s: paid=%s balance=%s status=%s",
            payment.amount_cents, sale.sale_number, sale.amount_paid_cents,
            sale.balance_due_cents, sale.payment_status,
        )
        return payment

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_sale_payments(sale_id: int, successful_only: bool = False) -> list[Payment]:
    """
    Get all payments for a sale, ordered by creation.

    Args:
        sale_id: Sale ID
        successful_only: Exclude failed/pending payment records
    """
    query = db.session.query(Payment).filter_by(sale_id=sale_id)
    if successful_only:
        query = query.filter_by(status=PAYMENT_SUCCESSFUL)
    return query.order_by(Payment.created_at, Payment.id).all()


def sum_successful_payments_cents(sale_id: int) -> int:
    return int(db.session.query(
        func.coalesce(func.sum(Payment.amount_cents), 0)
    ).filter(
        Payment.sale_id == sale_id,
        Payment.status == PAYMENT_SUCCESSFUL,
    ).scalar() or 0)


def get_payment_summary(sale_id: int) -> dict:
    """
    Payment summary for a sale.

    Returns:
        - total_amount_cents: Sale total
        - amount_paid_cents: Sum of successful payments
        - balance_due_cents: Amount still owed (never negative)
        - payment_status: pending, partial, completed, refunded
        - payments: Payment records
    """
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise PaymentError(f"Sale {sale_id} not found")

    return {
        "sale_id": sale.id,
        "sale_number": sale.sale_number,
        "total_amount_cents": sale.total_amount_cents,
        "amount_paid_cents": sale.amount_paid_cents,
        "balance_due_cents": sale.balance_due_cents,
        "payment_status": sale.payment_status,
        "payments": [p.to_dict() for p in get_sale_payments(sale_id)],
    }


def verify_sale_consistency(sale_id: int) -> list[str]:
    """
    Check a stored sale against its items and payments.

    Returns:
        List of problems; empty when the sale is consistent.
    """
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise PaymentError(f"Sale {sale_id} not found")

    problems = []
    subtotal = sum(item.subtotal_cents for item in sale.items)
    tax = sum(item.tax_amount_cents for item in sale.items)
    discount = sum(item.discount_cents for item in sale.items)

    if sale.subtotal_cents != subtotal:
        problems.append(f"subtotal {sale.subtotal_cents} != sum of items {subtotal}")
    if sale.tax_amount_cents != tax:
        problems.append(f"tax {sale.tax_amount_cents} != sum of items {tax}")
    if sale.discount_amount_cents != discount:
        problems.append(f"discount {sale.discount_amount_cents} != sum of items {discount}")
    if sale.total_amount_cents != sale.subtotal_cents + sale.tax_amount_cents - sale.discount_amount_cents:
        problems.append("total != subtotal + tax - discount")

    paid = sum_successful_payments_cents(sale_id)
    if paid != sale.amount_paid_cents:
        problems.append(f"amount_paid {sale.amount_paid_cents} != successful payments {paid}")

    expected = settlement_service.settlement_for(
        money.from_cents(sale.total_amount_cents),
        money.from_cents(paid),
        sale.payment_status,
    )
    if money.to_cents(expected.balance_due) != sale.balance_due_cents:
        problems.append(f"balance_due {sale.balance_due_cents} != expected {money.to_cents(expected.balance_due)}")
    if expected.payment_status != sale.payment_status:
        problems.append(f"payment_status {sale.payment_status} != expected {expected.payment_status}")

    return problems
