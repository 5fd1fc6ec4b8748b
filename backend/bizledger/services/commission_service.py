# Overview: Commission split calculation and commission transaction bookkeeping.

"""
Commission Service

Splits a sale amount between the employee (commission) and the business
(house), and records/settles the resulting CommissionTransaction rows.

COMMISSION TYPES:
- percentage: commission = total × percentage / 100, rounded half-up
- fixed:      commission = min(fixed_commission, total)

The fixed cap keeps the house amount from going negative when a fixed
commission is larger than the sale. In every case
commission + house == total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from .. import money
from ..extensions import db
from ..models import CommissionTransaction, Employee, Sale, Service
from ..time_utils import utcnow
from ..validation import (
    InvalidAmount,
    InvalidCommissionType,
    InvalidFixedCommission,
    InvalidPercentage,
)
from .concurrency import run_with_retry


class CommissionError(Exception):
    """Raised for commission operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


COMMISSION_PERCENTAGE = "percentage"
COMMISSION_FIXED = "fixed"

VALID_COMMISSION_TYPES = [
    COMMISSION_PERCENTAGE,
    COMMISSION_FIXED,
]


@dataclass(frozen=True)
class CommissionSplit:
    total_amount: Decimal
    commission_amount: Decimal
    house_amount: Decimal


# =============================================================================
# CALCULATION (pure)
# =============================================================================

def calculate_commission(
    total_amount,
    commission_type: str,
    commission_percentage=0,
    fixed_commission=0,
) -> CommissionSplit:
    """
    Split ``total_amount`` into commission and house amounts.

    Raises:
        InvalidAmount: total is negative
        InvalidCommissionType: type is not percentage or fixed
        InvalidPercentage: percentage type with a rate outside 0-100
        InvalidFixedCommission: fixed type with a negative amount
    """
    total_amount = money.quantize(total_amount)
    if total_amount < 0:
        raise InvalidAmount(f"Sale amount cannot be negative: {total_amount}")

    if commission_type == COMMISSION_PERCENTAGE:
        rate = money.to_money(commission_percentage)
        if rate < 0 or rate > 100:
            raise InvalidPercentage(f"Commission percentage must be between 0 and 100, got {rate}")
        commission = money.percentage_of(total_amount, rate)
    elif commission_type == COMMISSION_FIXED:
        fixed = money.quantize(fixed_commission)
        if fixed < 0:
            raise InvalidFixedCommission(f"Fixed commission cannot be negative: {fixed}")
        commission = min(fixed, total_amount)
    else:
        raise InvalidCommissionType(
            f"Invalid commission type: {commission_type!r}. Must be one of {VALID_COMMISSION_TYPES}"
        )

    return CommissionSplit(
        total_amount=total_amount,
        commission_amount=commission,
        house_amount=money.subtract(total_amount, commission),
    )


def split_for_employee(total_amount, employee: Employee) -> CommissionSplit:
    return calculate_commission(
        total_amount,
        employee.commission_type,
        commission_percentage=money.from_bps(employee.commission_percentage_bps),
        fixed_commission=money.from_cents(employee.fixed_commission_cents),
    )


# =============================================================================
# RECORDING
# =============================================================================

def build_commission_transaction(
    employee: Employee,
    total_amount,
    service_id: int | None = None,
    sale_id: int | None = None,
    notes: str | None = None,
) -> CommissionTransaction:
    """Compute the split and build (but do not add) a CommissionTransaction."""
    split = split_for_employee(total_amount, employee)
    return CommissionTransaction(
        business_id=employee.business_id,
        employee_id=employee.id,
        service_id=service_id,
        sale_id=sale_id,
        total_amount_cents=money.to_cents(split.total_amount),
        commission_amount_cents=money.to_cents(split.commission_amount),
        house_amount_cents=money.to_cents(split.house_amount),
        is_commission_paid=False,
        notes=notes,
        created_at=utcnow(),
    )


def _require_in_business(model, row_id: int | None, business_id: int, label: str) -> None:
    if row_id is None:
        return
    row = db.session.get(model, row_id)
    if not row or row.business_id != business_id:
        raise CommissionError(f"{label} {row_id} not found", details={"business_id": business_id})


def record_commission(
    business_id: int,
    employee_id: int,
    total_amount,
    service_id: int | None = None,
    sale_id: int | None = None,
    notes: str | None = None,
) -> CommissionTransaction:
    """
    Record a commission-bearing sale for an employee.

    Raises:
        CommissionError: employee not found in the business, or inactive;
            service or sale not found in the business
    """
    def _op():
        employee = db.session.get(Employee, employee_id)
        if not employee or employee.business_id != business_id:
            raise CommissionError(f"Employee {employee_id} not found")
        if not employee.is_active:
            raise CommissionError(f"Employee {employee_id} is not active")
        _require_in_business(Service, service_id, business_id, "Service")
        _require_in_business(Sale, sale_id, business_id, "Sale")

        txn = build_commission_transaction(
            employee, total_amount, service_id=service_id, sale_id=sale_id, notes=notes
        )
        db.session.add(txn)
        db.session.commit()

        current_app.logger.info(
            "Commission recorded: employee=%s total=%s commission=%s house=%s",
            employee_id, txn.total_amount_cents, txn.commission_amount_cents, txn.house_amount_cents,
        )
        return txn

    return run_with_retry(_op)


def mark_commissions_paid(transaction_ids: list[int], business_id: int | None = None) -> int:
    """
    Mark commission transactions as paid.

    Idempotent: rows already paid keep their original paid_at, and
    marking the same ids again changes nothing. Paid rows never revert.

    Returns:
        Number of transactions that moved from unpaid to paid

    Raises:
        CommissionError: one or more ids do not exist (in the business)
    """
    ids = sorted(set(transaction_ids))
    if not ids:
        return 0

    def _op():
        query = db.session.query(CommissionTransaction).filter(CommissionTransaction.id.in_(ids))
        if business_id is not None:
            query = query.filter(CommissionTransaction.business_id == business_id)
        txns = query.all()

        missing = sorted(set(ids) - {t.id for t in txns})
        if missing:
            raise CommissionError(
                "Commission transactions not found",
                details={"missing_ids": missing},
            )

        paid_at = utcnow()
        marked = 0
        for txn in txns:
            if txn.is_commission_paid:
                continue
            txn.is_commission_paid = True
            txn.paid_at = paid_at
            marked += 1

        db.session.commit()
        current_app.logger.info("Marked %d of %d commission transactions paid", marked, len(ids))
        return marked

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def list_commissions(
    business_id: int,
    employee_id: int | None = None,
    unpaid_only: bool = False,
) -> list[CommissionTransaction]:
    query = db.session.query(CommissionTransaction).filter_by(business_id=business_id)
    if employee_id is not None:
        query = query.filter_by(employee_id=employee_id)
    if unpaid_only:
        query = query.filter_by(is_commission_paid=False)
    return query.order_by(CommissionTransaction.created_at.desc(), CommissionTransaction.id.desc()).all()


def employee_commission_summary(employee_id: int) -> dict:
    """
    Totals for one employee's commission transactions.

    Returns:
        total_sales_cents, total_commission_cents, unpaid_commission_cents,
        paid_commission_cents, transaction_count
    """
    employee = db.session.get(Employee, employee_id)
    if not employee:
        raise CommissionError(f"Employee {employee_id} not found")

    total_sales, total_commission, count = db.session.query(
        func.coalesce(func.sum(CommissionTransaction.total_amount_cents), 0),
        func.coalesce(func.sum(CommissionTransaction.commission_amount_cents), 0),
        func.count(CommissionTransaction.id),
    ).filter(CommissionTransaction.employee_id == employee_id).one()

    unpaid = db.session.query(
        func.coalesce(func.sum(CommissionTransaction.commission_amount_cents), 0)
    ).filter(
        CommissionTransaction.employee_id == employee_id,
        CommissionTransaction.is_commission_paid.is_(False),
    ).scalar()

    return {
        "employee_id": employee_id,
        "total_sales_cents": int(total_sales),
        "total_commission_cents": int(total_commission),
        "unpaid_commission_cents": int(unpaid),
        "paid_commission_cents": int(total_commission) - int(unpaid),
        "transaction_count": int(count),
    }
