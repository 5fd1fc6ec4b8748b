"""
Sales Service - checkout of a priced cart into a persisted sale

WHY: A sale, its items, its initial payment and (for employee sales) its
commission transaction must exist together or not at all. Checkout prices
the cart, settles the tender, then writes everything in one transaction.

FLOW:
1. Resolve lines (catalog defaults for unit price and tax rate)
2. Price lines and aggregate the cart
3. Settle the tender against the total
4. Allocate a sale number
5. Insert sale + items + payment (+ commission), commit once
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from .. import money
from ..extensions import db
from ..models import Customer, Employee, Payment, Sale, SaleItem, Service, BusinessUnit
from ..time_utils import utcnow
from ..validation import (
    EmptyCartError,
    InvalidTaxRate,
    NegativeTotalRejected,
    ReferenceCollisionError,
    ValidationError,
)
from . import settlement_service
from .commission_service import build_commission_transaction
from .concurrency import run_with_retry
from .document_service import allocate_reference_number
from .payment_service import PAYMENT_SUCCESSFUL, validate_payment_method
from .pricing_service import Cart, CartTotals, LinePricing, aggregate, price_line


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _cart_to_items(cart: Cart) -> list[dict]:
    return [
        {
            "service_id": item.service_ref,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "discount": item.discount,
            "tax_rate": item.tax_rate,
        }
        for item in cart.items
    ]


def resolve_lines(business_id: int, items: Iterable[Mapping]) -> list[LinePricing]:
    """
    Price checkout items, filling unit price and tax rate from the catalog
    when the item does not override them.

    Raises:
        SaleError: referenced service missing, inactive, or in another business
        ValidationError (subclasses): pricing rule violations
    """
    lines = []
    for index, item in enumerate(items):
        service_id = item.get("service_id")
        unit_price = item.get("unit_price")
        tax_rate = item.get("tax_rate")

        if service_id is not None:
            service = db.session.get(Service, service_id)
            if not service or service.business_id != business_id:
                raise SaleError(f"Service {service_id} not found", details={"line": index})
            if not service.is_active:
                raise SaleError(f"Service {service_id} is not active", details={"line": index})
            if unit_price is None:
                unit_price = money.from_cents(service.base_price_cents)
            if tax_rate is None:
                tax_rate = money.from_bps(service.tax_rate_bps)
        elif unit_price is None:
            raise ValidationError(f"Line {index}: unit_price required when service_id is omitted")
        if tax_rate is not None and not money.fits_bps(tax_rate):
            raise InvalidTaxRate(f"Line {index}: tax rate allows at most 2 decimal places, got {tax_rate}")

        lines.append(price_line(
            item.get("quantity", 1),
            unit_price,
            discount=item.get("discount") or 0,
            tax_rate=tax_rate or 0,
            service_ref=service_id,
        ))
    return lines


def _sale_number_taken(business_id: int):
    def _exists(candidate: str) -> bool:
        return db.session.query(Sale.id).filter_by(
            business_id=business_id, sale_number=candidate
        ).first() is not None
    return _exists


# Unique constraints guarding reference numbers; SQLite reports the columns,
# other backends the constraint name.
_REFERENCE_CONSTRAINTS = (
    "uq_sales_business_sale_number",
    "sales.business_id, sales.sale_number",
    "uq_doc_sequences_business_type",
    "document_sequences.business_id, document_sequences.document_type",
)


def _is_reference_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(name in message for name in _REFERENCE_CONSTRAINTS)


def _load_party(model, party_id: int | None, business_id: int, label: str):
    if party_id is None:
        return None
    row = db.session.get(model, party_id)
    if not row or row.business_id != business_id:
        raise SaleError(f"{label} {party_id} not found")
    return row


def checkout(
    business_id: int,
    items: Cart | Iterable[Mapping],
    amount_tendered=None,
    payment_method: str = "cash",
    customer_id: int | None = None,
    employee_id: int | None = None,
    payment_reference: str | None = None,
    notes: str | None = None,
) -> Sale:
    """
    Record a completed or partially paid sale.

    Args:
        business_id: Owning business unit
        items: Cart, or mappings with service_id, quantity, unit_price,
            discount, tax_rate (money as Decimal/str/int)
        amount_tendered: Amount paid now; None means the full total
        payment_method: cash, card, transfer, paystack, flutterwave
        customer_id: Optional customer (walk-in otherwise)
        employee_id: Optional employee; an active employee earns commission
        payment_reference: External gateway reference for the payment

    Returns:
        The persisted Sale

    Raises:
        EmptyCartError, NegativeTotalRejected, NonPositivePayment,
        InvalidQuantity, DiscountExceedsValue, ...: validation failures
        SaleError: unknown business, service, customer or employee
        ReferenceCollisionError: no free sale number after retries
    """
    validate_payment_method(payment_method)
    if isinstance(items, Cart):
        items = _cart_to_items(items)
    else:
        items = list(items)

    def _op():
        business = db.session.get(BusinessUnit, business_id)
        if not business:
            raise SaleError(f"Business unit {business_id} not found")

        lines = resolve_lines(business_id, items)
        if not lines and not current_app.config.get("ALLOW_EMPTY_CHECKOUT", False):
            raise EmptyCartError("Cart is empty")

        totals = aggregate(lines)
        if totals.total_amount < 0:
            raise NegativeTotalRejected(
                f"Discounts exceed the sale value (total {totals.total_amount})"
            )
        settlement = settlement_service.settle_checkout(totals.total_amount, amount_tendered)

        _load_party(Customer, customer_id, business_id, "Customer")
        employee = _load_party(Employee, employee_id, business_id, "Employee")

        try:
            sale = _insert_sale(
                business_id, lines, totals, settlement,
                payment_method=payment_method,
                customer_id=customer_id,
                employee=employee,
                payment_reference=payment_reference,
                notes=notes,
            )
            db.session.commit()
        except IntegrityError as exc:
            if not _is_reference_collision(exc):
                raise
            raise ReferenceCollisionError("Sale number already exists for this business") from exc

        current_app.logger.info(
            "Sale %s recorded: business=%s total=%s paid=%s status=%s",
            sale.sale_number, business_id, sale.total_amount_cents,
            sale.amount_paid_cents, sale.payment_status,
        )
        return sale

    return run_with_retry(_op, retry_on=(ReferenceCollisionError,))


def _insert_sale(
    business_id: int,
    lines: list[LinePricing],
    totals: CartTotals,
    settlement: settlement_service.Settlement,
    *,
    payment_method: str,
    customer_id: int | None,
    employee: Employee | None,
    payment_reference: str | None,
    notes: str | None,
) -> Sale:
    """Add sale, items, initial payment and commission to the session (no commit)."""
    sale_number = allocate_reference_number(business_id, "SALE", _sale_number_taken(business_id))
    now = utcnow()

    sale = Sale(
        business_id=business_id,
        sale_number=sale_number,
        customer_id=customer_id,
        employee_id=employee.id if employee is not None else None,
        subtotal_cents=money.to_cents(totals.subtotal),
        tax_amount_cents=money.to_cents(totals.tax_amount),
        discount_amount_cents=money.to_cents(totals.discount_amount),
        total_amount_cents=money.to_cents(totals.total_amount),
        amount_paid_cents=money.to_cents(settlement.amount_paid),
        balance_due_cents=money.to_cents(settlement.balance_due),
        payment_method=payment_method,
        payment_status=settlement.payment_status,
        notes=notes,
        created_at=now,
    )
    for position, line in enumerate(lines):
        sale.items.append(SaleItem(
            service_id=line.service_ref,
            position=position,
            quantity=line.quantity,
            unit_price_cents=money.to_cents(line.unit_price),
            discount_cents=money.to_cents(line.discount),
            tax_rate_bps=money.to_bps(line.tax_rate),
            tax_amount_cents=money.to_cents(line.line_tax),
            subtotal_cents=money.to_cents(line.line_subtotal),
            total_cents=money.to_cents(line.line_total),
            created_at=now,
        ))

    db.session.add(sale)
    db.session.flush()

    if settlement.amount_paid > 0:
        db.session.add(Payment(
            sale_id=sale.id,
            amount_cents=sale.amount_paid_cents,
            payment_method=payment_method,
            status=PAYMENT_SUCCESSFUL,
            reference=payment_reference,
            created_at=now,
        ))

    if employee is not None:
        if employee.is_active:
            db.session.add(build_commission_transaction(
                employee,
                totals.total_amount,
                sale_id=sale.id,
                notes=f"Commission for Sale {sale_number}",
            ))
        else:
            current_app.logger.info(
                "Employee %s inactive; no commission for sale %s", employee.id, sale_number
            )

    return sale


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise SaleError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    business_id: int,
    payment_status: str | None = None,
    since: datetime | None = None,
    limit: int = 100,
) -> list[Sale]:
    if limit < 1:
        raise ValidationError(f"limit must be a positive integer, got {limit}")
    query = db.session.query(Sale).filter(Sale.business_id == business_id)
    if payment_status:
        if payment_status not in settlement_service.PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status: {payment_status}")
        query = query.filter(Sale.payment_status == payment_status)
    if since is not None:
        query = query.filter(Sale.created_at >= since)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def list_debtors(business_id: int) -> list[Sale]:
    """Sales with an outstanding balance, oldest first."""
    return (
        db.session.query(Sale)
        .filter(Sale.business_id == business_id, Sale.balance_due_cents > 0)
        .filter(Sale.payment_status != settlement_service.STATUS_REFUNDED)
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )