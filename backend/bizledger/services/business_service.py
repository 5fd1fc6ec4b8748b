# Overview: Service-layer operations for business units and their employees, customers and catalog.

from __future__ import annotations

from flask import current_app

from .. import money
from ..extensions import db
from ..models import BusinessUnit, Customer, Employee, Service
from ..validation import InvalidPercentage, InvalidTaxRate, InvalidUnitPrice, ValidationError
from .commission_service import COMMISSION_PERCENTAGE, calculate_commission
from .concurrency import run_with_retry


class BusinessError(Exception):
    """Raised for business unit operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _require_business(business_id: int) -> BusinessUnit:
    business = db.session.get(BusinessUnit, business_id)
    if not business:
        raise BusinessError(f"Business unit {business_id} not found")
    return business


def _require_name(name: str | None, label: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(f"{label} name is required")
    return name


def create_business_unit(
    name: str,
    address: str | None = None,
    phone: str | None = None,
    currency: str = "NGN",
) -> BusinessUnit:
    name = _require_name(name, "Business")

    def _op():
        business = BusinessUnit(name=name, address=address, phone=phone, currency=currency)
        db.session.add(business)
        db.session.commit()
        current_app.logger.info("Business unit %s created: %s", business.id, name)
        return business

    return run_with_retry(_op)


def create_employee(
    business_id: int,
    name: str,
    commission_type: str = "percentage",
    commission_percentage=0,
    fixed_commission=0,
    email: str | None = None,
    phone: str | None = None,
    is_active: bool = True,
) -> Employee:
    """
    Create a commission-earning employee.

    The commission settings are run through the calculator once so that
    an employee can never be stored with settings it would later reject.
    """
    name = _require_name(name, "Employee")
    calculate_commission(
        0,
        commission_type,
        commission_percentage=commission_percentage,
        fixed_commission=fixed_commission,
    )
    if commission_type == COMMISSION_PERCENTAGE and not money.fits_bps(commission_percentage):
        raise InvalidPercentage(
            f"Commission percentage allows at most 2 decimal places, got {commission_percentage}"
        )
    # Only the setting for the chosen type is kept
    if commission_type == COMMISSION_PERCENTAGE:
        fixed_commission = 0
    else:
        commission_percentage = 0

    def _op():
        _require_business(business_id)
        employee = Employee(
            business_id=business_id,
            name=name,
            email=email,
            phone=phone,
            commission_type=commission_type,
            commission_percentage_bps=money.to_bps(commission_percentage),
            fixed_commission_cents=money.to_cents(fixed_commission),
            is_active=is_active,
        )
        db.session.add(employee)
        db.session.commit()
        return employee

    return run_with_retry(_op)


def set_employee_active(employee_id: int, is_active: bool) -> Employee:
    def _op():
        employee = db.session.get(Employee, employee_id)
        if not employee:
            raise BusinessError(f"Employee {employee_id} not found")
        employee.is_active = is_active
        db.session.commit()
        return employee

    return run_with_retry(_op)


def create_customer(
    business_id: int,
    name: str,
    phone: str | None = None,
    email: str | None = None,
) -> Customer:
    name = _require_name(name, "Customer")

    def _op():
        _require_business(business_id)
        customer = Customer(business_id=business_id, name=name, phone=(phone or "").strip() or None, email=email)
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def create_service(
    business_id: int,
    name: str,
    base_price,
    tax_rate=0,
    sku: str | None = None,
    description: str | None = None,
) -> Service:
    name = _require_name(name, "Service")
    base_price = money.quantize(base_price)
    if base_price < 0:
        raise InvalidUnitPrice(f"Base price cannot be negative: {base_price}")
    tax_rate = money.to_money(tax_rate)
    if tax_rate < 0 or tax_rate > 100:
        raise InvalidTaxRate(f"Tax rate must be between 0 and 100, got {tax_rate}")
    if not money.fits_bps(tax_rate):
        raise InvalidTaxRate(f"Tax rate allows at most 2 decimal places, got {tax_rate}")

    def _op():
        _require_business(business_id)
        service = Service(
            business_id=business_id,
            name=name,
            sku=sku,
            description=description,
            base_price_cents=money.to_cents(base_price),
            tax_rate_bps=money.to_bps(tax_rate),
        )
        db.session.add(service)
        db.session.commit()
        return service

    return run_with_retry(_op)
