from __future__ import annotations

from decimal import Decimal, InvalidOperation as DecimalInvalidOperation
from typing import Any


# Maximum money value accepted from clients: 9,999,999,999.99 (in cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999_999


class ValidationError(ValueError):
    """400-level input problem. Caller-correctable, never retried."""


class ConflictError(ValueError):
    """409-level conflict. Transient; the operation is safe to retry."""


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class InvalidMoneyValue(ValidationError):
    pass


class InvalidOperation(ValidationError):
    """Arithmetic that has no defined result (e.g. dividing by a zero count)."""


class InvalidQuantity(ValidationError):
    pass


class InvalidUnitPrice(ValidationError):
    pass


class InvalidDiscount(ValidationError):
    pass


class DiscountExceedsValue(ValidationError):
    pass


class InvalidTaxRate(ValidationError):
    pass


class NegativeTotalRejected(ValidationError):
    pass


class EmptyCartError(ValidationError):
    pass


class NonPositivePayment(ValidationError):
    pass


class InvalidPaymentMethod(ValidationError):
    pass


class InvalidAmount(ValidationError):
    pass


class InvalidCommissionType(ValidationError):
    pass


class InvalidPercentage(ValidationError):
    pass


class InvalidFixedCommission(ValidationError):
    pass


# =============================================================================
# CONFLICT ERRORS
# =============================================================================

class ReferenceCollisionError(ConflictError):
    """A generated reference number is already taken for the business."""


class SaleRefunded(ConflictError):
    """Payments cannot be applied to a refunded sale."""


# =============================================================================
# REQUEST PAYLOAD COERCION
# =============================================================================

def parse_int(value: Any, field: str, *, required: bool = True) -> int | None:
    """
    Strict integer parsing for request payloads.

    Rejects floats, booleans, decimal points and scientific notation so that
    "12.5" never silently becomes 12.
    """
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    # bool is a subclass of int
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def parse_cents(value: Any, field: str, *, required: bool = True) -> int | None:
    cents = parse_int(value, field, required=required)
    if cents is None:
        return None
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds maximum allowed value")
    return cents


def parse_rate(value: Any, field: str, *, required: bool = False) -> Decimal | None:
    """Parse a percentage given as a number or numeric string (e.g. 7.5)."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        rate = Decimal(value)
    except (DecimalInvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not rate.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return rate


def require_fields(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")
