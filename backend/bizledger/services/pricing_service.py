# Overview: Pure cart pricing; line-item pricing, cart aggregation and the immutable Cart value.

"""
Cart Pricing

Nothing in this module touches the database. Checkout prices each line,
aggregates the cart, and only then hands the totals to the settlement
ledger.

LINE FORMULAS:
- line_subtotal = quantity × unit_price
- line_tax      = line_subtotal × tax_rate / 100   (rounded once)
- line_total    = line_subtotal − discount

CART FORMULAS:
- subtotal        = Σ line_subtotal
- tax_amount      = Σ line_tax
- discount_amount = Σ discount
- total_amount    = subtotal + tax_amount − discount_amount
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Iterable

from .. import money
from ..validation import (
    DiscountExceedsValue,
    InvalidDiscount,
    InvalidQuantity,
    InvalidTaxRate,
    InvalidUnitPrice,
)


@dataclass(frozen=True)
class LinePricing:
    service_ref: Any
    quantity: int
    unit_price: Decimal
    discount: Decimal
    tax_rate: Decimal
    line_subtotal: Decimal
    line_tax: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    item_count: int = 0


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        if isinstance(quantity, Decimal) and quantity == quantity.to_integral_value():
            quantity = int(quantity)
        else:
            raise InvalidQuantity(f"Quantity must be a positive integer, got {quantity!r}")
    if quantity <= 0:
        raise InvalidQuantity(f"Quantity must be a positive integer, got {quantity}")
    return quantity


def price_line(
    quantity: int,
    unit_price: money.MoneyLike,
    discount: money.MoneyLike = 0,
    tax_rate: money.MoneyLike = 0,
    service_ref: Any = None,
) -> LinePricing:
    """
    Price a single cart line.

    Raises:
        InvalidQuantity: quantity is not a positive integer
        InvalidUnitPrice: unit price is negative
        InvalidDiscount: discount is negative
        DiscountExceedsValue: discount is larger than quantity × unit price
        InvalidTaxRate: tax rate outside 0-100
    """
    quantity = _validate_quantity(quantity)

    unit_price = money.quantize(unit_price)
    if unit_price < 0:
        raise InvalidUnitPrice(f"Unit price cannot be negative: {unit_price}")

    discount = money.quantize(discount)
    if discount < 0:
        raise InvalidDiscount(f"Discount cannot be negative: {discount}")

    tax_rate = money.to_money(tax_rate)
    if tax_rate < 0 or tax_rate > 100:
        raise InvalidTaxRate(f"Tax rate must be between 0 and 100, got {tax_rate}")

    line_subtotal = money.multiply(unit_price, quantity)
    if discount > line_subtotal:
        raise DiscountExceedsValue(
            f"Discount {discount} exceeds line value {line_subtotal}"
        )

    return LinePricing(
        service_ref=service_ref,
        quantity=quantity,
        unit_price=unit_price,
        discount=discount,
        tax_rate=tax_rate,
        line_subtotal=line_subtotal,
        line_tax=money.percentage_of(line_subtotal, tax_rate),
        line_total=money.subtract(line_subtotal, discount),
    )


def aggregate(lines: Iterable[LinePricing]) -> CartTotals:
    """
    Sum priced lines into cart totals.

    Purely additive: an empty cart is all zeros and a negative total is
    returned as-is (checkout decides what to reject).
    """
    lines = list(lines)
    subtotal = money.add(*(line.line_subtotal for line in lines))
    tax_amount = money.add(*(line.line_tax for line in lines))
    discount_amount = money.add(*(line.discount for line in lines))

    return CartTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total_amount=money.subtract(money.add(subtotal, tax_amount), discount_amount),
        item_count=sum(line.quantity for line in lines),
    )


# =============================================================================
# IMMUTABLE CART
# =============================================================================

@dataclass(frozen=True)
class CartItem:
    service_ref: Any
    unit_price: Decimal
    quantity: int = 1
    discount: Decimal = money.ZERO
    tax_rate: Decimal = Decimal(0)

    def priced(self) -> LinePricing:
        return price_line(
            self.quantity,
            self.unit_price,
            discount=self.discount,
            tax_rate=self.tax_rate,
            service_ref=self.service_ref,
        )


@dataclass(frozen=True)
class Cart:
    """
    In-progress cart. Every edit returns a new Cart; nothing is mutated.

    Items are keyed by service_ref and keep insertion order.
    """
    items: tuple[CartItem, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def get(self, service_ref) -> CartItem | None:
        for item in self.items:
            if item.service_ref == service_ref:
                return item
        return None

    def _replace_item(self, service_ref, updater) -> "Cart":
        return Cart(tuple(
            updater(item) if item.service_ref == service_ref else item
            for item in self.items
        ))

    def add(self, service_ref, unit_price, tax_rate=0, quantity: int = 1) -> "Cart":
        """Add an item, or bump its quantity if it is already in the cart."""
        quantity = _validate_quantity(quantity)
        if self.get(service_ref) is not None:
            return self._replace_item(
                service_ref, lambda item: replace(item, quantity=item.quantity + quantity)
            )
        item = CartItem(
            service_ref=service_ref,
            unit_price=money.quantize(unit_price),
            quantity=quantity,
            tax_rate=money.to_money(tax_rate),
        )
        return Cart(self.items + (item,))

    def update_quantity(self, service_ref, delta: int) -> "Cart":
        """Change quantity by ``delta``; never drops below 1 (use remove)."""
        return self._replace_item(
            service_ref, lambda item: replace(item, quantity=max(1, item.quantity + delta))
        )

    def update_discount(self, service_ref, discount) -> "Cart":
        """Set the line discount; negative input is clamped to zero."""
        discount = max(money.ZERO, money.quantize(discount))
        return self._replace_item(service_ref, lambda item: replace(item, discount=discount))

    def remove(self, service_ref) -> "Cart":
        return Cart(tuple(item for item in self.items if item.service_ref != service_ref))

    def clear(self) -> "Cart":
        return Cart()

    def priced(self) -> list[LinePricing]:
        return [item.priced() for item in self.items]

    def totals(self) -> CartTotals:
        return aggregate(self.priced())
